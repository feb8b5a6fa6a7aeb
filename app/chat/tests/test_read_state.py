"""
Tests for read confirmation and unread counters.

Covers:
- Reset to zero on read
- Read up to a given message (messages sent after it stay unread)
- Membership and reference checks
"""

from freezegun import freeze_time

from chat.broadcast import ChangeEvent
from chat.models import UnreadCounter
from chat.services import MessageService, ReadStateService


class TestMarkRead:
    def test_resets_counter_to_zero(self, direct_conversation, alice, bob):
        MessageService.send(direct_conversation.id, alice, "one")
        MessageService.send(direct_conversation.id, alice, "two")

        result = ReadStateService.mark_read(direct_conversation.id, bob)

        assert result.success is True
        assert result.data.count == 0
        assert result.data.last_read_at is not None
        assert ReadStateService.get_unread_count(direct_conversation, bob) == 0

    def test_creates_counter_when_missing(self, direct_conversation, alice):
        result = ReadStateService.mark_read(direct_conversation.id, alice)

        assert result.success is True
        assert UnreadCounter.objects.filter(
            user=alice, conversation=direct_conversation, count=0
        ).exists()

    def test_mark_read_is_idempotent(self, direct_conversation, alice, bob):
        MessageService.send(direct_conversation.id, alice, "one")

        ReadStateService.mark_read(direct_conversation.id, bob)
        ReadStateService.mark_read(direct_conversation.id, bob)

        assert UnreadCounter.objects.filter(user=bob).count() == 1
        assert ReadStateService.get_unread_count(direct_conversation, bob) == 0

    def test_read_up_to_message_keeps_later_messages_unread(
        self, direct_conversation, alice, bob
    ):
        """
        A message that arrives after the one the reader saw stays unread.

        Why it matters: A read racing a send must not swallow the new
        message's unread increment.
        """
        with freeze_time("2026-01-01 10:00:00"):
            seen = MessageService.send(direct_conversation.id, alice, "seen").data
        with freeze_time("2026-01-01 10:00:01"):
            MessageService.send(direct_conversation.id, alice, "not yet seen")

        result = ReadStateService.mark_read(
            direct_conversation.id, bob, last_seen_message_id=seen.id
        )

        assert result.data.count == 1
        assert result.data.last_read_at == seen.timestamp
        assert result.data.last_read_message_id == seen.id

    def test_read_up_to_message_ignores_own_messages(self, direct_conversation, alice, bob):
        seen = MessageService.send(direct_conversation.id, alice, "seen").data
        MessageService.send(direct_conversation.id, bob, "my reply")

        result = ReadStateService.mark_read(
            direct_conversation.id, bob, last_seen_message_id=seen.id
        )

        assert result.data.count == 0

    def test_send_after_read_increments_again(self, direct_conversation, alice, bob):
        MessageService.send(direct_conversation.id, alice, "one")
        ReadStateService.mark_read(direct_conversation.id, bob)

        MessageService.send(direct_conversation.id, alice, "two")

        assert ReadStateService.get_unread_count(direct_conversation, bob) == 1

    def test_non_participant_is_denied(self, direct_conversation, outsider):
        result = ReadStateService.mark_read(direct_conversation.id, outsider)

        assert result.is_denied
        assert result.error_code == "NOT_PARTICIPANT"
        assert not UnreadCounter.objects.filter(user=outsider).exists()

    def test_missing_conversation_is_not_found(self, alice):
        result = ReadStateService.mark_read(999999, alice)

        assert result.is_not_found
        assert result.error_code == "CONVERSATION_NOT_FOUND"

    def test_last_seen_from_other_conversation_is_not_found(
        self, direct_conversation, group_conversation, alice, bob
    ):
        foreign = MessageService.send(group_conversation.id, alice, "elsewhere").data

        result = ReadStateService.mark_read(
            direct_conversation.id, bob, last_seen_message_id=foreign.id
        )

        assert result.is_not_found
        assert result.error_code == "MESSAGE_NOT_FOUND"
        assert not UnreadCounter.objects.filter(
            user=bob, conversation=direct_conversation
        ).exists()

    def test_broadcasts_reader_id(
        self, direct_conversation, bob, sent_events, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True):
            ReadStateService.mark_read(direct_conversation.id, bob)

        assert sent_events == [
            (direct_conversation.id, ChangeEvent.READ_UPDATED, [bob.id])
        ]


class TestGetUnreadCount:
    def test_zero_without_counter(self, direct_conversation, bob):
        assert ReadStateService.get_unread_count(direct_conversation, bob) == 0
