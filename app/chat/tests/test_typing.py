"""
Tests for typing indicators.

A typing flag lapses a few seconds after it was last set so a client that
disconnects mid-sentence does not leave a stale indicator.
"""

from datetime import timedelta

from django.utils import timezone
from freezegun import freeze_time

from chat.broadcast import ChangeEvent
from chat.models import TypingState
from chat.services import TypingService
from chat.tests.factories import TypingStateFactory


class TestSetTyping:
    def test_set_then_clear(self, direct_conversation, alice):
        TypingService.set_typing(direct_conversation.id, alice, True)
        assert TypingService.get_typing(direct_conversation.id).data == [alice.id]

        TypingService.set_typing(direct_conversation.id, alice, False)
        assert TypingService.get_typing(direct_conversation.id).data == []

    def test_one_row_per_user_and_conversation(self, direct_conversation, alice):
        """
        Why it matters: Repeated keystroke pings must update one row, not
        accumulate rows.
        """
        for _ in range(3):
            TypingService.set_typing(direct_conversation.id, alice, True)

        assert TypingState.objects.filter(user=alice).count() == 1

    def test_flag_expires_without_refresh(self, direct_conversation, alice):
        with freeze_time("2026-01-01 12:00:00"):
            TypingService.set_typing(direct_conversation.id, alice, True)

        with freeze_time("2026-01-01 12:00:04"):
            assert TypingService.get_typing(direct_conversation.id).data == [alice.id]

        with freeze_time("2026-01-01 12:00:06"):
            assert TypingService.get_typing(direct_conversation.id).data == []

    def test_refresh_extends_expiry(self, direct_conversation, alice):
        with freeze_time("2026-01-01 12:00:00"):
            TypingService.set_typing(direct_conversation.id, alice, True)
        with freeze_time("2026-01-01 12:00:04"):
            TypingService.set_typing(direct_conversation.id, alice, True)

        with freeze_time("2026-01-01 12:00:08"):
            assert TypingService.get_typing(direct_conversation.id).data == [alice.id]

    def test_typing_is_scoped_to_conversation(
        self, direct_conversation, group_conversation, alice
    ):
        TypingService.set_typing(group_conversation.id, alice, True)

        assert TypingService.get_typing(direct_conversation.id).data == []

    def test_non_participant_is_denied(self, direct_conversation, outsider):
        result = TypingService.set_typing(direct_conversation.id, outsider, True)

        assert result.is_denied
        assert result.error_code == "NOT_PARTICIPANT"
        assert not TypingState.objects.exists()

    def test_missing_conversation_is_not_found(self, alice):
        assert TypingService.set_typing(999999, alice, True).is_not_found
        assert TypingService.get_typing(999999).is_not_found

    def test_broadcasts_only_when_state_flips(
        self, direct_conversation, alice, sent_events, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True):
            TypingService.set_typing(direct_conversation.id, alice, True)
            TypingService.set_typing(direct_conversation.id, alice, True)
            TypingService.set_typing(direct_conversation.id, alice, False)

        assert sent_events == [
            (direct_conversation.id, ChangeEvent.TYPING_UPDATED, [alice.id]),
            (direct_conversation.id, ChangeEvent.TYPING_UPDATED, [alice.id]),
        ]


class TestPurgeExpired:
    def test_deletes_cleared_and_expired_rows_only(self, direct_conversation, alice, bob):
        TypingStateFactory(
            user=alice,
            conversation=direct_conversation,
            expires_at=timezone.now() - timedelta(seconds=1),
        )
        active = TypingStateFactory(
            user=bob,
            conversation=direct_conversation,
            expires_at=timezone.now() + timedelta(seconds=5),
        )
        TypingStateFactory(
            conversation=direct_conversation, is_typing=False, expires_at=None
        )

        deleted = TypingService.purge_expired()

        assert deleted == 2
        assert list(TypingState.objects.all()) == [active]
