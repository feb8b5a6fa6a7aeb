"""
Tests for reaction toggling.

Reactions are stored one row per (message, user, emoji). A toggle only ever
inserts or deletes the caller's own row, so concurrent toggles by different
users never overwrite each other.
"""

import pytest

from chat.broadcast import ChangeEvent
from chat.models import MessageReaction
from chat.services import MessageService
from chat.tests.factories import MessageReactionFactory
from core.services import FailureKind


@pytest.fixture
def message(direct_conversation, alice):
    return MessageService.send(direct_conversation.id, alice, "react to me").data


class TestToggleReaction:
    def test_toggle_adds_then_removes(self, message, alice):
        """
        Toggling an absent reaction adds it; toggling again removes it.

        Why it matters: A toggle must be its own inverse so double taps
        leave no trace.
        """
        added, reactions = MessageService.toggle_reaction(message.id, alice, "👍").data
        assert added is True
        assert reactions == {"👍": [alice.id]}

        added, reactions = MessageService.toggle_reaction(message.id, alice, "👍").data
        assert added is False
        assert "👍" not in reactions
        assert not MessageReaction.objects.filter(message=message).exists()

    def test_toggles_by_different_users_accumulate(self, message, alice, bob):
        MessageService.toggle_reaction(message.id, alice, "👍")
        _, reactions = MessageService.toggle_reaction(message.id, bob, "👍").data

        assert reactions == {"👍": [alice.id, bob.id]}

    def test_removing_own_reaction_keeps_others(self, message, alice, bob):
        """
        Why it matters: A toggle written as read-modify-write of the whole
        bucket would drop another user's concurrent reaction.
        """
        MessageReactionFactory(message=message, user=bob, emoji="👍")
        MessageService.toggle_reaction(message.id, alice, "👍")

        _, reactions = MessageService.toggle_reaction(message.id, alice, "👍").data

        assert reactions == {"👍": [bob.id]}

    def test_different_emojis_are_independent(self, message, alice):
        MessageService.toggle_reaction(message.id, alice, "👍")
        _, reactions = MessageService.toggle_reaction(message.id, alice, "🎉").data

        assert reactions == {"👍": [alice.id], "🎉": [alice.id]}

    def test_emoji_is_stripped(self, message, alice):
        _, reactions = MessageService.toggle_reaction(message.id, alice, " 👍 ").data

        assert reactions == {"👍": [alice.id]}

    @pytest.mark.parametrize("emoji", ["", "   ", "x" * 33])
    def test_invalid_emoji_is_rejected(self, message, alice, emoji):
        result = MessageService.toggle_reaction(message.id, alice, emoji)

        assert result.kind == FailureKind.INVALID
        assert result.error_code == "INVALID_EMOJI"

    def test_zwj_sequence_is_accepted(self, message, alice):
        # kiss with two skin tones: ten code points
        emoji = "\U0001F469\U0001F3FB\u200d\u2764\ufe0f\u200d\U0001F48B\u200d\U0001F468\U0001F3FF"

        result = MessageService.toggle_reaction(message.id, alice, emoji)

        assert result.success is True
        assert result.data[1] == {emoji: [alice.id]}

    def test_missing_message_is_not_found(self, alice):
        result = MessageService.toggle_reaction(999999, alice, "👍")

        assert result.is_not_found
        assert result.error_code == "MESSAGE_NOT_FOUND"

    def test_deleted_message_cannot_be_reacted_to(self, message, alice, bob):
        MessageService.delete(message.id, alice)

        result = MessageService.toggle_reaction(message.id, bob, "👍")

        assert result.is_invalid
        assert result.error_code == "MESSAGE_DELETED"

    def test_non_participant_is_denied(self, message, outsider):
        result = MessageService.toggle_reaction(message.id, outsider, "👍")

        assert result.is_denied
        assert result.error_code == "NOT_PARTICIPANT"
        assert not MessageReaction.objects.exists()

    def test_toggle_broadcasts_message_id(
        self, message, bob, sent_events, django_capture_on_commit_callbacks
    ):
        with django_capture_on_commit_callbacks(execute=True):
            MessageService.toggle_reaction(message.id, bob, "👍")

        assert sent_events == [
            (message.conversation_id, ChangeEvent.REACTION_TOGGLED, [message.id])
        ]
