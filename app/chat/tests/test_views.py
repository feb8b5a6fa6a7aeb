"""
Tests for chat REST API endpoints.

Covers:
- Authentication and participant checks on every endpoint
- Mapping of service failures to HTTP status codes
- Deleted-message masking in payloads
"""

import pytest
from django.db import connection
from django.test.utils import CaptureQueriesContext

from chat.models import Message
from chat.services import MessageService, ReadStateService
from chat.tests.factories import GroupConversationFactory

BASE = "/api/v1/chat/conversations/"


def messages_url(conversation_id):
    return f"{BASE}{conversation_id}/messages/"


def message_url(conversation_id, message_id, suffix=""):
    return f"{BASE}{conversation_id}/messages/{message_id}/{suffix}"


# =============================================================================
# Conversations
# =============================================================================


class TestConversationList:
    def test_requires_authentication(self, api_client):
        response = api_client.get(BASE)

        assert response.status_code == 401

    def test_lists_own_conversations_with_unread_count(
        self, direct_conversation, alice, bob_client, outsider_client
    ):
        MessageService.send(direct_conversation.id, alice, "hi")

        response = bob_client.get(BASE)

        assert response.status_code == 200
        data = response.json()
        assert len(data) == 1
        assert data[0]["id"] == direct_conversation.id
        assert data[0]["unread_count"] == 1
        assert data[0]["last_message"]["content"] == "hi"
        assert data[0]["display_name"] == "Alice Adams"

        assert outsider_client.get(BASE).json() == []

    def test_query_count_does_not_grow_with_conversations(
        self, direct_conversation, alice, bob, bob_client
    ):
        """
        Why it matters: Display names read participants from the prefetch,
        not with a query per conversation.
        """
        with CaptureQueriesContext(connection) as single:
            bob_client.get(BASE)

        for _ in range(3):
            GroupConversationFactory(created_by=alice, name="", members=[bob])

        with CaptureQueriesContext(connection) as several:
            response = bob_client.get(BASE)

        assert len(response.json()) == 4
        assert len(several.captured_queries) == len(single.captured_queries)


class TestConversationCreate:
    def test_creates_direct_conversation(self, alice, bob, alice_client):
        response = alice_client.post(BASE, {"participant_ids": [bob.id]}, format="json")

        assert response.status_code == 201
        assert response.json()["participant_ids"] == [alice.id, bob.id]
        assert response.json()["is_group"] is False

    def test_unknown_participant_returns_404(self, alice_client):
        response = alice_client.post(BASE, {"participant_ids": [999999]}, format="json")

        assert response.status_code == 404
        assert response.json()["error_code"] == "USER_NOT_FOUND"

    def test_self_only_returns_400(self, alice, alice_client):
        response = alice_client.post(BASE, {"participant_ids": [alice.id]}, format="json")

        assert response.status_code == 400
        assert response.json()["kind"] == "invalid"

    def test_empty_participants_fail_validation(self, alice_client):
        response = alice_client.post(BASE, {"participant_ids": []}, format="json")

        assert response.status_code == 400


class TestConversationRetrieve:
    def test_participant_can_retrieve(self, direct_conversation, alice_client):
        response = alice_client.get(f"{BASE}{direct_conversation.id}/")

        assert response.status_code == 200
        assert response.json()["unread_count"] == 0

    def test_non_participant_is_forbidden(self, direct_conversation, outsider_client):
        response = outsider_client.get(f"{BASE}{direct_conversation.id}/")

        assert response.status_code == 403

    def test_missing_conversation_returns_404(self, alice_client):
        assert alice_client.get(f"{BASE}999999/").status_code == 404


class TestMarkRead:
    def test_resets_unread(self, direct_conversation, alice, bob, bob_client):
        MessageService.send(direct_conversation.id, alice, "hi")

        response = bob_client.post(f"{BASE}{direct_conversation.id}/read/", {}, format="json")

        assert response.status_code == 200
        assert response.json()["unread_count"] == 0
        assert ReadStateService.get_unread_count(direct_conversation, bob) == 0

    def test_unknown_last_seen_returns_404(self, direct_conversation, bob_client):
        response = bob_client.post(
            f"{BASE}{direct_conversation.id}/read/",
            {"last_seen_message_id": 999999},
            format="json",
        )

        assert response.status_code == 404
        assert response.json()["error_code"] == "MESSAGE_NOT_FOUND"

    def test_non_participant_is_forbidden(self, direct_conversation, outsider_client):
        response = outsider_client.post(f"{BASE}{direct_conversation.id}/read/", {})

        assert response.status_code == 403


class TestTyping:
    def test_set_and_get_typing(self, direct_conversation, alice, alice_client, bob_client):
        response = alice_client.post(
            f"{BASE}{direct_conversation.id}/typing/", {"is_typing": True}, format="json"
        )
        assert response.status_code == 200
        assert response.json() == {"user_ids": [alice.id]}

        response = bob_client.get(f"{BASE}{direct_conversation.id}/typing/")
        assert response.json() == {"user_ids": [alice.id]}

    def test_non_participant_is_forbidden(self, direct_conversation, outsider_client):
        response = outsider_client.post(
            f"{BASE}{direct_conversation.id}/typing/", {"is_typing": True}, format="json"
        )

        assert response.status_code == 403


# =============================================================================
# Messages
# =============================================================================


class TestMessageList:
    def test_lists_messages_oldest_first_with_masking(
        self, direct_conversation, alice, bob, bob_client, alice_client
    ):
        """
        Why it matters: Deleted text is hidden from everyone but its sender.
        """
        first = MessageService.send(direct_conversation.id, alice, "secret").data
        MessageService.send(direct_conversation.id, bob, "reply")
        MessageService.delete(first.id, alice)

        response = bob_client.get(messages_url(direct_conversation.id))

        assert response.status_code == 200
        results = response.json()["results"]
        assert [m["content"] for m in results] == ["[Message deleted]", "reply"]
        assert results[0]["is_deleted"] is True

        own_view = alice_client.get(messages_url(direct_conversation.id)).json()
        assert own_view["results"][0]["content"] == "secret"

    def test_non_participant_is_forbidden(self, direct_conversation, outsider_client):
        response = outsider_client.get(messages_url(direct_conversation.id))

        assert response.status_code == 403

    def test_missing_conversation_returns_404(self, alice_client):
        assert alice_client.get(messages_url(999999)).status_code == 404


class TestMessageCreate:
    def test_sends_message(self, direct_conversation, alice, bob, alice_client):
        response = alice_client.post(
            messages_url(direct_conversation.id), {"content": "hello"}, format="json"
        )

        assert response.status_code == 201
        body = response.json()
        assert body["content"] == "hello"
        assert body["sender"]["id"] == alice.id
        assert body["reactions"] == {}
        assert ReadStateService.get_unread_count(direct_conversation, bob) == 1

    def test_reply(self, direct_conversation, alice, bob_client):
        first = MessageService.send(direct_conversation.id, alice, "q").data

        response = bob_client.post(
            messages_url(direct_conversation.id),
            {"content": "a", "reply_to_id": first.id},
            format="json",
        )

        assert response.status_code == 201
        assert response.json()["reply_to_id"] == first.id

    @pytest.mark.parametrize(
        "content, error_code",
        [("   ", "EMPTY_CONTENT"), ("x" * 10001, "CONTENT_TOO_LONG")],
    )
    def test_invalid_content_returns_400(
        self, direct_conversation, alice_client, content, error_code
    ):
        response = alice_client.post(
            messages_url(direct_conversation.id), {"content": content}, format="json"
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == error_code

    def test_non_participant_is_forbidden(self, direct_conversation, outsider_client):
        response = outsider_client.post(
            messages_url(direct_conversation.id), {"content": "hi"}, format="json"
        )

        assert response.status_code == 403
        assert not Message.objects.exists()


class TestMessageDelete:
    def test_sender_deletes(self, direct_conversation, alice, alice_client):
        message = MessageService.send(direct_conversation.id, alice, "x").data

        response = alice_client.delete(message_url(direct_conversation.id, message.id))

        assert response.status_code == 204
        message.refresh_from_db()
        assert message.is_deleted

    def test_other_participant_is_forbidden(self, direct_conversation, alice, bob_client):
        message = MessageService.send(direct_conversation.id, alice, "x").data

        response = bob_client.delete(message_url(direct_conversation.id, message.id))

        assert response.status_code == 403
        assert response.json()["error_code"] == "NOT_AUTHOR"

    def test_message_from_other_conversation_returns_404(
        self, direct_conversation, group_conversation, alice, alice_client
    ):
        foreign = MessageService.send(group_conversation.id, alice, "x").data

        response = alice_client.delete(message_url(direct_conversation.id, foreign.id))

        assert response.status_code == 404


class TestMessageEdit:
    def test_sender_edits(self, direct_conversation, alice, alice_client):
        message = MessageService.send(direct_conversation.id, alice, "helo").data

        response = alice_client.patch(
            message_url(direct_conversation.id, message.id, "edit/"),
            {"content": "hello"},
            format="json",
        )

        assert response.status_code == 200
        assert response.json()["content"] == "hello"
        assert response.json()["edited_at"] is not None

    def test_deleted_message_returns_400(self, direct_conversation, alice, alice_client):
        message = MessageService.send(direct_conversation.id, alice, "x").data
        MessageService.delete(message.id, alice)

        response = alice_client.patch(
            message_url(direct_conversation.id, message.id, "edit/"),
            {"content": "y"},
            format="json",
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "MESSAGE_DELETED"


class TestToggleReaction:
    def test_toggle_on_and_off(self, direct_conversation, alice, bob, bob_client):
        message = MessageService.send(direct_conversation.id, alice, "x").data
        url = message_url(direct_conversation.id, message.id, "reactions/toggle/")

        response = bob_client.post(url, {"emoji": "👍"}, format="json")
        assert response.status_code == 200
        assert response.json() == {"added": True, "reactions": {"👍": [bob.id]}}

        response = bob_client.post(url, {"emoji": "👍"}, format="json")
        assert response.json() == {"added": False, "reactions": {}}

    def test_invalid_emoji_returns_400(self, direct_conversation, alice, bob_client):
        message = MessageService.send(direct_conversation.id, alice, "x").data

        response = bob_client.post(
            message_url(direct_conversation.id, message.id, "reactions/toggle/"),
            {"emoji": ""},
            format="json",
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_EMOJI"

    def test_non_participant_is_forbidden(
        self, direct_conversation, alice, outsider_client
    ):
        message = MessageService.send(direct_conversation.id, alice, "x").data

        response = outsider_client.post(
            message_url(direct_conversation.id, message.id, "reactions/toggle/"),
            {"emoji": "👍"},
            format="json",
        )

        assert response.status_code == 403
