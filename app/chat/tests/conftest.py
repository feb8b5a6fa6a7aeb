"""
Test configuration and fixtures for chat tests.

This module provides:
- User fixtures for the two sides of a direct conversation and an outsider
- Conversation fixtures (direct and group)
- API client helpers for authenticated requests
- Helpers to capture live-update broadcasts

Usage:
    def test_example(direct_conversation, alice_client):
        response = alice_client.get(
            f"/api/v1/chat/conversations/{direct_conversation.id}/"
        )
        assert response.status_code == 200
"""

import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.tests.factories import UserFactory
from chat.tests.factories import DirectConversationFactory, GroupConversationFactory


def _client_for(user):
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f"Bearer {refresh.access_token}")
    return client


# =============================================================================
# User Fixtures
# =============================================================================


@pytest.fixture
def alice(db):
    return UserFactory(name="Alice Adams")


@pytest.fixture
def bob(db):
    return UserFactory(name="Bob Brown")


@pytest.fixture
def carol(db):
    return UserFactory(name="Carol Clark")


@pytest.fixture
def outsider(db):
    """A user who is not a participant in any test conversation."""
    return UserFactory(name="Oscar Outside")


# =============================================================================
# Conversation Fixtures
# =============================================================================


@pytest.fixture
def direct_conversation(alice, bob):
    """Direct conversation with participants [alice, bob]."""
    return DirectConversationFactory(user1=alice, user2=bob)


@pytest.fixture
def group_conversation(alice, bob, carol):
    """Group conversation created by alice with bob and carol."""
    return GroupConversationFactory(
        created_by=alice, name="Team", members=[bob, carol]
    )


# =============================================================================
# API Client Fixtures
# =============================================================================


@pytest.fixture
def api_client():
    """Unauthenticated API client."""
    return APIClient()


@pytest.fixture
def alice_client(alice):
    return _client_for(alice)


@pytest.fixture
def bob_client(bob):
    return _client_for(bob)


@pytest.fixture
def outsider_client(outsider):
    return _client_for(outsider)


# =============================================================================
# Broadcast Fixtures
# =============================================================================


@pytest.fixture
def sent_events(mocker):
    """
    Record live-update events instead of sending them to the channel layer.

    Events are only recorded once their transaction commits; wrap the code
    under test in ``django_capture_on_commit_callbacks(execute=True)``.
    Each entry is a (conversation_id, event, ids) tuple.
    """
    events = []
    mocker.patch(
        "chat.broadcast._send",
        side_effect=lambda conversation_id, event, ids: events.append(
            (conversation_id, event, ids)
        ),
    )
    return events
