"""
Live update broadcasting for conversations.

After a mutation commits, every WebSocket client subscribed to the
conversation receives a ``conversation.changed`` event naming what changed.
Clients react by re-issuing their queries (message list, unread count,
typing users), so the event carries ids only, never content.

Channel Groups:
    Each conversation has a channel group named "conversation_{id}".

Event payload (to channel layer):
    {
        "type": "conversation.changed",
        "conversation_id": 12,
        "event": "message.created",
        "ids": [345],
    }

Events:
    message.created, message.deleted, message.edited, reaction.toggled,
    read.updated, typing.updated

Usage:
    from chat.broadcast import broadcast_change

    broadcast_change(conversation.id, "message.created", [message.id])
"""

from __future__ import annotations

import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction

from chat.constants import BROADCAST_CONFIG

logger = logging.getLogger(__name__)


class ChangeEvent:
    """Names of conversation change events."""

    MESSAGE_CREATED = "message.created"
    MESSAGE_DELETED = "message.deleted"
    MESSAGE_EDITED = "message.edited"
    REACTION_TOGGLED = "reaction.toggled"
    READ_UPDATED = "read.updated"
    TYPING_UPDATED = "typing.updated"


def conversation_group_name(conversation_id: int) -> str:
    """Channel layer group for a conversation."""
    return f"{BROADCAST_CONFIG.GROUP_PREFIX}_{conversation_id}"


def _send(conversation_id: int, event: str, ids: list) -> None:
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return

    async_to_sync(channel_layer.group_send)(
        conversation_group_name(conversation_id),
        {
            "type": BROADCAST_CONFIG.EVENT_TYPE,
            "conversation_id": conversation_id,
            "event": event,
            "ids": ids,
        },
    )
    logger.debug(f"Broadcast {event} {ids} to conversation {conversation_id}")


def broadcast_change(conversation_id: int, event: str, ids: list | None = None) -> None:
    """
    Notify subscribers of a conversation once the current transaction commits.

    Outside a transaction the event is sent immediately. A rolled-back
    transaction sends nothing.
    """
    ids = list(ids or [])
    transaction.on_commit(lambda: _send(conversation_id, event, ids))
