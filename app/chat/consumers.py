"""
WebSocket consumers for the chat application.

Consumers:
    ConversationConsumer: Streams change events of one conversation

Authentication:
    Users are authenticated via JWT token passed as query parameter.
    JWTAuthMiddleware attaches the user to self.scope["user"].

Channel Groups:
    Each conversation has a channel group named "conversation_{id}"
    (see chat.broadcast). Connected participants join the group and receive
    a ``conversation.changed`` event after every committed mutation.

Message Types (from client):
    - typing: Set or clear the caller's typing flag
    - read: Mark the conversation as read

Message Types (to client):
    - conversation.changed: Something changed; re-issue queries
    - error: Error response

Close codes:
    4001: Not authenticated
    4003: Not a participant
    4004: Conversation not found
"""

from __future__ import annotations

import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer

from chat.broadcast import conversation_group_name
from chat.models import Conversation, Participant
from chat.services import ReadStateService, TypingService

logger = logging.getLogger(__name__)


class ConversationConsumer(AsyncJsonWebsocketConsumer):
    """
    WebSocket consumer for live conversation updates.

    Attributes:
        conversation_id: Id of the connected conversation
        room_group_name: Channel layer group name for the conversation
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.conversation_id: int | None = None
        self.room_group_name: str | None = None

    async def connect(self):
        """
        Handle WebSocket connection.

        Validates:
            1. User is authenticated
            2. Conversation exists
            3. User is a participant in the conversation

        On success, joins the channel group and accepts the connection.
        """
        self.conversation_id = self.scope["url_route"]["kwargs"]["conversation_id"]

        user = self.scope.get("user")

        if user is None or not user.is_authenticated:
            logger.warning(
                f"Rejected unauthenticated connection to conversation {self.conversation_id}"
            )
            await self.close(code=4001)
            return

        if not await self._conversation_exists():
            logger.warning(
                f"User {user.id} tried to connect to non-existent "
                f"conversation {self.conversation_id}"
            )
            await self.close(code=4004)
            return

        if not await self._is_user_participant(user):
            logger.warning(
                f"User {user.id} is not a participant in "
                f"conversation {self.conversation_id}"
            )
            await self.close(code=4003)
            return

        self.room_group_name = conversation_group_name(self.conversation_id)
        await self.channel_layer.group_add(self.room_group_name, self.channel_name)

        await self.accept()
        logger.info(f"User {user.id} connected to conversation {self.conversation_id}")

    async def disconnect(self, close_code):
        """Leave the channel group if one was joined."""
        if self.room_group_name:
            await self.channel_layer.group_discard(
                self.room_group_name,
                self.channel_name,
            )
            logger.info(
                f"User {self.scope['user'].id} disconnected from "
                f"conversation {self.conversation_id}"
            )

    async def receive_json(self, content):
        """
        Handle incoming WebSocket messages.

        Expected message format:
            {"type": "typing", "is_typing": true}
            {"type": "read", "last_seen_message_id": 42}

        Malformed fields are answered with an error frame; the connection
        stays open.
        """
        message_type = content.get("type")
        user = self.scope["user"]

        if message_type == "typing":
            is_typing = content.get("is_typing", False)
            if not isinstance(is_typing, bool):
                await self._send_error("is_typing must be a boolean", "INVALID_PAYLOAD")
                return
            result = await self._set_typing(user, is_typing)
        elif message_type == "read":
            last_seen_message_id = content.get("last_seen_message_id")
            # bool is an int subclass
            if last_seen_message_id is not None and (
                not isinstance(last_seen_message_id, int)
                or isinstance(last_seen_message_id, bool)
            ):
                await self._send_error(
                    "last_seen_message_id must be an integer or null",
                    "INVALID_PAYLOAD",
                )
                return
            result = await self._mark_read(user, last_seen_message_id)
        else:
            await self._send_error(f"Unknown message type: {message_type}")
            return

        if not result.success:
            await self._send_error(result.error, result.error_code)

    async def _send_error(self, message, error_code=None):
        frame = {"type": "error", "message": message}
        if error_code is not None:
            frame["error_code"] = error_code
        await self.send_json(frame)

    async def conversation_changed(self, event):
        """Forward conversation.changed events from the channel layer."""
        await self.send_json(
            {
                "type": "conversation.changed",
                "conversation_id": event["conversation_id"],
                "event": event["event"],
                "ids": event["ids"],
            }
        )

    @database_sync_to_async
    def _conversation_exists(self) -> bool:
        return Conversation.objects.filter(id=self.conversation_id).exists()

    @database_sync_to_async
    def _is_user_participant(self, user) -> bool:
        return Participant.objects.filter(
            conversation_id=self.conversation_id, user=user
        ).exists()

    @database_sync_to_async
    def _set_typing(self, user, is_typing: bool):
        return TypingService.set_typing(self.conversation_id, user, is_typing)

    @database_sync_to_async
    def _mark_read(self, user, last_seen_message_id):
        return ReadStateService.mark_read(
            self.conversation_id, user, last_seen_message_id=last_seen_message_id
        )
