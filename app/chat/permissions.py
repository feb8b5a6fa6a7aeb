"""
Permission classes for chat API.

This module provides DRF permission classes for the chat system:
- IsConversationParticipant: User belongs to the conversation

Design Decisions:
    - Permissions check against the Participant model, not User
    - Nested routes resolve the conversation from the ``conversation_pk``
      URL kwarg, so membership is enforced before any service call
    - A missing conversation passes the permission; the view then answers 404
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from rest_framework import permissions

from chat.models import Conversation, Message, Participant

if TYPE_CHECKING:
    from rest_framework.request import Request
    from rest_framework.views import APIView


class IsConversationParticipant(permissions.BasePermission):
    """
    Allows access only to participants of the conversation.

    This is the base permission for every conversation-scoped endpoint.
    """

    message = "You are not a participant in this conversation."

    def has_permission(self, request: Request, view: APIView) -> bool:
        """Check membership for nested routes (conversation in the URL)."""
        if not request.user.is_authenticated:
            return False

        conversation_pk = view.kwargs.get("conversation_pk")
        if conversation_pk is None:
            return True

        if not Conversation.objects.filter(pk=conversation_pk).exists():
            return True

        return Participant.objects.filter(
            conversation_id=conversation_pk, user=request.user
        ).exists()

    def has_object_permission(
        self, request: Request, view: APIView, obj: Conversation | Message
    ) -> bool:
        """Check membership for the conversation owning ``obj``."""
        if not request.user.is_authenticated:
            return False

        conversation_id = obj.conversation_id if isinstance(obj, Message) else obj.pk

        return Participant.objects.filter(
            conversation_id=conversation_id, user=request.user
        ).exists()
