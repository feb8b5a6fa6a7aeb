"""
ViewSets for chat API.

This module provides REST API endpoints for the chat system:
- ConversationViewSet: Conversation listing, creation and per-user actions
- MessageViewSet: Message operations (nested under conversation)

URL Structure:
    /api/v1/chat/conversations/                                    GET, POST
    /api/v1/chat/conversations/{id}/                               GET
    /api/v1/chat/conversations/{id}/read/                          POST
    /api/v1/chat/conversations/{id}/typing/                        GET, POST
    /api/v1/chat/conversations/{id}/messages/                      GET, POST
    /api/v1/chat/conversations/{id}/messages/{pk}/                 DELETE
    /api/v1/chat/conversations/{id}/messages/{pk}/edit/            PATCH
    /api/v1/chat/conversations/{id}/messages/{pk}/reactions/toggle/ POST

Design Decisions:
    - All operations use service layer for business logic
    - Membership is enforced by IsConversationParticipant before services run
    - Service failures map to HTTP status through ServiceResult.http_status
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiResponse, extend_schema, extend_schema_view
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from core.services import ServiceResult

from chat.models import Conversation, Message
from chat.pagination import MessageCursorPagination
from chat.permissions import IsConversationParticipant
from chat.serializers import (
    ConversationCreateSerializer,
    ConversationSerializer,
    MarkReadSerializer,
    MessageCreateSerializer,
    MessageEditSerializer,
    MessageSerializer,
    ReactionToggleResponseSerializer,
    ReactionToggleSerializer,
    ReadStateSerializer,
    TypingListSerializer,
    TypingSetSerializer,
)
from chat.services import (
    ConversationService,
    MessageService,
    ReadStateService,
    TypingService,
)


def _failure_response(result: ServiceResult) -> Response:
    return Response(result.to_response(), status=result.http_status)


@extend_schema_view(
    list=extend_schema(
        operation_id="list_conversations",
        summary="List conversations",
        tags=["Chat - Conversations"],
    ),
    create=extend_schema(
        operation_id="create_conversation",
        summary="Create conversation",
        request=ConversationCreateSerializer,
        responses={
            201: ConversationSerializer,
            400: OpenApiResponse(description="Invalid participants"),
            404: OpenApiResponse(description="Participant not found"),
        },
        tags=["Chat - Conversations"],
    ),
    retrieve=extend_schema(
        operation_id="get_conversation",
        summary="Get conversation",
        tags=["Chat - Conversations"],
    ),
)
class ConversationViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    ViewSet for conversation operations.

    list:
        Conversations of the current user, most recently active first,
        with unread counts and last message preview.

    create:
        Create a conversation with the caller as first participant.
        A direct conversation that already exists for the pair is returned.

    retrieve:
        Get a conversation the caller participates in.

    read:
        Mark the conversation as read up to an optional message.

    typing:
        GET lists users currently typing; POST sets the caller's flag.
    """

    permission_classes = [IsAuthenticated, IsConversationParticipant]
    serializer_class = ConversationSerializer

    def get_queryset(self):
        if self.action == "list":
            return ConversationService.list_for_user(self.request.user)
        return Conversation.objects.select_related("last_message").prefetch_related(
            "participants__user"
        )

    def get_serializer_class(self):
        if self.action == "create":
            return ConversationCreateSerializer
        return ConversationSerializer

    def create(self, request):
        """Create a conversation (direct or group)."""
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = ConversationService.create_conversation(
            creator=request.user,
            participant_ids=data["participant_ids"],
            name=data.get("name", ""),
            is_group=data.get("is_group"),
        )
        if not result.success:
            return _failure_response(result)

        output_serializer = ConversationSerializer(
            result.data, context={"request": request}
        )
        return Response(output_serializer.data, status=status.HTTP_201_CREATED)

    @extend_schema(
        operation_id="mark_conversation_read",
        summary="Mark conversation as read",
        request=MarkReadSerializer,
        responses={
            200: ReadStateSerializer,
            403: OpenApiResponse(description="Not a participant in this conversation"),
            404: OpenApiResponse(description="Conversation or message not found"),
        },
        tags=["Chat - Conversations"],
    )
    @action(detail=True, methods=["post"])
    def read(self, request, pk=None):
        """Mark conversation as read."""
        conversation = self.get_object()

        serializer = MarkReadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = ReadStateService.mark_read(
            conversation.id,
            request.user,
            last_seen_message_id=serializer.validated_data.get("last_seen_message_id"),
        )
        if not result.success:
            return _failure_response(result)

        return Response(ReadStateSerializer(result.data).data)

    @extend_schema(
        operation_id="conversation_typing",
        summary="Get or set typing state",
        description=(
            "GET returns the users currently typing in this conversation. "
            "POST sets or clears the caller's typing flag; a set flag lapses "
            "after a few seconds unless refreshed."
        ),
        request=TypingSetSerializer,
        responses={
            200: TypingListSerializer,
            403: OpenApiResponse(description="Not a participant in this conversation"),
        },
        tags=["Chat - Typing"],
    )
    @action(detail=True, methods=["get", "post"])
    def typing(self, request, pk=None):
        """Get or set typing indicators."""
        conversation = self.get_object()

        if request.method == "POST":
            serializer = TypingSetSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            result = TypingService.set_typing(
                conversation.id, request.user, serializer.validated_data["is_typing"]
            )
            if not result.success:
                return _failure_response(result)

        result = TypingService.get_typing(conversation.id)
        if not result.success:
            return _failure_response(result)

        return Response(TypingListSerializer({"user_ids": result.data}).data)


@extend_schema_view(
    list=extend_schema(
        operation_id="list_messages",
        summary="List messages",
        tags=["Chat - Messages"],
    ),
    create=extend_schema(
        operation_id="send_message",
        summary="Send message",
        request=MessageCreateSerializer,
        responses={
            201: MessageSerializer,
            400: OpenApiResponse(description="Empty or too long content, bad reply"),
            403: OpenApiResponse(description="Not a participant in this conversation"),
            404: OpenApiResponse(description="Conversation not found"),
        },
        tags=["Chat - Messages"],
    ),
    destroy=extend_schema(
        operation_id="delete_message",
        summary="Delete message",
        tags=["Chat - Messages"],
    ),
)
class MessageViewSet(viewsets.GenericViewSet):
    """
    ViewSet for message operations within a conversation.

    list:
        Get all messages in the conversation, oldest first.
        Includes soft-deleted messages (content replaced with placeholder).

    create:
        Send a message to the conversation, optionally replying to another.

    destroy:
        Soft delete a message. Users can only delete their own messages.
    """

    permission_classes = [IsAuthenticated, IsConversationParticipant]
    pagination_class = MessageCursorPagination
    serializer_class = MessageSerializer

    def get_queryset(self):
        return Message.objects.filter(conversation_id=self.kwargs.get("conversation_pk"))

    def _message_missing(self, pk) -> Response | None:
        """404 unless the message belongs to the conversation in the URL."""
        if self.get_queryset().filter(pk=pk).exists():
            return None
        return Response(
            {"error": "Message not found", "error_code": "MESSAGE_NOT_FOUND"},
            status=status.HTTP_404_NOT_FOUND,
        )

    def list(self, request, conversation_pk=None):
        """Get messages in order."""
        result = MessageService.list_messages(conversation_pk)
        if not result.success:
            return _failure_response(result)

        page = self.paginate_queryset(result.data)
        if page is not None:
            serializer = MessageSerializer(page, many=True, context={"request": request})
            return self.get_paginated_response(serializer.data)

        serializer = MessageSerializer(
            result.data, many=True, context={"request": request}
        )
        return Response(serializer.data)

    def create(self, request, conversation_pk=None):
        """Send a message."""
        serializer = MessageCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = MessageService.send(
            conversation_pk,
            request.user,
            serializer.validated_data["content"],
            reply_to_id=serializer.validated_data.get("reply_to_id"),
        )
        if not result.success:
            return _failure_response(result)

        output_serializer = MessageSerializer(result.data, context={"request": request})
        return Response(output_serializer.data, status=status.HTTP_201_CREATED)

    def destroy(self, request, conversation_pk=None, pk=None):
        """Soft delete a message."""
        missing = self._message_missing(pk)
        if missing is not None:
            return missing

        result = MessageService.delete(pk, request.user)
        if not result.success:
            return _failure_response(result)

        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(
        operation_id="edit_message",
        summary="Edit message",
        request=MessageEditSerializer,
        responses={
            200: MessageSerializer,
            400: OpenApiResponse(description="Deleted message or invalid content"),
            403: OpenApiResponse(description="Cannot edit messages from other users"),
            404: OpenApiResponse(description="Message not found"),
        },
        tags=["Chat - Messages"],
    )
    @action(detail=True, methods=["patch"])
    def edit(self, request, conversation_pk=None, pk=None):
        """
        Edit the content of a message you sent.

        PATCH /api/v1/chat/conversations/{conversation_id}/messages/{id}/edit/
        """
        missing = self._message_missing(pk)
        if missing is not None:
            return missing

        serializer = MessageEditSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = MessageService.edit(pk, request.user, serializer.validated_data["content"])
        if not result.success:
            return _failure_response(result)

        return Response(MessageSerializer(result.data, context={"request": request}).data)

    @extend_schema(
        operation_id="toggle_reaction",
        summary="Toggle reaction",
        description=(
            "Add the caller's reaction with this emoji, or remove it if already "
            "present. Returns the message's reactions after the toggle."
        ),
        request=ReactionToggleSerializer,
        responses={
            200: ReactionToggleResponseSerializer,
            400: OpenApiResponse(description="Invalid emoji or deleted message"),
            403: OpenApiResponse(description="Not a participant in this conversation"),
            404: OpenApiResponse(description="Message not found"),
        },
        tags=["Chat - Reactions"],
    )
    @action(detail=True, methods=["post"], url_path="reactions/toggle")
    def toggle_reaction(self, request, conversation_pk=None, pk=None):
        """
        Toggle a reaction on a message.

        POST /api/v1/chat/conversations/{conversation_id}/messages/{id}/reactions/toggle/
        """
        missing = self._message_missing(pk)
        if missing is not None:
            return missing

        serializer = ReactionToggleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = MessageService.toggle_reaction(
            pk, request.user, serializer.validated_data["emoji"]
        )
        if not result.success:
            return _failure_response(result)

        added, reactions = result.data
        return Response(
            ReactionToggleResponseSerializer(
                {"added": added, "reactions": reactions}
            ).data
        )
