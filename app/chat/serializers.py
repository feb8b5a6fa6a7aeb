"""
Serializers for chat API.

This module provides serializers for the chat system:
- Conversation serializers (list/detail, create)
- Message serializers (read, create, edit)
- Reaction, read-state and typing request/response serializers

Design Decisions:
    - Read and write serializers are separate for clarity
    - Deleted message content is replaced with a placeholder for everyone
      except the sender (the viewer comes from the request in context)
    - Unread counts come from the queryset annotation when present
"""

from __future__ import annotations

from rest_framework import serializers

from authentication.serializers import UserSerializer

from chat.models import Conversation, Message


def _viewer(serializer: serializers.Serializer):
    request = serializer.context.get("request")
    if request is None or not request.user.is_authenticated:
        return None
    return request.user


# =============================================================================
# Message Serializers
# =============================================================================


class MessagePreviewSerializer(serializers.ModelSerializer):
    """
    Minimal message serializer for conversation list preview.

    Used to show the last message in conversation lists.
    """

    sender_id = serializers.IntegerField(read_only=True)
    content = serializers.SerializerMethodField(
        help_text="Message content (replaced if deleted)"
    )

    class Meta:
        model = Message
        fields = [
            "id",
            "sender_id",
            "content",
            "timestamp",
        ]
        read_only_fields = fields

    def get_content(self, obj: Message) -> str:
        return obj.get_display_content(_viewer(self))


class MessageSerializer(serializers.ModelSerializer):
    """
    Full message serializer for message lists.

    Includes sender details, reply reference, reactions grouped by emoji and
    masking of deleted content.
    """

    sender = UserSerializer(read_only=True)
    content = serializers.SerializerMethodField(
        help_text="Message content (replaced if deleted and not yours)"
    )
    is_deleted = serializers.BooleanField(read_only=True)
    reply_to_id = serializers.IntegerField(read_only=True, allow_null=True)
    reactions = serializers.SerializerMethodField(
        help_text="User ids grouped by emoji"
    )

    class Meta:
        model = Message
        fields = [
            "id",
            "conversation_id",
            "sender",
            "content",
            "is_deleted",
            "reply_to_id",
            "reactions",
            "timestamp",
            "edited_at",
        ]
        read_only_fields = fields

    def get_content(self, obj: Message) -> str:
        return obj.get_display_content(_viewer(self))

    def get_reactions(self, obj: Message) -> dict[str, list[int]]:
        return obj.reaction_map


class MessageCreateSerializer(serializers.Serializer):
    """
    Serializer for sending messages.

    Blank content is left to the service so the error carries its code.
    """

    content = serializers.CharField(
        allow_blank=True,
        trim_whitespace=False,
        help_text="Message content (max 10,000 characters)",
    )
    reply_to_id = serializers.IntegerField(
        required=False,
        allow_null=True,
        help_text="Id of the message being replied to (optional)",
    )


class MessageEditSerializer(serializers.Serializer):
    """Serializer for editing message content."""

    content = serializers.CharField(
        allow_blank=True,
        trim_whitespace=False,
        help_text="New message content",
    )


# =============================================================================
# Reaction Serializers
# =============================================================================


class ReactionToggleSerializer(serializers.Serializer):
    """Request body for toggling a reaction."""

    emoji = serializers.CharField(
        allow_blank=True,
        help_text="Emoji to toggle",
    )


class ReactionToggleResponseSerializer(serializers.Serializer):
    """Result of a reaction toggle."""

    added = serializers.BooleanField(help_text="True if the reaction was added")
    reactions = serializers.DictField(
        child=serializers.ListField(child=serializers.IntegerField()),
        help_text="User ids grouped by emoji after the toggle",
    )


# =============================================================================
# Conversation Serializers
# =============================================================================


class ConversationSerializer(serializers.ModelSerializer):
    """
    Serializer for conversations.

    Includes computed fields:
    - participant_ids: Participant user ids in order
    - unread_count: Unread messages for the current user
    - last_message: Preview of the newest non-deleted message
    - display_name: Name for groups, other user's name for direct
    """

    participant_ids = serializers.SerializerMethodField(
        help_text="Participant user ids in order"
    )
    unread_count = serializers.SerializerMethodField(
        help_text="Number of unread messages"
    )
    last_message = serializers.SerializerMethodField(
        help_text="Most recent message preview"
    )
    display_name = serializers.SerializerMethodField(
        help_text="Display name for the conversation"
    )

    class Meta:
        model = Conversation
        fields = [
            "id",
            "name",
            "is_group",
            "display_name",
            "participant_ids",
            "unread_count",
            "last_message",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_participant_ids(self, obj: Conversation) -> list[int]:
        # Prefetched participants are already ordered by position
        return [p.user_id for p in obj.participants.all()]

    def get_unread_count(self, obj: Conversation) -> int:
        annotated = getattr(obj, "unread_count", None)
        if annotated is not None:
            return annotated

        from chat.services import ReadStateService

        viewer = _viewer(self)
        if viewer is None:
            return 0
        return ReadStateService.get_unread_count(obj, viewer)

    def get_last_message(self, obj: Conversation) -> dict | None:
        if obj.last_message is None:
            return None
        return MessagePreviewSerializer(obj.last_message, context=self.context).data

    def get_display_name(self, obj: Conversation) -> str:
        """
        Generate display name for conversation.

        - Named conversations: name
        - Direct: other user's name
        """
        if obj.name:
            return obj.name

        viewer = _viewer(self)
        others = [
            p.user for p in obj.participants.all()
            if viewer is None or p.user_id != viewer.id
        ]
        if obj.is_direct and others:
            return others[0].get_full_name()
        return ", ".join(user.get_short_name() for user in others)


class ConversationCreateSerializer(serializers.Serializer):
    """
    Serializer for creating conversations.

    The caller is always a participant and need not be listed.
    """

    participant_ids = serializers.ListField(
        child=serializers.IntegerField(),
        min_length=1,
        help_text="User ids of the other participants",
    )
    name = serializers.CharField(
        max_length=100,
        required=False,
        allow_blank=True,
        default="",
        help_text="Optional conversation name",
    )
    is_group = serializers.BooleanField(
        required=False,
        allow_null=True,
        default=None,
        help_text="Force group or direct; inferred from participant count if omitted",
    )


# =============================================================================
# Read State & Typing Serializers
# =============================================================================


class MarkReadSerializer(serializers.Serializer):
    """Request body for marking a conversation as read."""

    last_seen_message_id = serializers.IntegerField(
        required=False,
        allow_null=True,
        help_text="Newest message the client has rendered (optional)",
    )


class ReadStateSerializer(serializers.Serializer):
    """Unread state after a read confirmation."""

    conversation_id = serializers.IntegerField()
    unread_count = serializers.IntegerField(source="count")
    last_read_at = serializers.DateTimeField(allow_null=True)


class TypingSetSerializer(serializers.Serializer):
    """Request body for setting the typing flag."""

    is_typing = serializers.BooleanField()


class TypingListSerializer(serializers.Serializer):
    """Users currently typing in a conversation."""

    user_ids = serializers.ListField(child=serializers.IntegerField())
