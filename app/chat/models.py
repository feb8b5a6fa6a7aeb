"""
Chat system models.

This module defines the data models for the chat system:
- Conversations between two or more users with an ordered participant list
- Messages with soft delete, replies and per-user reactions
- Per-user unread counters and typing indicators

Models:
    Conversation: Container for messages, tracks the latest message
    DirectConversationPair: Helper for enforcing uniqueness of direct conversations
    Participant: User membership in a conversation, ordered by position
    Message: Individual message within a conversation
    MessageReaction: One user's reaction with one emoji on one message
    UnreadCounter: Per (user, conversation) count of unread messages
    TypingState: Per (user, conversation) typing flag with expiry

Design Decisions:
    - Participant sets are fixed once the conversation is created
    - Messages are only soft deleted; content is kept for audit
    - Reactions are stored one row per (message, user, emoji), so a toggle
      only ever touches the caller's own row
    - reply_to is a non-constrained reference and may dangle
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from django.conf import settings
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from core.models import BaseModel
from core.model_mixins import SoftDeleteMixin

if TYPE_CHECKING:
    from authentication.models import User


class Conversation(BaseModel):
    """
    A conversation between two or more users.

    Direct conversations have exactly two participants and are unique per
    user pair (enforced via DirectConversationPair). Group conversations have
    two or more participants and an optional name.

    Fields:
        name: Display name (empty for direct conversations)
        is_group: Whether this is a group conversation
        created_by: User who created the conversation
        last_message: Newest non-deleted message, or null
        updated_at: Bumped on every new message (inherited from BaseModel)

    Relationships:
        participants: Participant records ordered by position
        messages: All Message records for this conversation
        unread_counters: Per-user UnreadCounter records
        typing_states: Per-user TypingState records
    """

    name = models.CharField(
        max_length=100,
        blank=True,
        default="",
        help_text="Display name (empty for direct conversations)",
    )

    is_group = models.BooleanField(
        default=False,
        db_index=True,
        help_text="Whether this is a group conversation",
    )

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="created_conversations",
        help_text="User who created this conversation",
    )

    last_message = models.ForeignKey(
        "Message",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="Most recent non-deleted message (weak reference)",
    )

    class Meta:
        db_table = "chat_conversation"
        ordering = ["-updated_at", "-id"]
        indexes = [
            models.Index(
                fields=["-updated_at"],
                name="chat_conv_updated_idx",
            ),
        ]

    def __str__(self) -> str:
        """Return human-readable representation."""
        if self.is_group:
            return f"Group: {self.name}" if self.name else f"Group({self.pk})"
        return f"Direct({self.pk})"

    @property
    def is_direct(self) -> bool:
        """Check if this is a direct (1:1) conversation."""
        return not self.is_group

    @property
    def participant_ids(self) -> list[int]:
        """User ids of participants in position order."""
        return list(
            self.participants.order_by("position").values_list("user_id", flat=True)
        )

    def has_participant(self, user: User | int) -> bool:
        """Check whether the user (or user id) belongs to this conversation."""
        user_id = getattr(user, "id", user)
        return self.participants.filter(user_id=user_id).exists()


class DirectConversationPair(models.Model):
    """
    Enforces uniqueness of direct conversations between two users.

    Stores user pairs in canonical order (lower user_id first) so that
    regardless of who starts the conversation there can only be one direct
    conversation between any pair.

    Constraints:
        - UniqueConstraint(user_lower, user_higher): One conversation per pair
        - CheckConstraint(user_lower_id < user_higher_id): Enforce canonical order
    """

    conversation = models.OneToOneField(
        Conversation,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name="direct_pair",
        help_text="The direct conversation this pair represents",
    )

    user_lower = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
        help_text="User with lower ID in this conversation pair",
    )

    user_higher = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="+",
        help_text="User with higher ID in this conversation pair",
    )

    class Meta:
        db_table = "chat_direct_conversation_pair"
        constraints = [
            models.UniqueConstraint(
                fields=["user_lower", "user_higher"],
                name="unique_direct_conversation_pair",
            ),
            models.CheckConstraint(
                condition=Q(user_lower_id__lt=F("user_higher_id")),
                name="user_lower_less_than_higher",
            ),
        ]

    def __str__(self) -> str:
        """Return human-readable representation."""
        return f"DirectPair({self.user_lower_id}, {self.user_higher_id})"


class Participant(BaseModel):
    """
    Membership of a user in a conversation.

    The participant list of a conversation is ordered; ``position`` records
    the order given at creation (creator first).

    Constraints:
        - UniqueConstraint(conversation, user): a user appears once
        - UniqueConstraint(conversation, position): positions do not repeat
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="participants",
        help_text="Conversation this participation belongs to",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="conversation_participations",
        help_text="User participating in the conversation",
    )

    position = models.PositiveSmallIntegerField(
        help_text="Order of this participant in the conversation",
    )

    class Meta:
        db_table = "chat_participant"
        ordering = ["conversation", "position"]
        indexes = [
            # User's conversations
            models.Index(
                fields=["user", "conversation"],
                name="chat_part_user_conv_idx",
            ),
        ]
        constraints = [
            models.UniqueConstraint(
                fields=["conversation", "user"],
                name="unique_conversation_participant",
            ),
            models.UniqueConstraint(
                fields=["conversation", "position"],
                name="unique_conversation_position",
            ),
        ]

    def __str__(self) -> str:
        """Return human-readable representation."""
        return f"Participant: {self.user_id} in {self.conversation_id} (#{self.position})"


class Message(SoftDeleteMixin, BaseModel):
    """
    A message within a conversation.

    Ordering:
        Messages are ordered by (timestamp, id). ``timestamp`` never goes
        backwards within a conversation, and ``id`` breaks ties in insertion
        order.

    Soft Delete Behavior:
        When is_deleted=True:
        - Content is preserved in database for audit
        - API returns "[Message deleted]" to everyone except the sender
        - The message keeps its position in the conversation history

    Replies:
        reply_to references another message of the same conversation at send
        time. The reference is not a database constraint and may dangle.

    Fields:
        conversation: Conversation this message belongs to
        sender: User who sent the message
        content: Message text
        reply_to: Message being replied to (weak reference)
        timestamp: Creation time used for ordering
        edited_at: Last edit time (null if never edited)
    """

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="messages",
        help_text="Conversation this message belongs to",
    )

    sender = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="sent_messages",
        help_text="User who sent this message",
    )

    content = models.TextField(
        help_text="Message text",
    )

    reply_to = models.ForeignKey(
        "self",
        on_delete=models.DO_NOTHING,
        db_constraint=False,
        null=True,
        blank=True,
        related_name="replies",
        help_text="Message this one replies to (may no longer exist)",
    )

    timestamp = models.DateTimeField(
        default=timezone.now,
        help_text="Creation time used for ordering",
    )

    edited_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the content was last edited",
    )

    class Meta:
        db_table = "chat_message"
        ordering = ["timestamp", "id"]
        indexes = [
            # Messages in a conversation, in order
            models.Index(
                fields=["conversation", "timestamp", "id"],
                name="chat_msg_conv_order_idx",
            ),
            # User's messages
            models.Index(
                fields=["sender", "-timestamp"],
                name="chat_msg_sender_idx",
            ),
        ]

    def __str__(self) -> str:
        """Return human-readable representation."""
        content_preview = (
            self.content[:50] + "..." if len(self.content) > 50 else self.content
        )
        deleted_str = " [deleted]" if self.is_deleted else ""
        return f"User {self.sender_id}: {content_preview}{deleted_str}"

    @property
    def is_edited(self) -> bool:
        return self.edited_at is not None

    @property
    def reaction_map(self) -> dict[str, list[int]]:
        """
        Reactions grouped by emoji.

        Returns:
            {emoji: [user_id, ...]} in reaction order. Emojis with no
            reacting users are absent. Uses prefetched reactions when present.
        """
        grouped: dict[str, list[int]] = {}
        reactions = sorted(
            self.reactions.all(), key=lambda r: (r.created_at, r.id)
        )
        for reaction in reactions:
            grouped.setdefault(reaction.emoji, []).append(reaction.user_id)
        return grouped

    def get_display_content(self, viewer: User | None = None) -> str:
        """
        Get content suitable for display to ``viewer``.

        Returns:
            - Original content for the sender, or for anyone if not deleted
            - "[Message deleted]" otherwise
        """
        from chat.constants import MESSAGE_CONFIG

        if not self.is_deleted:
            return self.content
        if viewer is not None and viewer.id == self.sender_id:
            return self.content
        return MESSAGE_CONFIG.DELETED_PLACEHOLDER


class MessageReaction(BaseModel):
    """
    A single user's reaction with one emoji on one message.

    A reaction bucket (all users who reacted with an emoji) is the set of
    rows sharing (message, emoji). Uniqueness of (message, user, emoji) keeps
    bucket membership unique per user.
    """

    message = models.ForeignKey(
        Message,
        on_delete=models.CASCADE,
        related_name="reactions",
        help_text="Message this reaction belongs to",
    )

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="message_reactions",
        help_text="User who added this reaction",
    )

    emoji = models.CharField(
        max_length=32,
        help_text="Emoji character(s) used for this reaction",
    )

    class Meta:
        db_table = "chat_message_reaction"
        ordering = ["created_at", "id"]
        constraints = [
            models.UniqueConstraint(
                fields=["message", "user", "emoji"],
                name="unique_user_message_emoji_reaction",
            ),
        ]
        indexes = [
            models.Index(
                fields=["message", "emoji"],
                name="chat_reaction_msg_emoji_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.emoji} by {self.user_id} on {self.message_id}"


class UnreadCounter(BaseModel):
    """
    Count of unread messages for one user in one conversation.

    Created lazily by the first message another participant sends, then
    incremented in place (``count = count + 1``) on each further message.
    Reset when the user's read state is confirmed.

    Fields:
        user: Owner of the counter
        conversation: Conversation being counted
        count: Number of unread messages (never negative)
        last_read_at: When the user last confirmed reading
        last_read_message: Newest message covered by the last read, with
            last_read_at ties broken by id
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="unread_counters",
        help_text="User this counter belongs to",
    )

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="unread_counters",
        help_text="Conversation being counted",
    )

    count = models.PositiveIntegerField(
        default=0,
        help_text="Number of unread messages",
    )

    last_read_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the user last marked the conversation as read",
    )

    last_read_message = models.ForeignKey(
        "Message",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
        help_text="Newest message covered by the last read",
    )

    class Meta:
        db_table = "chat_unread_counter"
        ordering = ["conversation", "user"]
        constraints = [
            models.UniqueConstraint(
                fields=["user", "conversation"],
                name="unique_unread_counter",
            ),
            models.CheckConstraint(
                condition=Q(count__gte=0),
                name="unread_count_non_negative",
            ),
        ]

    def __str__(self) -> str:
        return f"Unread({self.user_id}, {self.conversation_id}) = {self.count}"


class TypingState(BaseModel):
    """
    Typing indicator for one user in one conversation.

    Ephemeral: rows whose ``expires_at`` has passed are treated as not typing
    and are purged periodically.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="typing_states",
        help_text="User who is typing",
    )

    conversation = models.ForeignKey(
        Conversation,
        on_delete=models.CASCADE,
        related_name="typing_states",
        help_text="Conversation being typed in",
    )

    is_typing = models.BooleanField(
        default=False,
        help_text="Whether the user is currently typing",
    )

    expires_at = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="When the typing flag lapses if not refreshed",
    )

    class Meta:
        db_table = "chat_typing_state"
        ordering = ["conversation", "updated_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["user", "conversation"],
                name="unique_typing_state",
            ),
        ]

    def __str__(self) -> str:
        return f"Typing({self.user_id}, {self.conversation_id}) = {self.is_typing}"

    @property
    def is_active(self) -> bool:
        """Typing and not yet expired."""
        return (
            self.is_typing
            and self.expires_at is not None
            and self.expires_at > timezone.now()
        )
