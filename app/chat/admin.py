"""
Django admin configuration for chat models.

Provides admin interfaces for:
- Conversation management
- Message moderation
- Per-user unread and typing state
"""

from django.contrib import admin

from chat.models import (
    Conversation,
    DirectConversationPair,
    Message,
    MessageReaction,
    Participant,
    TypingState,
    UnreadCounter,
)


class ParticipantInline(admin.TabularInline):
    """Inline display of participants in conversation admin."""

    model = Participant
    extra = 0
    readonly_fields = ["position", "created_at"]
    raw_id_fields = ["user"]


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    """Admin interface for Conversation model."""

    list_display = ["id", "name", "is_group", "created_by", "created_at", "updated_at"]
    list_filter = ["is_group", "created_at"]
    search_fields = ["name", "id"]
    readonly_fields = ["created_at", "updated_at", "last_message"]
    raw_id_fields = ["created_by"]
    inlines = [ParticipantInline]
    ordering = ["-updated_at"]


@admin.register(DirectConversationPair)
class DirectConversationPairAdmin(admin.ModelAdmin):
    """Admin interface for DirectConversationPair model."""

    list_display = ["conversation", "user_lower", "user_higher"]
    raw_id_fields = ["conversation", "user_lower", "user_higher"]


class MessageReactionInline(admin.TabularInline):
    model = MessageReaction
    extra = 0
    raw_id_fields = ["user"]
    readonly_fields = ["created_at"]


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    """Admin interface for Message model."""

    list_display = [
        "id",
        "conversation",
        "sender",
        "content_preview",
        "is_deleted",
        "timestamp",
        "edited_at",
    ]
    list_filter = ["is_deleted", "timestamp"]
    search_fields = ["content", "sender__email"]
    readonly_fields = ["timestamp", "edited_at", "deleted_at", "created_at", "updated_at"]
    raw_id_fields = ["conversation", "sender", "reply_to"]
    inlines = [MessageReactionInline]
    ordering = ["-timestamp"]

    @admin.display(description="Content")
    def content_preview(self, obj):
        return obj.content[:50]


@admin.register(UnreadCounter)
class UnreadCounterAdmin(admin.ModelAdmin):
    list_display = ["user", "conversation", "count", "last_read_at"]
    raw_id_fields = ["user", "conversation"]


@admin.register(TypingState)
class TypingStateAdmin(admin.ModelAdmin):
    list_display = ["user", "conversation", "is_typing", "expires_at"]
    raw_id_fields = ["user", "conversation"]
