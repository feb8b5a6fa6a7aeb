"""
Chat system service layer.

This module provides the business logic for the chat system, encapsulating
all operations on conversations, messages and per-user conversation state.

Services:
    ConversationService: Conversation creation and lookup
    ConversationAggregateService: Last-message pointer and unread fan-out
    MessageService: Message operations (send, delete, edit, react, list)
    TypingService: Typing indicators with expiry
    ReadStateService: Unread counter reset and lookup

Design Principles:
    - Services are stateless (use class methods)
    - Expected failures return a ServiceResult tagged with a FailureKind
    - Unexpected failures raise exceptions
    - Writes to shared rows run under retry_on_conflict (one retry, then CONFLICT)
    - Subscribers are notified through chat.broadcast only after commit

Usage:
    from chat.services import ConversationService, MessageService

    result = ConversationService.create_conversation(alice, [bob.id])
    conversation = result.data

    result = MessageService.send(conversation.id, alice, "Hello!")
    if result.is_not_found:
        ...
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING

from django.db.models import F, IntegerField, OuterRef, Q, Subquery, Value
from django.db.models.functions import Coalesce
from django.utils import timezone

from core.decorators import retry_on_conflict
from core.services import BaseService, ServiceResult

from chat.broadcast import ChangeEvent, broadcast_change
from chat.constants import MESSAGE_CONFIG, REACTION_CONFIG, TYPING_CONFIG
from chat.models import (
    Conversation,
    DirectConversationPair,
    Message,
    MessageReaction,
    Participant,
    TypingState,
    UnreadCounter,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from django.db.models import QuerySet

    from authentication.models import User

logger = logging.getLogger(__name__)


def _conversation_not_found() -> ServiceResult:
    return ServiceResult.not_found(
        "Conversation not found", error_code="CONVERSATION_NOT_FOUND"
    )


def _message_not_found() -> ServiceResult:
    return ServiceResult.not_found("Message not found", error_code="MESSAGE_NOT_FOUND")


def _not_participant() -> ServiceResult:
    return ServiceResult.denied(
        "You are not a participant in this conversation",
        error_code="NOT_PARTICIPANT",
    )


def _validate_content(content: str | None) -> tuple[str, ServiceResult | None]:
    """Strip content and check length limits."""
    content = content.strip() if content else ""
    if len(content) < MESSAGE_CONFIG.MIN_CONTENT_LENGTH:
        return content, ServiceResult.invalid(
            "Message content cannot be empty", error_code="EMPTY_CONTENT"
        )
    if len(content) > MESSAGE_CONFIG.MAX_CONTENT_LENGTH:
        return content, ServiceResult.invalid(
            f"Message content exceeds {MESSAGE_CONFIG.MAX_CONTENT_LENGTH} characters",
            error_code="CONTENT_TOO_LONG",
        )
    return content, None


def _unread_messages(
    conversation: Conversation, user_id: int, counter: UnreadCounter | None
):
    """
    Messages from other senders after the counter's read point.

    The read point is ordered by (timestamp, id) so messages sharing the
    timestamp of the last read message are still counted.
    """
    messages = Message.objects.filter(conversation=conversation).exclude(
        sender_id=user_id
    )
    if counter is None:
        return messages

    read_message = counter.last_read_message
    if read_message is not None:
        return messages.filter(
            Q(timestamp__gt=read_message.timestamp)
            | Q(timestamp=read_message.timestamp, id__gt=read_message.id)
        )
    if counter.last_read_at is not None:
        return messages.filter(timestamp__gt=counter.last_read_at)
    return messages


class ConversationService(BaseService):
    """
    Service for conversation lifecycle operations.

    Methods:
        create_conversation: Create a conversation (or reuse a direct one)
        get_conversation: Look up a conversation by id
        list_for_user: A user's conversations with their unread counts
    """

    @classmethod
    @retry_on_conflict()
    def create_conversation(
        cls,
        creator: User,
        participant_ids: Iterable[int],
        name: str = "",
        is_group: bool | None = None,
    ) -> ServiceResult[Conversation]:
        """
        Create a conversation between the creator and other users.

        Participants are the creator followed by ``participant_ids`` in the
        given order, with duplicates removed. Two participants and
        ``is_group`` not set produce a direct conversation; a direct
        conversation already existing for the same pair is returned instead
        of creating another one.

        Args:
            creator: User creating the conversation (first participant)
            participant_ids: Ids of the other participants
            name: Optional display name
            is_group: Force group (True) or direct (False); inferred if None

        Returns:
            ServiceResult with the Conversation

        Error codes:
            USER_NOT_FOUND: A participant id does not name an active user
            INVALID_PARTICIPANTS: Fewer than two participants, or a direct
                conversation requested for more than two
        """
        from authentication.models import User

        ordered_ids: list[int] = [creator.id]
        for user_id in participant_ids:
            if user_id not in ordered_ids:
                ordered_ids.append(user_id)

        if len(ordered_ids) < 2:
            return ServiceResult.invalid(
                "A conversation needs at least two participants",
                error_code="INVALID_PARTICIPANTS",
            )

        if is_group is None:
            is_group = len(ordered_ids) > 2
        elif not is_group and len(ordered_ids) != 2:
            return ServiceResult.invalid(
                "A direct conversation has exactly two participants",
                error_code="INVALID_PARTICIPANTS",
            )

        found = set(
            User.objects.filter(id__in=ordered_ids, is_active=True).values_list(
                "id", flat=True
            )
        )
        missing = [user_id for user_id in ordered_ids if user_id not in found]
        if missing:
            return ServiceResult.not_found(
                f"Users not found: {missing}", error_code="USER_NOT_FOUND"
            )

        if not is_group:
            user_lower, user_higher = sorted(ordered_ids)
            existing_pair = (
                DirectConversationPair.objects.select_related("conversation")
                .filter(user_lower_id=user_lower, user_higher_id=user_higher)
                .first()
            )
            if existing_pair is not None:
                cls.get_logger().debug(
                    f"Found existing direct conversation {existing_pair.conversation_id} "
                    f"between users {user_lower} and {user_higher}"
                )
                return ServiceResult.success(existing_pair.conversation)

        conversation = Conversation.objects.create(
            name=(name or "").strip(),
            is_group=is_group,
            created_by=creator,
        )

        if not is_group:
            # A concurrent create for the same pair fails here and is retried
            DirectConversationPair.objects.create(
                conversation=conversation,
                user_lower_id=user_lower,
                user_higher_id=user_higher,
            )

        Participant.objects.bulk_create(
            [
                Participant(conversation=conversation, user_id=user_id, position=index)
                for index, user_id in enumerate(ordered_ids)
            ]
        )

        cls.get_logger().info(
            f"Created {'group' if is_group else 'direct'} conversation "
            f"{conversation.id} with participants {ordered_ids}"
        )
        return ServiceResult.success(conversation)

    @classmethod
    def get_conversation(cls, conversation_id: int) -> ServiceResult[Conversation]:
        """Look up a conversation by id."""
        conversation = (
            Conversation.objects.select_related("last_message")
            .filter(id=conversation_id)
            .first()
        )
        if conversation is None:
            return _conversation_not_found()
        return ServiceResult.success(conversation)

    @staticmethod
    def list_for_user(user: User) -> QuerySet[Conversation]:
        """
        Conversations the user participates in, most recently active first.

        Each conversation is annotated with ``unread_count`` for this user.
        """
        unread = UnreadCounter.objects.filter(
            conversation=OuterRef("pk"), user=user
        ).values("count")[:1]

        return (
            Conversation.objects.filter(participants__user=user)
            .annotate(
                unread_count=Coalesce(
                    Subquery(unread, output_field=IntegerField()), Value(0)
                )
            )
            .select_related("last_message")
            .prefetch_related("participants__user")
            .order_by("-updated_at", "-id")
        )


class ConversationAggregateService(BaseService):
    """
    Keeps conversation-level aggregates in step with messages.

    Methods:
        record_new_message: Update last_message and fan out unread increments
        refresh_last_message: Repoint last_message after a delete
        reconcile_unread_counts: Rebuild counters from message history
    """

    @classmethod
    def record_new_message(cls, conversation: Conversation, message: Message) -> int:
        """
        Apply a newly sent message to its conversation.

        Must run inside the transaction that created the message.

        Steps:
            1. Point last_message at the message and bump updated_at
            2. Increment every other participant's unread counter in place,
               creating missing counters with count=1

        Returns:
            Number of counters touched
        """
        now = timezone.now()
        Conversation.objects.filter(id=conversation.id).update(
            last_message=message, updated_at=now
        )
        conversation.last_message = message
        conversation.updated_at = now

        recipient_ids = [
            user_id
            for user_id in conversation.participant_ids
            if user_id != message.sender_id
        ]
        if not recipient_ids:
            return 0

        existing = set(
            UnreadCounter.objects.filter(
                conversation=conversation, user_id__in=recipient_ids
            ).values_list("user_id", flat=True)
        )

        # Compare-and-increment; never read-modify-write the count
        UnreadCounter.objects.filter(
            conversation=conversation, user_id__in=existing
        ).update(count=F("count") + 1, updated_at=now)

        # A counter created concurrently violates the unique constraint and
        # the whole send is retried
        UnreadCounter.objects.bulk_create(
            [
                UnreadCounter(user_id=user_id, conversation=conversation, count=1)
                for user_id in recipient_ids
                if user_id not in existing
            ]
        )

        return len(recipient_ids)

    @classmethod
    def refresh_last_message(cls, conversation: Conversation) -> Message | None:
        """Point last_message at the newest non-deleted message, or null."""
        latest = (
            Message.objects.filter(conversation=conversation, is_deleted=False)
            .order_by("-timestamp", "-id")
            .first()
        )
        Conversation.objects.filter(id=conversation.id).update(last_message=latest)
        conversation.last_message = latest
        return latest

    @classmethod
    @retry_on_conflict()
    def reconcile_unread_counts(
        cls, conversation: Conversation
    ) -> ServiceResult[dict[int, int]]:
        """
        Rebuild every participant's unread counter from message history.

        The expected count for a participant is the number of messages from
        other senders after the counter's read point (all of them if
        the participant never read the conversation). Also recomputes
        last_message.

        Returns:
            ServiceResult with {user_id: count} for counters that changed
        """
        changed: dict[int, int] = {}

        for user_id in conversation.participant_ids:
            counter = (
                UnreadCounter.objects.select_for_update()
                .filter(user_id=user_id, conversation=conversation)
                .first()
            )

            expected = _unread_messages(conversation, user_id, counter).count()

            if counter is None:
                if expected:
                    UnreadCounter.objects.create(
                        user_id=user_id, conversation=conversation, count=expected
                    )
                    changed[user_id] = expected
            elif counter.count != expected:
                counter.count = expected
                counter.save(update_fields=["count", "updated_at"])
                changed[user_id] = expected

        cls.refresh_last_message(conversation)

        if changed:
            cls.get_logger().info(
                f"Reconciled unread counters for conversation {conversation.id}: {changed}"
            )
            broadcast_change(
                conversation.id, ChangeEvent.READ_UPDATED, sorted(changed)
            )

        return ServiceResult.success(changed)


class MessageService(BaseService):
    """
    Service for message operations.

    Methods:
        send: Send a message (updates aggregates atomically)
        delete: Soft delete own message
        edit: Replace content of own message
        toggle_reaction: Add or remove the caller's emoji reaction
        list_messages: Ordered history of a conversation
    """

    @classmethod
    def _next_timestamp(cls, conversation: Conversation):
        """
        Timestamp for a new message that never sorts before earlier ones.

        Called with the conversation row locked, so concurrent sends to the
        same conversation are serialized.
        """
        now = timezone.now()
        latest = (
            Message.objects.filter(conversation=conversation)
            .order_by("-timestamp", "-id")
            .values_list("timestamp", flat=True)
            .first()
        )
        if latest is not None and latest > now:
            return latest
        return now

    @classmethod
    @retry_on_conflict()
    def send(
        cls,
        conversation_id: int,
        sender: User,
        content: str,
        reply_to_id: int | None = None,
    ) -> ServiceResult[Message]:
        """
        Send a message to a conversation.

        The message insert, the last_message pointer and the unread
        increments for every other participant commit together or not at all.
        The sender is trusted to be the authenticated caller.

        Args:
            conversation_id: Target conversation
            sender: User sending the message
            content: Message text (stripped)
            reply_to_id: Optional id of a message in the same conversation

        Returns:
            ServiceResult with new Message

        Error codes:
            CONVERSATION_NOT_FOUND: Conversation does not exist
            EMPTY_CONTENT: Content is blank after stripping
            CONTENT_TOO_LONG: Content exceeds MESSAGE_CONFIG.MAX_CONTENT_LENGTH
            INVALID_REPLY_TARGET: reply_to_id is not a message of this conversation
        """
        content, error = _validate_content(content)
        if error is not None:
            return error

        conversation = (
            Conversation.objects.select_for_update().filter(id=conversation_id).first()
        )
        if conversation is None:
            return _conversation_not_found()

        reply_to = None
        if reply_to_id is not None:
            reply_to = Message.objects.filter(
                id=reply_to_id, conversation=conversation
            ).first()
            if reply_to is None:
                return ServiceResult.invalid(
                    "Reply target is not a message in this conversation",
                    error_code="INVALID_REPLY_TARGET",
                )

        message = Message.objects.create(
            conversation=conversation,
            sender=sender,
            content=content,
            reply_to=reply_to,
            timestamp=cls._next_timestamp(conversation),
        )

        ConversationAggregateService.record_new_message(conversation, message)
        broadcast_change(conversation.id, ChangeEvent.MESSAGE_CREATED, [message.id])

        cls.get_logger().debug(
            f"User {sender.id} sent message {message.id} "
            f"to conversation {conversation.id}"
        )
        return ServiceResult.success(message)

    @classmethod
    @retry_on_conflict()
    def delete(cls, message_id: int, user: User) -> ServiceResult[Message]:
        """
        Soft delete a message.

        Only the sender may delete. Deleting an already-deleted message is a
        no-op success. If the message was the conversation's last_message,
        the pointer moves to the newest remaining message.

        Returns:
            ServiceResult with the (deleted) Message

        Error codes:
            MESSAGE_NOT_FOUND: Message does not exist
            NOT_AUTHOR: User is not the sender
        """
        message = (
            Message.objects.select_for_update()
            .select_related("conversation")
            .filter(id=message_id)
            .first()
        )
        if message is None:
            return _message_not_found()

        if message.sender_id != user.id:
            return ServiceResult.denied(
                "You can only delete your own messages", error_code="NOT_AUTHOR"
            )

        if message.is_deleted:
            return ServiceResult.success(message)

        message.soft_delete()

        conversation = message.conversation
        if conversation.last_message_id == message.id:
            ConversationAggregateService.refresh_last_message(conversation)

        broadcast_change(conversation.id, ChangeEvent.MESSAGE_DELETED, [message.id])

        cls.get_logger().info(
            f"User {user.id} deleted message {message.id} "
            f"in conversation {conversation.id}"
        )
        return ServiceResult.success(message)

    @classmethod
    def edit(cls, message_id: int, user: User, content: str) -> ServiceResult[Message]:
        """
        Replace the content of a message.

        Only the sender may edit. timestamp and reply_to are unchanged.

        Error codes:
            MESSAGE_NOT_FOUND: Message does not exist
            NOT_AUTHOR: User is not the sender
            MESSAGE_DELETED: Deleted messages cannot be edited
            EMPTY_CONTENT / CONTENT_TOO_LONG: Content limits
        """
        with cls.atomic():
            message = Message.objects.select_for_update().filter(id=message_id).first()
            if message is None:
                return _message_not_found()

            if message.sender_id != user.id:
                return ServiceResult.denied(
                    "You can only edit your own messages", error_code="NOT_AUTHOR"
                )

            if message.is_deleted:
                return ServiceResult.invalid(
                    "Cannot edit deleted messages", error_code="MESSAGE_DELETED"
                )

            content, error = _validate_content(content)
            if error is not None:
                return error

            message.content = content
            message.edited_at = timezone.now()
            message.save(update_fields=["content", "edited_at", "updated_at"])

            broadcast_change(
                message.conversation_id, ChangeEvent.MESSAGE_EDITED, [message.id]
            )

        cls.get_logger().info(f"User {user.id} edited message {message.id}")
        return ServiceResult.success(message)

    @classmethod
    def _validate_emoji(cls, emoji: str) -> bool:
        if not emoji:
            return False
        if len(emoji) > REACTION_CONFIG.MAX_EMOJI_LENGTH:
            return False
        if REACTION_CONFIG.ALLOWED_EMOJIS is not None:
            return emoji in REACTION_CONFIG.ALLOWED_EMOJIS
        return True

    @classmethod
    @retry_on_conflict()
    def toggle_reaction(
        cls,
        message_id: int,
        user: User,
        emoji: str,
    ) -> ServiceResult[tuple[bool, dict[str, list[int]]]]:
        """
        Toggle the caller's reaction with ``emoji`` on a message.

        Only the caller's own (message, user, emoji) row is inserted or
        deleted, so concurrent toggles by other users are never lost.

        Returns:
            ServiceResult containing (added, reactions) where reactions is
            the message's {emoji: [user_id, ...]} mapping after the toggle

        Error codes:
            INVALID_EMOJI: Blank or over-long emoji
            MESSAGE_NOT_FOUND: Message does not exist
            MESSAGE_DELETED: Deleted messages cannot be reacted to
            NOT_PARTICIPANT: User is not in the conversation
        """
        emoji = emoji.strip() if emoji else ""
        if not cls._validate_emoji(emoji):
            return ServiceResult.invalid("Invalid emoji", error_code="INVALID_EMOJI")

        message = Message.objects.select_related("conversation").filter(id=message_id).first()
        if message is None:
            return _message_not_found()

        if message.is_deleted:
            return ServiceResult.invalid(
                "Cannot react to deleted messages", error_code="MESSAGE_DELETED"
            )

        if not message.conversation.has_participant(user):
            return _not_participant()

        removed, _ = MessageReaction.objects.filter(
            message=message, user=user, emoji=emoji
        ).delete()
        added = removed == 0
        if added:
            MessageReaction.objects.create(message=message, user=user, emoji=emoji)

        broadcast_change(
            message.conversation_id, ChangeEvent.REACTION_TOGGLED, [message.id]
        )

        cls.get_logger().debug(
            f"User {user.id} {'added' if added else 'removed'} {emoji} "
            f"on message {message.id}"
        )
        return ServiceResult.success((added, message.reaction_map))

    @classmethod
    def list_messages(cls, conversation_id: int) -> ServiceResult[QuerySet[Message]]:
        """
        All messages of a conversation in order.

        Soft-deleted messages are included; masking happens at presentation.
        Ordered by (timestamp, id).
        """
        if not Conversation.objects.filter(id=conversation_id).exists():
            return _conversation_not_found()

        queryset = (
            Message.objects.filter(conversation_id=conversation_id)
            .select_related("sender")
            .prefetch_related("reactions")
            .order_by("timestamp", "id")
        )
        return ServiceResult.success(queryset)


class TypingService(BaseService):
    """
    Typing indicators per (user, conversation).

    A typing flag lapses TYPING_CONFIG.TYPING_TTL_SECONDS after it was last
    set, so a client that disappears mid-sentence does not leave a stale
    indicator behind.
    """

    @classmethod
    @retry_on_conflict()
    def set_typing(
        cls,
        conversation_id: int,
        user: User,
        is_typing: bool,
    ) -> ServiceResult[TypingState]:
        """
        Set or clear the user's typing flag (last write wins).

        Subscribers are notified only when the visible state flips.

        Error codes:
            CONVERSATION_NOT_FOUND: Conversation does not exist
            NOT_PARTICIPANT: User is not in the conversation
        """
        conversation = Conversation.objects.filter(id=conversation_id).first()
        if conversation is None:
            return _conversation_not_found()

        if not conversation.has_participant(user):
            return _not_participant()

        previous = TypingState.objects.filter(
            user=user, conversation=conversation
        ).first()
        was_typing = previous.is_active if previous else False

        expires_at = (
            timezone.now() + timedelta(seconds=TYPING_CONFIG.TYPING_TTL_SECONDS)
            if is_typing
            else None
        )
        state, _ = TypingState.objects.update_or_create(
            user=user,
            conversation=conversation,
            defaults={"is_typing": is_typing, "expires_at": expires_at},
        )

        if was_typing != is_typing:
            broadcast_change(conversation.id, ChangeEvent.TYPING_UPDATED, [user.id])

        return ServiceResult.success(state)

    @classmethod
    def get_typing(cls, conversation_id: int) -> ServiceResult[list[int]]:
        """Ids of users currently typing, ignoring expired flags."""
        if not Conversation.objects.filter(id=conversation_id).exists():
            return _conversation_not_found()

        user_ids = list(
            TypingState.objects.filter(
                conversation_id=conversation_id,
                is_typing=True,
                expires_at__gt=timezone.now(),
            )
            .order_by("updated_at", "id")
            .values_list("user_id", flat=True)
        )
        return ServiceResult.success(user_ids)

    @classmethod
    def purge_expired(cls) -> int:
        """Delete typing rows that are cleared or past their expiry."""
        deleted, _ = TypingState.objects.filter(
            Q(is_typing=False) | Q(expires_at__lte=timezone.now())
        ).delete()
        if deleted:
            cls.get_logger().debug(f"Purged {deleted} expired typing states")
        return deleted


class ReadStateService(BaseService):
    """
    Per-user read state of conversations.

    Methods:
        mark_read: Reset (or recompute) the user's unread counter
        get_unread_count: Current unread count for a user
    """

    @classmethod
    @retry_on_conflict()
    def mark_read(
        cls,
        conversation_id: int,
        user: User,
        last_seen_message_id: int | None = None,
    ) -> ServiceResult[UnreadCounter]:
        """
        Record that the user has read the conversation.

        Without ``last_seen_message_id`` the counter is reset to 0. With it,
        the counter becomes the number of messages from other senders after
        that message, so a message sent concurrently with the read is not
        lost. The counter row is locked first; a concurrent send's increment
        is applied either before the count is taken or on top of it.

        Error codes:
            CONVERSATION_NOT_FOUND: Conversation does not exist
            NOT_PARTICIPANT: User is not in the conversation
            MESSAGE_NOT_FOUND: last_seen_message_id is not in this conversation
        """
        conversation = Conversation.objects.filter(id=conversation_id).first()
        if conversation is None:
            return _conversation_not_found()

        if not conversation.has_participant(user):
            return _not_participant()

        last_seen = None
        if last_seen_message_id is not None:
            last_seen = Message.objects.filter(
                id=last_seen_message_id, conversation=conversation
            ).first()
            if last_seen is None:
                return _message_not_found()

        counter = (
            UnreadCounter.objects.select_for_update()
            .filter(user=user, conversation=conversation)
            .first()
        )
        if counter is None:
            counter = UnreadCounter.objects.create(user=user, conversation=conversation)

        if last_seen is None:
            counter.last_read_message = (
                Message.objects.filter(conversation=conversation)
                .order_by("-timestamp", "-id")
                .first()
            )
            counter.last_read_at = timezone.now()
            count = 0
        else:
            counter.last_read_message = last_seen
            counter.last_read_at = last_seen.timestamp
            count = _unread_messages(conversation, user.id, counter).count()

        counter.count = count
        counter.save(
            update_fields=["count", "last_read_at", "last_read_message", "updated_at"]
        )

        broadcast_change(conversation.id, ChangeEvent.READ_UPDATED, [user.id])

        cls.get_logger().debug(
            f"User {user.id} marked conversation {conversation.id} as read "
            f"({count} unread remaining)"
        )
        return ServiceResult.success(counter)

    @staticmethod
    def get_unread_count(conversation: Conversation, user: User) -> int:
        """Unread count for the user (0 when no counter exists yet)."""
        count = (
            UnreadCounter.objects.filter(user=user, conversation=conversation)
            .values_list("count", flat=True)
            .first()
        )
        return count or 0
