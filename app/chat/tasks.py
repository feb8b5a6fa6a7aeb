"""
Celery tasks for chat app.

This module defines async tasks for:
- Unread counter reconciliation
- Typing state cleanup

Related files:
    - services.py: ConversationAggregateService, TypingService
    - config/settings.py: CELERY_BEAT_SCHEDULE

Usage:
    from chat.tasks import reconcile_unread_counts

    reconcile_unread_counts.delay(conversation_id)
"""

import logging

from celery import shared_task

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def reconcile_unread_counts(self, conversation_id: int) -> dict:
    """
    Rebuild unread counters of a conversation from message history.

    Args:
        conversation_id: ID of the conversation

    Returns:
        Mapping of user id to corrected count (empty if nothing changed)
    """
    from chat.models import Conversation
    from chat.services import ConversationAggregateService

    conversation = Conversation.objects.filter(id=conversation_id).first()
    if conversation is None:
        logger.error(f"Conversation {conversation_id} not found")
        return {}

    result = ConversationAggregateService.reconcile_unread_counts(conversation)
    if not result.success:
        logger.warning(
            f"Reconciliation of conversation {conversation_id} failed: {result.error}"
        )
        return {}

    # Celery serializes dict keys as strings
    return {str(user_id): count for user_id, count in result.data.items()}


@shared_task
def purge_expired_typing_states() -> int:
    """
    Delete typing indicators that were cleared or have expired.

    Scheduled periodically via Celery beat.

    Returns:
        Number of rows deleted
    """
    from chat.services import TypingService

    deleted = TypingService.purge_expired()
    logger.info(f"Purged {deleted} typing states")
    return deleted
