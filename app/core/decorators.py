"""
Custom decorators for service functions.

This module provides generic infrastructure decorators for:
- Conflict retry around transactional service operations

These are domain-agnostic decorators that can be used by any service.

Usage:
    from core.decorators import retry_on_conflict

    class CounterService(BaseService):
        @classmethod
        @retry_on_conflict()
        def bump(cls, counter_id) -> ServiceResult[int]:
            ...
"""

from __future__ import annotations

import functools
import logging
from typing import Callable

from django.db import IntegrityError, OperationalError, transaction

from core.services import ServiceResult

logger = logging.getLogger(__name__)

# Exceptions that signal a concurrent write the database refused
CONFLICT_EXCEPTIONS = (IntegrityError, OperationalError)


def retry_on_conflict(attempts: int = 2):
    """
    Run a service operation in its own transaction, retrying on conflicts.

    Each attempt runs inside ``transaction.atomic()`` so a failed attempt is
    rolled back completely (a savepoint when already inside a transaction).
    Unique-constraint races, serialization failures and deadlocks surface as
    ``IntegrityError`` / ``OperationalError``. After the last attempt the conflict is
    reported as a CONFLICT ``ServiceResult`` instead of an exception.

    Args:
        attempts: Total number of attempts (default: first try + one retry)

    Returns:
        Decorator function

    Example:
        @classmethod
        @retry_on_conflict()
        def toggle_reaction(cls, message_id, user, emoji):
            ...
    """

    def decorator(func: Callable):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            last_exc: Exception | None = None
            for attempt in range(1, attempts + 1):
                try:
                    with transaction.atomic():
                        return func(*args, **kwargs)
                except CONFLICT_EXCEPTIONS as exc:
                    last_exc = exc
                    logger.warning(
                        f"Conflict in {func.__qualname__} "
                        f"(attempt {attempt}/{attempts}): {exc}"
                    )

            return ServiceResult.conflict(
                f"Concurrent update detected: {last_exc}",
                error_code="CONFLICT",
            )

        return wrapper

    return decorator
