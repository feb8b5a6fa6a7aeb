"""
Base service layer patterns for business logic encapsulation.

This module provides foundational patterns for the service layer:
- ServiceResult: Tagged result wrapper for consistent success/failure handling
- FailureKind: The failure taxonomy shared by every service
- BaseService: Base class with common service utilities

Service Layer Philosophy:
    Services encapsulate business logic separate from views and models.
    Views handle HTTP concerns, models handle data, services handle logic.

Pattern Comparison:
    - ServiceResult: Use for expected failures (missing records, ownership,
      validation, detected write conflicts)
    - Exceptions: Use for unexpected failures (database outages, bugs)

Usage:
    from core.services import BaseService, FailureKind, ServiceResult

    class MessageService(BaseService):
        @classmethod
        def edit(cls, message_id, user, content) -> ServiceResult[Message]:
            message = Message.objects.filter(id=message_id).first()
            if message is None:
                return ServiceResult.not_found(
                    "Message not found", error_code="MESSAGE_NOT_FOUND"
                )
            if message.sender_id != user.id:
                return ServiceResult.denied(
                    "You can only edit your own messages", error_code="NOT_AUTHOR"
                )
            ...
            return ServiceResult.success(message)

    # In view
    result = MessageService.edit(pk, request.user, content)
    if result.success:
        return Response(MessageSerializer(result.data).data)
    return Response(result.to_response(), status=result.http_status)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator
    from typing import Any

# Generic type for ServiceResult data
T = TypeVar("T")


class FailureKind(str, Enum):
    """
    Category of an expected service failure.

    NOT_FOUND: A referenced record does not exist
    DENIED: The caller may not perform the operation (ownership, membership)
    CONFLICT: A concurrent write was detected and the retry also failed
    INVALID: The input or the target's state makes the operation meaningless
    """

    NOT_FOUND = "not_found"
    DENIED = "denied"
    CONFLICT = "conflict"
    INVALID = "invalid"


# HTTP status used by views for each failure kind
FAILURE_HTTP_STATUS: dict[FailureKind, int] = {
    FailureKind.NOT_FOUND: 404,
    FailureKind.DENIED: 403,
    FailureKind.CONFLICT: 409,
    FailureKind.INVALID: 400,
}


@dataclass
class ServiceResult(Generic[T]):
    """
    Standard result wrapper for service operations.

    A result is either a success carrying ``data`` or a failure tagged with a
    ``kind``. Callers can never mistake a denied operation for a no-op because
    denial is a failure with ``kind=FailureKind.DENIED``.

    Attributes:
        success: Whether the operation succeeded
        data: Result data if successful (None if failed)
        error: Error message if failed (None if successful)
        error_code: Machine-readable error code for client handling
        kind: Failure category (None if successful)
        errors: Field-level errors for validation failures

    Usage:
        # Success case
        return ServiceResult.success(message)

        # Failure cases
        return ServiceResult.not_found("Message not found", "MESSAGE_NOT_FOUND")
        return ServiceResult.denied("Not your message", "NOT_AUTHOR")

        # Check result
        result = MessageService.delete(message_id, user)
        if result.is_denied:
            ...
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    kind: FailureKind | None = None
    errors: dict[str, list[str]] | None = field(default=None)

    @classmethod
    def ok(cls, data: T) -> ServiceResult[T]:
        """Alias for success() - use whichever reads better in context."""
        return cls(success=True, data=data)

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        """
        Create a successful result.

        Args:
            data: The result data

        Returns:
            ServiceResult with success=True and data set
        """
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        kind: FailureKind = FailureKind.INVALID,
        errors: dict[str, list[str]] | None = None,
    ) -> ServiceResult[T]:
        """
        Create a failed result.

        Args:
            error: Human-readable error message
            error_code: Machine-readable error code for client handling
            kind: Failure category (defaults to INVALID)
            errors: Field-level errors (for validation failures)

        Returns:
            ServiceResult with success=False and error details
        """
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            kind=kind,
            errors=errors,
        )

    @classmethod
    def not_found(cls, error: str, error_code: str = "NOT_FOUND") -> ServiceResult[T]:
        """Create a NOT_FOUND failure."""
        return cls.failure(error, error_code, kind=FailureKind.NOT_FOUND)

    @classmethod
    def denied(cls, error: str, error_code: str = "DENIED") -> ServiceResult[T]:
        """Create a DENIED failure."""
        return cls.failure(error, error_code, kind=FailureKind.DENIED)

    @classmethod
    def conflict(cls, error: str, error_code: str = "CONFLICT") -> ServiceResult[T]:
        """Create a CONFLICT failure."""
        return cls.failure(error, error_code, kind=FailureKind.CONFLICT)

    @classmethod
    def invalid(
        cls,
        error: str,
        error_code: str = "INVALID",
        errors: dict[str, list[str]] | None = None,
    ) -> ServiceResult[T]:
        """Create an INVALID failure."""
        return cls.failure(error, error_code, kind=FailureKind.INVALID, errors=errors)

    @property
    def is_not_found(self) -> bool:
        return self.kind == FailureKind.NOT_FOUND

    @property
    def is_denied(self) -> bool:
        return self.kind == FailureKind.DENIED

    @property
    def is_conflict(self) -> bool:
        return self.kind == FailureKind.CONFLICT

    @property
    def is_invalid(self) -> bool:
        return self.kind == FailureKind.INVALID

    @property
    def http_status(self) -> int:
        """
        HTTP status code matching this result.

        Returns 200 for successes and the status mapped to ``kind`` otherwise.
        """
        if self.success:
            return 200
        return FAILURE_HTTP_STATUS.get(self.kind, 400)

    def to_response(self) -> dict[str, Any]:
        """
        Convert to API response format.

        Returns:
            Dict with success status and data or error details
        """
        if self.success:
            return {"success": True, "data": self.data}

        response: dict[str, Any] = {
            "success": False,
            "error": self.error,
        }
        if self.error_code:
            response["error_code"] = self.error_code
        if self.kind:
            response["kind"] = self.kind.value
        if self.errors:
            response["errors"] = self.errors
        return response

    def map(self, func) -> ServiceResult:
        """
        Transform the data if successful.

        Example:
            result = MessageService.edit(message_id, user, content)
            serialized = result.map(lambda m: MessageSerializer(m).data)
        """
        if self.success and self.data is not None:
            return ServiceResult.success(func(self.data))
        return self  # type: ignore

    def __bool__(self) -> bool:
        """Allow using result in boolean context."""
        return self.success


class BaseService:
    """
    Base class for service layer classes.

    Provides common utilities for services:
    - Logging setup per service
    - Database transaction management

    Design Notes:
        - Use @classmethod (no instance state)
        - Services should be stateless
        - Use ServiceResult for expected failures
        - Raise exceptions for unexpected failures
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        Returns a logger named after the service class for
        easy filtering in logs.
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        All database operations within this context manager are
        wrapped in a transaction. If any operation fails, all
        changes are rolled back.

        Example:
            with cls.atomic():
                message = Message.objects.create(...)
                ConversationAggregateService.record_new_message(message)
                # If the aggregate update fails, the message is rolled back too
        """
        with transaction.atomic():
            yield
