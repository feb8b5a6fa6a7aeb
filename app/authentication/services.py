"""
Authentication services.

This module provides the UserService class for syncing users from the
external identity provider, maintaining presence, and listing the user
directory.

Related files:
    - models.py: User
    - views.py: Sync, presence and directory endpoints

Notes:
    - The identity provider is the source of truth for email, name and image;
      every sync overwrites the local copy.
    - A sync racing another sync for the same subject hits the unique
      constraint on external_id and is retried once.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from django.utils import timezone

from core.decorators import retry_on_conflict
from core.services import BaseService, ServiceResult

if TYPE_CHECKING:
    from collections.abc import Iterable

    from django.db.models import QuerySet

    from authentication.models import User

logger = logging.getLogger(__name__)


class UserService(BaseService):
    """
    User identity and presence operations.

    Usage:
        from authentication.services import UserService

        result = UserService.sync_user(
            external_id="idp_123",
            email="ada@example.com",
            name="Ada Lovelace",
        )
        user = result.data

        UserService.set_online(user, True)
    """

    @classmethod
    @retry_on_conflict()
    def sync_user(
        cls,
        external_id: str,
        email: str,
        name: str = "",
        image_url: str = "",
    ) -> ServiceResult[User]:
        """
        Create or refresh the local user for an identity-provider subject.

        Lookup order:
            1. User with this external_id (profile refreshed)
            2. User with this email and no external_id yet (linked)
            3. Otherwise a new user is created

        Args:
            external_id: Subject id at the identity provider
            email: Email reported by the identity provider
            name: Display name
            image_url: Avatar URL

        Returns:
            ServiceResult with the User, or INVALID when the email is
            already linked to a different subject
        """
        from authentication.models import User

        external_id = (external_id or "").strip()
        email = User.objects.normalize_email((email or "").strip())
        if not external_id:
            return ServiceResult.invalid(
                "external_id is required", error_code="MISSING_EXTERNAL_ID"
            )
        if not email:
            return ServiceResult.invalid("email is required", error_code="MISSING_EMAIL")

        user = User.objects.filter(external_id=external_id).first()
        created = False

        if user is None:
            user = User.objects.filter(email__iexact=email).first()
            if user is not None and user.external_id:
                return ServiceResult.invalid(
                    "Email is linked to another account",
                    error_code="EMAIL_IN_USE",
                )

        if user is None:
            user = User.objects.create_user(
                email=email,
                external_id=external_id,
                name=name.strip(),
                image_url=image_url,
            )
            created = True
        else:
            user.external_id = external_id
            user.email = email
            user.name = name.strip()
            user.image_url = image_url
            user.save(
                update_fields=[
                    "external_id",
                    "email",
                    "name",
                    "image_url",
                    "updated_at",
                ]
            )

        logger.info(
            f"User {'created' if created else 'synced'}: {user.email} "
            f"(external_id={external_id})"
        )
        return ServiceResult.success(user)

    @classmethod
    def set_online(cls, user: User, online: bool) -> ServiceResult[User]:
        """
        Record a presence change for the user.

        last_seen_at is stamped on every change so clients can render
        "last seen" for offline users.
        """
        user.is_online = online
        user.last_seen_at = timezone.now()
        user.save(update_fields=["is_online", "last_seen_at", "updated_at"])

        logger.debug(f"Presence for {user.email}: {'online' if online else 'offline'}")
        return ServiceResult.success(user)

    @staticmethod
    def list_users(exclude: Iterable[int] | None = None) -> QuerySet[User]:
        """Active users ordered by name, optionally excluding some ids."""
        from authentication.models import User

        queryset = User.objects.filter(is_active=True)
        if exclude:
            queryset = queryset.exclude(id__in=list(exclude))
        return queryset.order_by("name", "email")
