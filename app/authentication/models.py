"""
Authentication models.

This module defines the User model for the chat backend:
- User: Email-based user carrying identity-provider and presence attributes

Identity is provisioned by an external identity provider. On first sign-in the
client syncs the provider's profile (see UserService.sync_user), which creates
or refreshes the local User row keyed by ``external_id``.

Related files:
    - managers.py: Custom user manager for email-based creation
    - services.py: UserService (identity sync, presence)
"""

from django.contrib.auth.models import AbstractBaseUser, PermissionsMixin
from django.db import models

from authentication.managers import UserManager


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as the primary identifier.

    Users are never hard-deleted by the chat system; presence fields are
    mutated as clients connect and disconnect.

    Fields:
        email: Primary identifier, unique, used for login
        external_id: Subject id at the external identity provider (nullable
            for locally created accounts such as admins)
        name: Display name
        image_url: Avatar URL supplied by the identity provider
        is_online: Whether the user currently has a connected client
        last_seen_at: Last time presence was updated
        is_active: Whether the user account is active
        is_staff: Whether the user can access Django admin
        date_joined: When the user account was created
        updated_at: When the user record was last modified
    """

    email = models.EmailField(
        unique=True,
        db_index=True,
        max_length=254,
        help_text="User's email address (primary identifier)",
    )

    external_id = models.CharField(
        max_length=255,
        unique=True,
        null=True,
        blank=True,
        help_text="Subject identifier issued by the external identity provider",
    )

    name = models.CharField(
        max_length=150,
        blank=True,
        default="",
        help_text="Display name",
    )

    image_url = models.URLField(
        max_length=500,
        blank=True,
        default="",
        help_text="Avatar image URL",
    )

    # Presence
    is_online = models.BooleanField(
        default=False,
        help_text="Whether the user currently has a connected client",
    )
    last_seen_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Last time the user's presence changed",
    )

    # Account status flags
    is_active = models.BooleanField(
        default=True,
        help_text="Whether this user account is active. Deselect instead of deleting.",
    )
    is_staff = models.BooleanField(
        default=False,
        help_text="Whether the user can access the admin site.",
    )

    # Timestamps
    date_joined = models.DateTimeField(
        auto_now_add=True,
        help_text="When the user account was created",
    )
    updated_at = models.DateTimeField(
        auto_now=True,
        help_text="When the user record was last modified",
    )

    USERNAME_FIELD = "email"
    REQUIRED_FIELDS = []

    objects = UserManager()

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"
        ordering = ["name", "email"]

    def __str__(self):
        """Return the user's email as string representation."""
        return self.email

    def get_full_name(self):
        """Return the display name, or email if no name is set."""
        return self.name or self.email

    def get_short_name(self):
        """Return the first word of the name, or the email local part."""
        if self.name:
            return self.name.split()[0]
        return self.email.split("@")[0]
