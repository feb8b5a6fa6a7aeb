"""
Serializers for the authentication app.

This module provides DRF serializers for:
- User model (read operations)
- Identity sync requests
- Presence updates

Related files:
    - models.py: User model
    - views.py: Views that use these serializers
"""

from rest_framework import serializers

from authentication.models import User


class UserSerializer(serializers.ModelSerializer):
    """
    Serializer for User model (read operations).

    Used for the user directory and anywhere a user is embedded in
    chat payloads.
    """

    class Meta:
        model = User
        fields = [
            "id",
            "email",
            "name",
            "image_url",
            "is_online",
            "last_seen_at",
        ]
        read_only_fields = fields


class UserSyncSerializer(serializers.Serializer):
    """
    Request body for syncing a user from the identity provider.
    """

    external_id = serializers.CharField(max_length=255)
    email = serializers.EmailField()
    name = serializers.CharField(max_length=150, required=False, allow_blank=True, default="")
    image_url = serializers.URLField(
        max_length=500, required=False, allow_blank=True, default=""
    )


class PresenceSerializer(serializers.Serializer):
    """Request body for presence updates."""

    is_online = serializers.BooleanField()
