"""
Authentication application.

This app owns the User model and the identity/presence operations the chat
client needs: syncing a user from the external identity provider, toggling
online presence, and listing the user directory.

Key components:
    - User model: Email-based user with identity-provider and presence fields
    - UserService: sync_user, set_online, list_users

Usage:
    from authentication.models import User
    from authentication.services import UserService
"""
