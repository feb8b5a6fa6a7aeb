"""
Constants and configuration for chat module features.

This module centralizes configuration values for:
- Message operations (content limits, deleted-message placeholder)
- Reaction management (emoji restrictions)
- Typing presence (expiry of typing indicators)
- Live update groups (Channels group naming)

Import example:
    from chat.constants import MESSAGE_CONFIG, REACTION_CONFIG, TYPING_CONFIG
"""

from typing import Final


# =============================================================================
# Message Configuration
# =============================================================================


class MESSAGE_CONFIG:
    """Configuration for message operations."""

    # Content limits
    MAX_CONTENT_LENGTH: Final[int] = 10000  # Characters
    MIN_CONTENT_LENGTH: Final[int] = 1

    # Shown instead of content to everyone except the sender
    DELETED_PLACEHOLDER: Final[str] = "[Message deleted]"

    # Page size for message listing
    DEFAULT_PAGE_SIZE: Final[int] = 50
    MAX_PAGE_SIZE: Final[int] = 200


# =============================================================================
# Reaction Configuration
# =============================================================================


class REACTION_CONFIG:
    """Configuration for message reactions."""

    # Max code points for a single emoji; matches MessageReaction.emoji.
    # ZWJ sequences with skin tones run past ten.
    MAX_EMOJI_LENGTH: Final[int] = 32

    # None = allow any emoji; a tuple restricts reactions to those symbols
    ALLOWED_EMOJIS: Final[tuple | None] = None


# =============================================================================
# Typing Configuration
# =============================================================================


class TYPING_CONFIG:
    """Configuration for typing indicators."""

    # A typing flag not refreshed within this window is treated as cleared
    TYPING_TTL_SECONDS: Final[int] = 5


# =============================================================================
# Live Update Configuration
# =============================================================================


class BROADCAST_CONFIG:
    """Configuration for conversation change broadcasts."""

    GROUP_PREFIX: Final[str] = "conversation"
    EVENT_TYPE: Final[str] = "conversation.changed"
