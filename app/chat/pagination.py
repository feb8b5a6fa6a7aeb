"""
Pagination classes for chat API.

This module provides cursor-based pagination for the chat system:
- MessageCursorPagination: For message lists (oldest first)

Cursor-based pagination keeps pages stable while new messages arrive,
which matters for clients that re-issue the query on every change event.
"""

from rest_framework.pagination import CursorPagination

from chat.constants import MESSAGE_CONFIG


class MessageCursorPagination(CursorPagination):
    """
    Cursor pagination for message lists.

    Orders messages oldest-first for natural chat reading experience.
    Uses (timestamp, id) for stable cursor position.

    Query parameters:
        cursor: Encoded cursor for position
        page_size: Number of messages (optional override)
    """

    page_size = MESSAGE_CONFIG.DEFAULT_PAGE_SIZE
    max_page_size = MESSAGE_CONFIG.MAX_PAGE_SIZE
    page_size_query_param = "page_size"
    ordering = ("timestamp", "id")
    cursor_query_param = "cursor"
