"""
Chat app for real-time messaging.

This app handles:
- Conversations (direct and group)
- Message sending, editing, deletion and reactions
- Per-user unread counters and typing indicators
- WebSocket change events

Related apps:
    - authentication: User model for participants
    - core: ServiceResult and conflict retry

WebSocket Support:
    Uses Django Channels for real-time communication.
    See consumers.py for WebSocket handlers.
    See routing.py for WebSocket URL patterns.

Usage:
    from chat.services import ConversationService, MessageService

    # Create conversation
    result = ConversationService.create_conversation(alice, [bob.id])

    # Send message
    result = MessageService.send(result.data.id, alice, "Hello!")
"""
