"""
WebSocket URL routing for the chat application.

URL Patterns:
    ws/chat/<conversation_id>/ - Subscribe to change events of a conversation

Authentication:
    JWT token should be passed as query parameter: ?token=<jwt_access_token>
    JWTAuthMiddleware validates the token and attaches the user to the
    consumer's scope.
"""

from django.urls import path

from chat import consumers

websocket_urlpatterns = [
    path(
        "ws/chat/<int:conversation_id>/",
        consumers.ConversationConsumer.as_asgi(),
    ),
]
