"""
URL configuration for authentication app.

URL structure:
    /api/v1/users/                  - User directory (GET)
    /api/v1/users/sync/             - Identity sync (POST)
    /api/v1/users/me/presence/      - Presence update (POST)
"""

from django.urls import path

from authentication.views import PresenceView, UserListView, UserSyncView

app_name = "authentication"

urlpatterns = [
    path("", UserListView.as_view(), name="user-list"),
    path("sync/", UserSyncView.as_view(), name="user-sync"),
    path("me/presence/", PresenceView.as_view(), name="presence"),
]
