"""
Authentication views.

This module provides API views for:
- Identity sync from the external identity provider
- Presence updates for the current user
- The user directory used to start conversations

Related files:
    - serializers.py: Request/response serialization
    - services.py: Business logic (UserService)
    - urls.py: URL routing

Note:
    Token issuance uses simplejwt's views mounted in config/urls.py:
    - Obtain: /api/v1/token/
    - Refresh: /api/v1/token/refresh/
"""

from drf_spectacular.utils import extend_schema, OpenApiResponse
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.tokens import RefreshToken

from authentication.serializers import (
    PresenceSerializer,
    UserSerializer,
    UserSyncSerializer,
)
from authentication.services import UserService


class UserSyncView(APIView):
    """
    Create or refresh a user from the identity provider's profile.

    URL: /api/v1/users/sync/

    Called by the client right after the identity provider signs the user
    in. Returns the user together with a JWT pair for the chat API.
    """

    permission_classes = [AllowAny]

    @extend_schema(
        summary="Sync user from identity provider",
        tags=["Users"],
        request=UserSyncSerializer,
        responses={
            200: UserSerializer,
            400: OpenApiResponse(description="Invalid identity payload"),
        },
    )
    def post(self, request):
        serializer = UserSyncSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = UserService.sync_user(**serializer.validated_data)
        if not result.success:
            return Response(result.to_response(), status=result.http_status)

        refresh = RefreshToken.for_user(result.data)
        return Response(
            {
                "user": UserSerializer(result.data).data,
                "access": str(refresh.access_token),
                "refresh": str(refresh),
            },
            status=status.HTTP_200_OK,
        )


class PresenceView(APIView):
    """
    Update the current user's online presence.

    URL: /api/v1/users/me/presence/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Set presence",
        tags=["Users"],
        request=PresenceSerializer,
        responses={200: UserSerializer},
    )
    def post(self, request):
        serializer = PresenceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = UserService.set_online(
            request.user, serializer.validated_data["is_online"]
        )
        return Response(UserSerializer(result.data).data)


class UserListView(APIView):
    """
    List active users other than the caller.

    URL: /api/v1/users/
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="List users",
        tags=["Users"],
        responses={200: UserSerializer(many=True)},
    )
    def get(self, request):
        users = UserService.list_users(exclude=[request.user.id])
        return Response(UserSerializer(users, many=True).data)
