"""
Core views - current user.
"""
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.authz.serializers import ProfileSerializer


class CurrentUserView(APIView):
    """
    Current authenticated user profile endpoint.

    GET /api/auth/me/ - Returns the staff profile of the authenticated user.

    The frontend calls this after JWT login and uses `role` to decide which
    screens to show; the API stays the authorization authority.

    Response format:
    {
        "id": "uuid",
        "email": "user@example.com",
        "role": "doctor",
        ...
    }
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        profile = getattr(request.user, 'profile', None)
        if profile is None:
            return Response(
                {'error': 'Aucun profil associé à ce compte'},
                status=status.HTTP_404_NOT_FOUND
            )
        return Response(ProfileSerializer(profile).data, status=status.HTTP_200_OK)
