"""
Authentication views for dashboard users.

Token issuing and refresh are SimpleJWT's own views (see accounts.urls);
this module only adds the profile endpoint.
"""
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from .serializers import UserSerializer


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def me(request):
    """
    Current user profile.

    GET /api/v1/auth/me/
    """
    return Response({'user': UserSerializer(request.user).data})
