"""
Account registration and profile endpoints.
"""
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework import status
from drf_spectacular.utils import extend_schema, OpenApiExample, OpenApiResponse

from common.throttling import AuthThrottle
from .serializers import RegisterSerializer, UserSerializer

import logging

logger = logging.getLogger('security')


# ============================
# Register
# ============================

@extend_schema(
    tags=['Accounts'],
    summary='Register a new account',
    description='''
    Creates a user account. A verification record in `not_started` status is
    created alongside it.

    **Business Rules:**
    - `account_type=business` adds the business licence to the required documents
      (except for purchasers)
    - Admin accounts cannot be self-registered
    ''',
    request=RegisterSerializer,
    examples=[
        OpenApiExample(
            'Business Producer',
            value={
                'email': 'farm@example.com',
                'full_name': 'Green Valley Farm',
                'user_type': 'producer',
                'account_type': 'business',
                'password': 'StrongPass123!',
                'password_confirm': 'StrongPass123!'
            },
            request_only=True
        ),
    ],
    responses={
        201: UserSerializer,
        400: OpenApiResponse(description='Invalid registration data'),
    }
)
@api_view(["POST"])
@permission_classes([AllowAny])
@throttle_classes([AuthThrottle])
def register_view(request):
    """Register a new user account."""
    serializer = RegisterSerializer(data=request.data)

    if not serializer.is_valid():
        logger.warning(f"Registration failed on fields: {sorted(serializer.errors)}")
        raise ValidationError(serializer.errors)

    user = serializer.save()
    logger.info(f"New user registered: {user.email} ({user.user_type}/{user.account_type})")
    return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)


# ============================
# My Account
# ============================

@extend_schema(
    tags=['Accounts'],
    summary='Get current account',
    responses={200: UserSerializer}
)
@api_view(["GET"])
@permission_classes([IsAuthenticated])
def me_view(request):
    """Return the authenticated user's account."""
    return Response(UserSerializer(request.user).data)
