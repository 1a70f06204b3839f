"""
DRF views for secure media access.

Endpoints:
    GET  /api/v1/media/secure/<token>/ - Redeem a token (302 to storage)
    POST /api/v1/media/secure/tokens/ - Issue a token for an entitled caller

The redeem endpoint is opened by browsers from <img>/<video> tags, so it
accepts anonymous requests and trusts the token subject. When the request
is authenticated the logged-in user must be the subject.
"""

from __future__ import annotations

import logging

from django.conf import settings
from django.http import HttpResponseRedirect
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from media.serializers import SecureTokenRequestSerializer, SecureTokenSerializer
from media.services import SecureAccessService, secure_media_url

logger = logging.getLogger(__name__)


class SecureMediaRedirectView(APIView):
    """
    Redeem a secure media token.

    Response:
        302 Found: Redirect to a short-lived storage URL
        401 Unauthorized: Invalid or expired token
        403 Forbidden: Token issued to another user, or access revoked
    """

    permission_classes = [AllowAny]

    @extend_schema(
        summary="Redeem secure media token",
        tags=["Media - Secure Access"],
        responses={
            302: OpenApiResponse(description="Redirect to signed storage URL"),
            401: OpenApiResponse(description="Invalid or expired token"),
            403: OpenApiResponse(description="Not entitled"),
        },
    )
    def get(self, request, token: str):
        caller_id = request.user.id if request.user.is_authenticated else None
        access = SecureAccessService.resolve(token, caller_id=caller_id)

        response = HttpResponseRedirect(access.url)
        response["Cache-Control"] = f"private, max-age={access.expires_in}"
        return response


class SecureTokenCreateView(APIView):
    """
    Issue a secure media token for the requesting user.

    Response:
        201 Created: Token, redeem URL and lifetime
        400 Bad Request: Malformed resource
        403 Forbidden: Not entitled to the resource
        404 Not Found: Resource has no media
    """

    permission_classes = [IsAuthenticated]

    @extend_schema(
        summary="Issue secure media token",
        tags=["Media - Secure Access"],
        request=SecureTokenRequestSerializer,
        responses={201: SecureTokenSerializer},
    )
    def post(self, request):
        serializer = SecureTokenRequestSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        token = SecureAccessService.issue_for_resource(
            request.user,
            data["resource_kind"],
            data["resource_id"],
        )
        logger.info(
            "Secure media token issued",
            extra={
                "user_id": str(request.user.id),
                "kind": data["resource_kind"],
                "resource_id": data["resource_id"],
            },
        )

        body = SecureTokenSerializer(
            {
                "token": token,
                "url": secure_media_url(token),
                "expires_in": settings.SECURE_MEDIA_TOKEN_TTL_SECONDS,
            }
        ).data
        return Response(body, status=status.HTTP_201_CREATED)
