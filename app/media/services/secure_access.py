"""
SecureAccessService for entitlement-gated media URLs.

Stored media is never linked directly. Clients receive a short-lived
signed token that names the user, the resource and the storage key;
redeeming the token re-checks the user's entitlement and only then
mints a signed storage URL.

Token claims (HS256, SECURE_MEDIA_SIGNING_KEY):
    sub: user id
    kind: "message_ppv" | "content" | "pack"
    rid: resource id. Content and packs accept "<id>:<media index>"
    key: storage key of the object
    iat / exp: issued at / expiry (SECURE_MEDIA_TOKEN_TTL_SECONDS)

Usage:
    from media.services import SecureAccessService, secure_media_url

    token = SecureAccessService.issue_for_resource(user, "content", f"{content.id}:2")
    url = secure_media_url(token)

    access = SecureAccessService.resolve(token, caller_id=request.user.id)
    return HttpResponseRedirect(access.url)
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass
from typing import Any
from urllib.parse import unquote, urlparse

import jwt
from django.conf import settings
from django.core.files.storage import default_storage

from chat.models import Message
from content.models import Content, MediaPack
from core.exceptions import NotFoundError
from core.services import BaseService
from media.exceptions import AccessDeniedError, InvalidAccessTokenError
from payments.services.entitlement_service import EntitlementService

TOKEN_ALGORITHM = "HS256"
REQUIRED_CLAIMS = ["sub", "kind", "rid", "key", "iat", "exp"]


class ResourceKind:
    MESSAGE_PPV = "message_ppv"
    CONTENT = "content"
    PACK = "pack"

    ALL = (MESSAGE_PPV, CONTENT, PACK)


@dataclass(frozen=True)
class ResolvedAccess:
    url: str
    expires_in: int


def secure_media_url(token: str) -> str:
    """Public URL that redeems ``token``."""
    base = settings.PUBLIC_API_URL.rstrip("/")
    return f"{base}/api/v1/media/secure/{token}/"


def extract_storage_key(url: str) -> str | None:
    """
    Recover the storage key from a stored media URL.

    Handles virtual-hosted S3 URLs (key is the whole path), path-style
    URLs (first segment is the bucket) and local MEDIA_URL paths.
    Bare keys are returned unchanged.

    Returns:
        The key, or None when nothing usable remains
    """
    if not url:
        return None

    path = unquote(urlparse(url).path).lstrip("/")
    bucket = getattr(settings, "AWS_STORAGE_BUCKET_NAME", None)
    if bucket and path.startswith(f"{bucket}/"):
        path = path[len(bucket) + 1 :]

    media_prefix = settings.MEDIA_URL.strip("/")
    if media_prefix and path.startswith(f"{media_prefix}/"):
        path = path[len(media_prefix) + 1 :]

    return path or None


def split_resource_id(resource_id: str) -> tuple[str, int | None]:
    """Split ``"<id>:<index>"`` into ``(id, index)``; index is optional."""
    base, sep, index = str(resource_id).partition(":")
    if not sep:
        return base, None
    try:
        media_index = int(index)
    except ValueError:
        raise AccessDeniedError(
            "Malformed resource id",
            details={"resource_id": resource_id},
        ) from None
    if media_index < 0:
        raise AccessDeniedError(
            "Malformed resource id",
            details={"resource_id": resource_id},
        )
    return base, media_index


class SecureAccessService(BaseService):
    """
    Issue and redeem signed media access tokens.

    A token is only a bearer of identity: entitlement is checked again on
    every redemption, so revoking a purchase or letting a subscription
    lapse closes access to tokens already handed out.
    """

    # =========================================================================
    # Tokens
    # =========================================================================

    @classmethod
    def issue(cls, user_id, resource_kind: str, resource_id: str, storage_key: str) -> str:
        """Sign a token for ``user_id`` to fetch ``storage_key``."""
        if resource_kind not in ResourceKind.ALL:
            raise AccessDeniedError(
                f"Unknown resource kind: {resource_kind}",
                details={"kind": resource_kind},
            )

        now = int(time.time())
        claims = {
            "sub": str(user_id),
            "kind": resource_kind,
            "rid": str(resource_id),
            "key": storage_key,
            "iat": now,
            "exp": now + settings.SECURE_MEDIA_TOKEN_TTL_SECONDS,
        }
        return jwt.encode(claims, settings.SECURE_MEDIA_SIGNING_KEY, algorithm=TOKEN_ALGORITHM)

    @classmethod
    def decode(cls, token: str) -> dict:
        """
        Verify ``token`` and return its claims.

        Raises:
            InvalidAccessTokenError: Bad signature, expired or missing claims
        """
        try:
            claims = jwt.decode(
                token,
                settings.SECURE_MEDIA_SIGNING_KEY,
                algorithms=[TOKEN_ALGORITHM],
                options={"require": REQUIRED_CLAIMS},
            )
        except jwt.ExpiredSignatureError:
            raise InvalidAccessTokenError(
                "Access token has expired",
                error_code="ACCESS_TOKEN_EXPIRED",
            ) from None
        except jwt.InvalidTokenError as e:
            cls.get_logger().info(
                "Rejected secure media token",
                extra={"reason": str(e)},
            )
            raise InvalidAccessTokenError("Invalid access token") from None

        if claims["kind"] not in ResourceKind.ALL or not claims["key"]:
            raise InvalidAccessTokenError("Invalid access token")
        return claims

    @classmethod
    def resolve(cls, token: str, caller_id=None) -> ResolvedAccess:
        """
        Redeem ``token`` for a short-lived storage URL.

        Args:
            token: Token from issue()
            caller_id: Logged-in user when the request carries a session;
                None trusts the token subject

        Raises:
            InvalidAccessTokenError: Token does not verify
            AccessDeniedError: Caller mismatch or entitlement no longer held
        """
        claims = cls.decode(token)
        subject = claims["sub"]

        if caller_id is not None and str(caller_id) != subject:
            cls.get_logger().warning(
                "Secure media token used by another user",
                extra={"subject": subject, "caller_id": str(caller_id)},
            )
            raise AccessDeniedError("Token was issued to another user")

        if not cls.check_access(subject, claims["kind"], claims["rid"]):
            cls.get_logger().info(
                "Secure media access denied",
                extra={"subject": subject, "kind": claims["kind"], "rid": claims["rid"]},
            )
            raise AccessDeniedError(
                "You do not have access to this media",
                details={"kind": claims["kind"]},
            )

        expires_in = settings.SECURE_MEDIA_URL_TTL_SECONDS
        return ResolvedAccess(url=cls.signed_url(claims["key"], expires_in), expires_in=expires_in)

    @classmethod
    def issue_for_resource(cls, user, resource_kind: str, resource_id: str) -> str:
        """
        Check ``user``'s entitlement and issue a token for the resource.

        Raises:
            AccessDeniedError: Not entitled
            NotFoundError: The resource has no media
        """
        if resource_kind not in ResourceKind.ALL:
            raise AccessDeniedError(
                f"Unknown resource kind: {resource_kind}",
                details={"kind": resource_kind},
            )
        if not cls.check_access(user.id, resource_kind, resource_id):
            raise AccessDeniedError(
                "You do not have access to this media",
                details={"kind": resource_kind, "resource_id": str(resource_id)},
            )

        storage_key = cls.storage_key_for(resource_kind, resource_id)
        if not storage_key:
            raise NotFoundError(
                "Resource has no media",
                error_code="MEDIA_NOT_FOUND",
                details={"kind": resource_kind, "resource_id": str(resource_id)},
            )
        return cls.issue(user.id, resource_kind, resource_id, storage_key)

    # =========================================================================
    # Entitlement
    # =========================================================================

    @classmethod
    def check_access(cls, user_id, resource_kind: str, resource_id: str) -> bool:
        """Live entitlement check; unknown resources are never accessible."""
        try:
            user_id = uuid.UUID(str(user_id))
        except ValueError:
            return False

        resource, media_index = cls._load(resource_kind, resource_id)
        if resource is None:
            return False

        if resource_kind == ResourceKind.MESSAGE_PPV:
            return EntitlementService.has_message_access(user_id, resource)
        if resource_kind == ResourceKind.CONTENT:
            return EntitlementService.has_content_access(user_id, resource, media_index)
        return EntitlementService.has_pack_access(user_id, resource)

    @classmethod
    def storage_key_for(cls, resource_kind: str, resource_id: str) -> str | None:
        """Storage key of the resource's media (first item when no index)."""
        resource, media_index = cls._load(resource_kind, resource_id)
        if resource is None:
            return None

        if resource_kind == ResourceKind.MESSAGE_PPV:
            return resource.media_key or None

        index = media_index or 0
        if resource_kind == ResourceKind.CONTENT:
            item = resource.media_item(index)
        else:
            media = resource.media or []
            item = media[index] if index < len(media) else None
        return (item or {}).get("key") or None

    @classmethod
    def _load(cls, resource_kind: str, resource_id: str) -> tuple[Any, int | None]:
        """Fetch the resource named by ``resource_id``; (None, None) when absent."""
        base_id, media_index = split_resource_id(resource_id)
        try:
            base_id = uuid.UUID(base_id)
        except ValueError:
            return None, None

        if resource_kind == ResourceKind.MESSAGE_PPV:
            queryset = Message.objects.select_related("conversation__creator")
        elif resource_kind == ResourceKind.CONTENT:
            queryset = Content.objects.select_related("creator")
        elif resource_kind == ResourceKind.PACK:
            queryset = MediaPack.objects.select_related("creator")
        else:
            return None, None
        return queryset.filter(id=base_id).first(), media_index

    # =========================================================================
    # Storage
    # =========================================================================

    @classmethod
    def signed_url(cls, storage_key: str, expires_in: int) -> str:
        """
        Presigned GET for S3 storage, plain storage URL otherwise.

        Local storage serves MEDIA_URL directly, which is only used in
        development.
        """
        if not hasattr(default_storage, "bucket"):
            return default_storage.url(storage_key)

        try:
            client = default_storage.connection.meta.client
        except AttributeError:
            return default_storage.url(storage_key)

        return client.generate_presigned_url(
            "get_object",
            Params={"Bucket": default_storage.bucket_name, "Key": storage_key},
            ExpiresIn=expires_in,
        )
