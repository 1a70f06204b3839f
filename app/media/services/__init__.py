"""Media services for entitlement-gated access to stored media."""

from media.services.secure_access import (
    ResolvedAccess,
    ResourceKind,
    SecureAccessService,
    extract_storage_key,
    secure_media_url,
)

__all__ = [
    "ResolvedAccess",
    "ResourceKind",
    "SecureAccessService",
    "extract_storage_key",
    "secure_media_url",
]
