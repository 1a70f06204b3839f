"""
Typed payment metadata.

Payment.metadata is a JSON column whose shape depends on the payment kind.
It is only read and written through the variants below; no code looks at
raw keys.

Variants (tagged union):
    subscription: SubscriptionTerms(duration_months)
    ppv:          ContentUnlock(content_id)
                  MediaItemUnlock(content_id, media_index)
                  MessageUnlock(message_id)
    tip:          TipDetails(message?, content_id?)
    pack:         PackUnlock(pack_id, message_id?)
    pro_plan:     ProPlanTerms(days)

The three ppv variants are stored with an explicit ``variant`` tag, so a
MediaItemUnlock is never mistaken for a ContentUnlock because of a missing
key.

Usage:
    from payments.types import MediaItemUnlock, parse_metadata

    payment.metadata = MediaItemUnlock(content_id=content.id, media_index=2).to_metadata()

    terms = parse_metadata(payment.kind, payment.metadata)
    if isinstance(terms, MediaItemUnlock):
        ...
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Union

from payments.exceptions import InvalidPaymentMetadataError
from payments.state_machines import PaymentKind

ALLOWED_DURATIONS = (1, 3, 6, 12)
MAX_TIP_MESSAGE_LENGTH = 500


# =============================================================================
# Field helpers
# =============================================================================


def _require(metadata: dict[str, Any], key: str) -> Any:
    if key not in metadata or metadata[key] is None:
        raise InvalidPaymentMetadataError(
            f"Payment metadata is missing '{key}'",
            details={"field": key},
        )
    return metadata[key]


def _as_uuid(value: Any, key: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise InvalidPaymentMetadataError(
            f"Payment metadata field '{key}' is not a valid id",
            details={"field": key, "value": str(value)},
        )


def _as_optional_uuid(value: Any, key: str) -> uuid.UUID | None:
    if value is None:
        return None
    return _as_uuid(value, key)


def _as_int(value: Any, key: str, minimum: int = 0) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < minimum:
        raise InvalidPaymentMetadataError(
            f"Payment metadata field '{key}' must be an integer >= {minimum}",
            details={"field": key, "value": value},
        )
    return value


# =============================================================================
# Variants
# =============================================================================


@dataclass(frozen=True)
class SubscriptionTerms:
    """Subscription to a creator for ``duration_months`` months."""

    duration_months: int

    def __post_init__(self) -> None:
        if self.duration_months not in ALLOWED_DURATIONS:
            raise InvalidPaymentMetadataError(
                "Unsupported subscription duration",
                details={"duration_months": self.duration_months, "allowed": list(ALLOWED_DURATIONS)},
            )

    def to_metadata(self) -> dict[str, Any]:
        return {"duration_months": self.duration_months}

    @classmethod
    def from_metadata(cls, metadata: dict[str, Any]) -> SubscriptionTerms:
        return cls(duration_months=_as_int(_require(metadata, "duration_months"), "duration_months", 1))


@dataclass(frozen=True)
class ContentUnlock:
    """Unlock of a whole Content."""

    content_id: uuid.UUID

    variant = "content"

    def to_metadata(self) -> dict[str, Any]:
        return {"variant": self.variant, "content_id": str(self.content_id)}

    @classmethod
    def from_metadata(cls, metadata: dict[str, Any]) -> ContentUnlock:
        return cls(content_id=_as_uuid(_require(metadata, "content_id"), "content_id"))


@dataclass(frozen=True)
class MediaItemUnlock:
    """Unlock of one media item of a Content."""

    content_id: uuid.UUID
    media_index: int

    variant = "media_item"

    def __post_init__(self) -> None:
        _as_int(self.media_index, "media_index")

    def to_metadata(self) -> dict[str, Any]:
        return {
            "variant": self.variant,
            "content_id": str(self.content_id),
            "media_index": self.media_index,
        }

    @classmethod
    def from_metadata(cls, metadata: dict[str, Any]) -> MediaItemUnlock:
        return cls(
            content_id=_as_uuid(_require(metadata, "content_id"), "content_id"),
            media_index=_as_int(_require(metadata, "media_index"), "media_index"),
        )


@dataclass(frozen=True)
class MessageUnlock:
    """Unlock of a paid chat message."""

    message_id: uuid.UUID

    variant = "message"

    def to_metadata(self) -> dict[str, Any]:
        return {"variant": self.variant, "message_id": str(self.message_id)}

    @classmethod
    def from_metadata(cls, metadata: dict[str, Any]) -> MessageUnlock:
        return cls(message_id=_as_uuid(_require(metadata, "message_id"), "message_id"))


@dataclass(frozen=True)
class TipDetails:
    """A tip, optionally with a note and the content it was sent from."""

    message: str | None = None
    content_id: uuid.UUID | None = None

    def __post_init__(self) -> None:
        if self.message is not None and len(self.message) > MAX_TIP_MESSAGE_LENGTH:
            raise InvalidPaymentMetadataError(
                "Tip message is too long",
                details={"max_length": MAX_TIP_MESSAGE_LENGTH},
            )

    def to_metadata(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.message:
            data["message"] = self.message
        if self.content_id:
            data["content_id"] = str(self.content_id)
        return data

    @classmethod
    def from_metadata(cls, metadata: dict[str, Any]) -> TipDetails:
        message = metadata.get("message")
        if message is not None and not isinstance(message, str):
            raise InvalidPaymentMetadataError(
                "Tip message must be text",
                details={"field": "message"},
            )
        return cls(
            message=message,
            content_id=_as_optional_uuid(metadata.get("content_id"), "content_id"),
        )


@dataclass(frozen=True)
class PackUnlock:
    """Purchase of a MediaPack, optionally offered through a chat message."""

    pack_id: uuid.UUID
    message_id: uuid.UUID | None = None

    def to_metadata(self) -> dict[str, Any]:
        data: dict[str, Any] = {"pack_id": str(self.pack_id)}
        if self.message_id:
            data["message_id"] = str(self.message_id)
        return data

    @classmethod
    def from_metadata(cls, metadata: dict[str, Any]) -> PackUnlock:
        return cls(
            pack_id=_as_uuid(_require(metadata, "pack_id"), "pack_id"),
            message_id=_as_optional_uuid(metadata.get("message_id"), "message_id"),
        )


@dataclass(frozen=True)
class ProPlanTerms:
    """Pro plan upgrade lasting ``days`` days."""

    days: int

    def __post_init__(self) -> None:
        _as_int(self.days, "days", 1)

    def to_metadata(self) -> dict[str, Any]:
        return {"days": self.days}

    @classmethod
    def from_metadata(cls, metadata: dict[str, Any]) -> ProPlanTerms:
        return cls(days=_as_int(_require(metadata, "days"), "days", 1))


PaymentTerms = Union[
    SubscriptionTerms,
    ContentUnlock,
    MediaItemUnlock,
    MessageUnlock,
    TipDetails,
    PackUnlock,
    ProPlanTerms,
]

PPV_VARIANTS: dict[str, type] = {
    ContentUnlock.variant: ContentUnlock,
    MediaItemUnlock.variant: MediaItemUnlock,
    MessageUnlock.variant: MessageUnlock,
}

KIND_VARIANTS: dict[str, type] = {
    PaymentKind.SUBSCRIPTION.value: SubscriptionTerms,
    PaymentKind.TIP.value: TipDetails,
    PaymentKind.PACK.value: PackUnlock,
    PaymentKind.PRO_PLAN.value: ProPlanTerms,
}


def kind_for(terms: PaymentTerms) -> str:
    """PaymentKind value a metadata variant belongs to."""
    if isinstance(terms, (ContentUnlock, MediaItemUnlock, MessageUnlock)):
        return PaymentKind.PPV.value
    for kind, variant_cls in KIND_VARIANTS.items():
        if isinstance(terms, variant_cls):
            return kind
    raise InvalidPaymentMetadataError(
        "Unknown metadata variant",
        details={"type": type(terms).__name__},
    )


def parse_metadata(kind: str, metadata: dict[str, Any] | None) -> PaymentTerms:
    """
    Parse the metadata stored on a Payment into its typed variant.

    Args:
        kind: PaymentKind value of the payment
        metadata: Raw JSON object

    Raises:
        InvalidPaymentMetadataError: unknown kind, unknown ppv variant,
            missing or malformed fields
    """
    if not isinstance(metadata, dict):
        raise InvalidPaymentMetadataError(
            "Payment metadata must be an object",
            details={"kind": str(kind)},
        )

    kind = str(kind)
    if kind == PaymentKind.PPV.value:
        variant = metadata.get("variant")
        variant_cls = PPV_VARIANTS.get(variant)
        if variant_cls is None:
            raise InvalidPaymentMetadataError(
                "Unknown ppv metadata variant",
                details={"variant": variant, "allowed": sorted(PPV_VARIANTS)},
            )
        return variant_cls.from_metadata(metadata)

    variant_cls = KIND_VARIANTS.get(kind)
    if variant_cls is None:
        raise InvalidPaymentMetadataError(
            f"Unknown payment kind: {kind}",
            details={"kind": kind},
        )
    return variant_cls.from_metadata(metadata)
