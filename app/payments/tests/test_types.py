"""
Tests for typed payment metadata.
"""

import uuid

import pytest

from payments.exceptions import InvalidPaymentMetadataError
from payments.state_machines import PaymentKind
from payments.types import (
    ContentUnlock,
    MediaItemUnlock,
    MessageUnlock,
    PackUnlock,
    ProPlanTerms,
    SubscriptionTerms,
    TipDetails,
    kind_for,
    parse_metadata,
)


class TestParseMetadata:
    """Tests for parse_metadata()."""

    def test_subscription(self):
        terms = parse_metadata(PaymentKind.SUBSCRIPTION, {"duration_months": 6})

        assert terms == SubscriptionTerms(duration_months=6)

    def test_ppv_variants_are_told_apart_by_tag(self):
        """A media item unlock must not be read as a whole-content unlock."""
        content_id = uuid.uuid4()

        whole = parse_metadata(
            PaymentKind.PPV, {"variant": "content", "content_id": str(content_id)}
        )
        item = parse_metadata(
            PaymentKind.PPV,
            {"variant": "media_item", "content_id": str(content_id), "media_index": 0},
        )

        assert whole == ContentUnlock(content_id=content_id)
        assert item == MediaItemUnlock(content_id=content_id, media_index=0)

    def test_message_unlock(self):
        message_id = uuid.uuid4()
        terms = parse_metadata(
            PaymentKind.PPV, {"variant": "message", "message_id": str(message_id)}
        )

        assert isinstance(terms, MessageUnlock)
        assert terms.message_id == message_id

    def test_ppv_without_variant_tag(self):
        with pytest.raises(InvalidPaymentMetadataError):
            parse_metadata(PaymentKind.PPV, {"content_id": str(uuid.uuid4())})

    def test_tip_fields_are_optional(self):
        assert parse_metadata(PaymentKind.TIP, {}) == TipDetails()

    def test_pack_with_message(self):
        pack_id, message_id = uuid.uuid4(), uuid.uuid4()
        terms = parse_metadata(
            PaymentKind.PACK, {"pack_id": str(pack_id), "message_id": str(message_id)}
        )

        assert terms == PackUnlock(pack_id=pack_id, message_id=message_id)

    def test_pro_plan(self):
        assert parse_metadata(PaymentKind.PRO_PLAN, {"days": 30}) == ProPlanTerms(days=30)

    @pytest.mark.parametrize(
        "kind,metadata",
        [
            (PaymentKind.SUBSCRIPTION, {}),
            (PaymentKind.SUBSCRIPTION, {"duration_months": 2}),
            (PaymentKind.SUBSCRIPTION, {"duration_months": "3"}),
            (PaymentKind.PPV, {"variant": "media_item", "content_id": str(uuid.uuid4())}),
            (PaymentKind.PPV, {"variant": "media_item", "content_id": str(uuid.uuid4()), "media_index": -1}),
            (PaymentKind.PPV, {"variant": "content", "content_id": "not-a-uuid"}),
            (PaymentKind.PACK, {}),
            (PaymentKind.PRO_PLAN, {"days": 0}),
            (PaymentKind.TIP, {"message": 42}),
            (PaymentKind.TIP, {"message": "x" * 501}),
            ("donation", {}),
        ],
    )
    def test_rejects_malformed_metadata(self, kind, metadata):
        with pytest.raises(InvalidPaymentMetadataError):
            parse_metadata(kind, metadata)

    def test_rejects_non_object(self):
        with pytest.raises(InvalidPaymentMetadataError):
            parse_metadata(PaymentKind.TIP, ["not", "a", "dict"])


class TestToMetadata:
    def test_empty_tip_serializes_to_empty_object(self):
        assert TipDetails().to_metadata() == {}


class TestKindFor:
    @pytest.mark.parametrize(
        "terms,kind",
        [
            (SubscriptionTerms(duration_months=1), PaymentKind.SUBSCRIPTION),
            (MediaItemUnlock(content_id=uuid.uuid4(), media_index=0), PaymentKind.PPV),
            (MessageUnlock(message_id=uuid.uuid4()), PaymentKind.PPV),
            (TipDetails(), PaymentKind.TIP),
            (PackUnlock(pack_id=uuid.uuid4()), PaymentKind.PACK),
            (ProPlanTerms(days=30), PaymentKind.PRO_PLAN),
        ],
    )
    def test_maps_variant_to_kind(self, terms, kind):
        assert kind_for(terms) == kind

    def test_unknown_variant(self):
        with pytest.raises(InvalidPaymentMetadataError):
            kind_for(object())
