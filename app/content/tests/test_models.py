"""
Tests for content models.
"""

import pytest
from django.db import IntegrityError

from content.models import ContentPurchase


class TestContentMedia:
    """Tests for Content.media_item() and media_item_price()."""

    def test_media_item(self, ppv_content):
        assert ppv_content.media_item(1)["type"] == "video"

    @pytest.mark.parametrize("index", [-1, 2])
    def test_out_of_range(self, ppv_content, index):
        assert ppv_content.media_item(index) is None
        assert ppv_content.media_item_price(index) == 0

    def test_item_price(self, ppv_content):
        assert ppv_content.media_item_price(0) == 0
        assert ppv_content.media_item_price(1) == 1200


class TestContentPurchaseConstraints:
    def test_one_whole_unlock_per_user(self, user, ppv_content):
        ContentPurchase.objects.create(user=user, content=ppv_content)

        with pytest.raises(IntegrityError):
            ContentPurchase.objects.create(user=user, content=ppv_content)

    def test_one_unlock_per_item(self, user, ppv_content):
        ContentPurchase.objects.create(user=user, content=ppv_content, media_index=1)

        with pytest.raises(IntegrityError):
            ContentPurchase.objects.create(user=user, content=ppv_content, media_index=1)

    def test_whole_and_item_unlocks_coexist(self, user, ppv_content):
        ContentPurchase.objects.create(user=user, content=ppv_content)
        ContentPurchase.objects.create(user=user, content=ppv_content, media_index=0)

        assert ContentPurchase.objects.filter(user=user).count() == 2


def test_revoke_keeps_row(user, ppv_content):
    purchase = ContentPurchase.objects.create(user=user, content=ppv_content)

    purchase.revoke()
    purchase.save()

    purchase.refresh_from_db()
    assert purchase.is_revoked
