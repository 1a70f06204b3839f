"""
Tests for secure media API views.
"""

import pytest
from django.urls import reverse, reverse_lazy

from content.models import ContentPurchase
from media.services import ResourceKind, SecureAccessService


@pytest.fixture
def auth_client(api_client, user):
    api_client.force_authenticate(user=user)
    return api_client


def redeem_url(token: str) -> str:
    return reverse("media:secure_redirect", kwargs={"token": token})


# =============================================================================
# Token Issue Tests
# =============================================================================


class TestSecureTokenCreateView:
    """Tests for POST /api/v1/media/secure/tokens/."""

    url = reverse_lazy("media:secure_token_create")

    def test_issues_token_for_purchased_content(self, auth_client, user, ppv_content):
        ContentPurchase.objects.create(user=user, content=ppv_content)

        response = auth_client.post(
            self.url,
            {"resource_kind": "content", "resource_id": f"{ppv_content.id}:1"},
            format="json",
        )

        assert response.status_code == 201
        body = response.json()
        assert body["expires_in"] == 3600
        assert body["url"] == f"https://api.example.com/api/v1/media/secure/{body['token']}/"
        assert SecureAccessService.decode(body["token"])["key"] == ppv_content.media[1]["key"]

    def test_not_entitled(self, auth_client, ppv_content):
        response = auth_client.post(
            self.url,
            {"resource_kind": "content", "resource_id": str(ppv_content.id)},
            format="json",
        )

        assert response.status_code == 403
        assert response.json()["error_code"] == "ACCESS_DENIED"

    def test_no_media(self, api_client, creator, ppv_content):
        api_client.force_authenticate(user=creator.user)

        response = api_client.post(
            self.url,
            {"resource_kind": "content", "resource_id": f"{ppv_content.id}:9"},
            format="json",
        )

        assert response.status_code == 404
        assert response.json()["error_code"] == "MEDIA_NOT_FOUND"

    @pytest.mark.parametrize(
        "payload",
        [
            {"resource_kind": "avatar", "resource_id": "abc"},
            {"resource_kind": "content", "resource_id": "abc:x"},
            {"resource_kind": "message_ppv", "resource_id": "abc:1"},
            {"resource_kind": "pack"},
        ],
    )
    def test_invalid_request(self, auth_client, payload):
        response = auth_client.post(self.url, payload, format="json")

        assert response.status_code == 400

    def test_requires_authentication(self, api_client, db):
        response = api_client.post(self.url, {"resource_kind": "pack", "resource_id": "x"}, format="json")

        assert response.status_code == 401


# =============================================================================
# Redeem Tests
# =============================================================================


class TestSecureMediaRedirectView:
    """Tests for GET /api/v1/media/secure/<token>/."""

    def test_anonymous_redirect(self, api_client, creator, pack):
        token = SecureAccessService.issue_for_resource(creator.user, ResourceKind.PACK, str(pack.id))

        response = api_client.get(redeem_url(token))

        assert response.status_code == 302
        assert response["Location"] == f"/media/{pack.media[0]['key']}"
        assert response["Cache-Control"] == "private, max-age=900"

    def test_session_user_must_match_subject(self, auth_client, creator, pack):
        token = SecureAccessService.issue_for_resource(creator.user, ResourceKind.PACK, str(pack.id))

        response = auth_client.get(redeem_url(token))

        assert response.status_code == 403

    def test_invalid_token(self, api_client, db):
        response = api_client.get(redeem_url("not-a-token"))

        assert response.status_code == 401
        assert response.json()["error_code"] == "INVALID_ACCESS_TOKEN"

    def test_revoked_access(self, api_client, user, ppv_content):
        purchase = ContentPurchase.objects.create(user=user, content=ppv_content)
        token = SecureAccessService.issue_for_resource(user, ResourceKind.CONTENT, str(ppv_content.id))
        purchase.revoke()
        purchase.save()

        response = api_client.get(redeem_url(token))

        assert response.status_code == 403
