"""
Serializers for secure media access.

Provides:
- SecureTokenRequestSerializer: Resource to issue a token for
- SecureTokenSerializer: Issued token and its redeem URL
"""

from __future__ import annotations

from rest_framework import serializers

from media.services import ResourceKind


class SecureTokenRequestSerializer(serializers.Serializer):
    """
    Request a secure access token.

    ``resource_id`` is the message, content or pack id. Content and packs
    take an optional media index suffix: ``"<content_id>:2"``.
    """

    resource_kind = serializers.ChoiceField(choices=ResourceKind.ALL)
    resource_id = serializers.CharField(max_length=64)

    def validate_resource_id(self, value: str) -> str:
        base, _, index = value.partition(":")
        if not base:
            raise serializers.ValidationError("Resource id is required.")
        if index and not index.isdigit():
            raise serializers.ValidationError("Media index must be a non-negative integer.")
        return value

    def validate(self, attrs: dict) -> dict:
        if attrs["resource_kind"] == ResourceKind.MESSAGE_PPV and ":" in attrs["resource_id"]:
            raise serializers.ValidationError(
                {"resource_id": "Messages do not take a media index."}
            )
        return attrs


class SecureTokenSerializer(serializers.Serializer):
    token = serializers.CharField()
    url = serializers.URLField()
    expires_in = serializers.IntegerField()
