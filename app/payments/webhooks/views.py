"""
Webhook endpoint view for the PIX gateway.

This module provides the HTTP endpoint for receiving gateway notifications.
The view:
1. Verifies the shared access token header
2. Creates/retrieves the WebhookEvent record (idempotent)
3. Queues the event for async processing
4. Returns immediately

Async processing keeps the response fast while the state changes run in
a Celery worker.

Usage:
    # In urls.py
    from payments.webhooks.views import gateway_webhook

    urlpatterns = [
        path("webhooks/asaas/", gateway_webhook, name="gateway_webhook"),
    ]
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging

from django.conf import settings
from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_POST

from kombu.exceptions import OperationalError

from payments.exceptions import InvalidWebhookPayloadError, WebhookAuthenticationError
from payments.models import WebhookEvent
from payments.state_machines import WebhookEventStatus


logger = logging.getLogger(__name__)

TOKEN_HEADER = "asaas-access-token"


def verify_token(request: HttpRequest) -> None:
    """
    Compare the shared token header with ASAAS_WEBHOOK_TOKEN.

    Raises:
        WebhookAuthenticationError: Token missing, mismatched or unconfigured
    """
    expected = settings.ASAAS_WEBHOOK_TOKEN
    received = request.headers.get(TOKEN_HEADER, "")
    if not expected or not received or not hmac.compare_digest(received.encode(), expected.encode()):
        raise WebhookAuthenticationError("Invalid webhook token")


def parse_payload(body: bytes) -> dict:
    """
    Decode the notification body.

    Raises:
        InvalidWebhookPayloadError: Not a JSON object with an ``event`` field
    """
    try:
        payload = json.loads(body)
    except (UnicodeDecodeError, ValueError):
        raise InvalidWebhookPayloadError("Body is not valid JSON")

    if not isinstance(payload, dict) or not isinstance(payload.get("event"), str):
        raise InvalidWebhookPayloadError("Notification has no event type")
    return payload


def event_key_for(payload: dict, body: bytes) -> str:
    """Gateway event id, or SHA-256 of the raw body when absent."""
    event_id = payload.get("id")
    if isinstance(event_id, str) and event_id:
        return event_id
    return hashlib.sha256(body).hexdigest()


@csrf_exempt
@require_POST
def gateway_webhook(request: HttpRequest) -> JsonResponse:
    """
    Receive and queue gateway notifications.

    Security:
    - Shared token header prevents spoofed notifications
    - CSRF exemption required for external webhooks
    - Only POST requests accepted

    Idempotency:
    - WebhookEvent.event_key is unique
    - Duplicate deliveries are acknowledged without reprocessing

    Returns:
        JsonResponse with status:
        - 200: {"received": true} (new or duplicate)
        - 400: Malformed payload
        - 401: Missing or wrong token
    """
    try:
        verify_token(request)
    except WebhookAuthenticationError as e:
        logger.warning(
            "Webhook token verification failed",
            extra={"remote_addr": request.META.get("REMOTE_ADDR")},
        )
        return JsonResponse(e.to_dict(), status=e.http_status)

    body = request.body
    try:
        payload = parse_payload(body)
    except InvalidWebhookPayloadError as e:
        logger.warning("Malformed webhook payload", extra={"error": e.message})
        return JsonResponse(e.to_dict(), status=e.http_status)

    event_key = event_key_for(payload, body)
    event_type = payload["event"]

    logger.info(
        f"Received gateway webhook: {event_type}",
        extra={"event_key": event_key, "event_type": event_type},
    )

    webhook_event, created = WebhookEvent.objects.get_or_create(
        event_key=event_key,
        defaults={
            "event_type": event_type,
            "payload": payload,
            "status": WebhookEventStatus.PENDING,
        },
    )

    if not created and webhook_event.is_processed:
        logger.info(
            "Webhook already processed, returning success",
            extra={"event_key": event_key},
        )
        return JsonResponse({"received": True})

    try:
        from payments.tasks import process_webhook_event

        process_webhook_event.delay(str(webhook_event.id))
    except OperationalError:
        # Stored as PENDING; the retry sweep picks it up
        logger.error(
            "Failed to queue webhook",
            extra={"event_key": event_key, "webhook_event_id": str(webhook_event.id)},
            exc_info=True,
        )

    return JsonResponse({"received": True})
