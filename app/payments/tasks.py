"""
Celery tasks for payment processing.

This module provides async tasks for:
- Processing gateway webhook events
- Retrying failed (or never queued) webhook events
- Polling stale pending payments whose notification never arrived
- Expiring lapsed subscriptions and pro plans

Periodic schedules are stored in django-celery-beat (see migration
0002_periodic_tasks).

Usage:
    from payments.tasks import process_webhook_event

    # Queue a webhook for async processing
    process_webhook_event.delay(str(webhook_event_id))

    # Poll pending payments (typically via celery-beat)
    from payments.tasks import reconcile_pending_payments
    reconcile_pending_payments.delay()
"""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from celery import shared_task
from django.conf import settings
from django.db import transaction
from django.db.models import F, Value
from django.db.models.functions import Greatest
from django.utils import timezone

from creators.models import CreatorProfile
from payments.adapters import backoff_delay, is_retryable_gateway_error
from payments.exceptions import GatewayError, GatewayUnavailableError
from payments.models import Subscription, WebhookEvent
from payments.state_machines import SubscriptionStatus, WebhookEventStatus

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

STUCK_PROCESSING_THRESHOLD_MINUTES = 30
UNQUEUED_PENDING_THRESHOLD_MINUTES = 5
RETRY_BATCH_SIZE = 100


# =============================================================================
# Webhook Processing Tasks
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(GatewayUnavailableError,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": 5},
    acks_late=True,
)
def process_webhook_event(self, webhook_event_id: str) -> dict:
    """
    Process a gateway webhook event asynchronously.

    This task:
    1. Loads the WebhookEvent by ID
    2. Checks if already processed (idempotency)
    3. Marks as processing
    4. Dispatches to appropriate handler
    5. Marks as processed or failed

    Handler failures (payment not found yet, refund before confirmation)
    mark the event FAILED for retry_failed_webhook_events to pick up.

    Args:
        webhook_event_id: UUID of the WebhookEvent to process

    Returns:
        Dict with processing result status

    Raises:
        GatewayUnavailableError: Re-raised to trigger Celery retry
    """
    # Import here to avoid circular imports
    from payments.webhooks.handlers import dispatch_webhook

    if isinstance(webhook_event_id, str):
        webhook_event_id = UUID(webhook_event_id)

    try:
        webhook_event = WebhookEvent.objects.get(id=webhook_event_id)
    except WebhookEvent.DoesNotExist:
        logger.error(
            "WebhookEvent not found",
            extra={"webhook_event_id": str(webhook_event_id)},
        )
        return {"status": "not_found", "webhook_event_id": str(webhook_event_id)}

    if webhook_event.is_processed:
        logger.info(
            "WebhookEvent already processed, skipping",
            extra={
                "webhook_event_id": str(webhook_event_id),
                "event_key": webhook_event.event_key,
            },
        )
        return {
            "status": "already_processed",
            "webhook_event_id": str(webhook_event_id),
        }

    webhook_event.mark_processing()
    webhook_event.save()

    logger.info(
        f"Dispatching webhook: {webhook_event.event_type}",
        extra={
            "webhook_event_id": str(webhook_event_id),
            "event_key": webhook_event.event_key,
            "event_type": webhook_event.event_type,
            "retry_count": webhook_event.retry_count,
        },
    )

    try:
        result = dispatch_webhook(webhook_event)
    except Exception as e:
        # Unexpected exception - mark as failed and let Celery retry
        error_msg = f"{type(e).__name__}: {str(e)}"
        webhook_event.mark_failed(error_msg)
        webhook_event.save()
        logger.exception(
            "Webhook processing failed with exception",
            extra={
                "webhook_event_id": str(webhook_event_id),
                "event_key": webhook_event.event_key,
                "error": error_msg,
            },
        )
        raise

    if result.success:
        webhook_event.mark_processed()
        webhook_event.save()
        logger.info(
            "Webhook processed successfully",
            extra={
                "webhook_event_id": str(webhook_event_id),
                "event_key": webhook_event.event_key,
            },
        )
        return {
            "status": "processed",
            "webhook_event_id": str(webhook_event_id),
            "event_key": webhook_event.event_key,
        }

    error_msg = result.error or "Handler returned failure"
    webhook_event.mark_failed(error_msg)
    webhook_event.save()
    logger.warning(
        f"Webhook handler failed: {error_msg}",
        extra={
            "webhook_event_id": str(webhook_event_id),
            "event_key": webhook_event.event_key,
            "error_code": result.error_code,
        },
    )
    return {
        "status": "handler_failed",
        "webhook_event_id": str(webhook_event_id),
        "error": error_msg,
        "error_code": result.error_code,
    }


@shared_task
def retry_failed_webhook_events() -> dict:
    """
    Periodic task to re-queue webhook events that did not complete.

    Picks up:
    - FAILED events below WEBHOOK_MAX_RETRIES attempts
    - PROCESSING events stuck longer than the threshold (worker crash)
    - PENDING events that were never queued (broker outage)

    Returns:
        Dict with count of webhooks queued for retry
    """
    now = timezone.now()

    stuck = WebhookEvent.objects.filter(
        status=WebhookEventStatus.PROCESSING,
        updated_at__lt=now - timedelta(minutes=STUCK_PROCESSING_THRESHOLD_MINUTES),
    )
    reset_count = 0
    for webhook in stuck:
        webhook.mark_failed("Processing timed out - reset for retry")
        webhook.save()
        reset_count += 1

    failed_ids = list(
        WebhookEvent.objects.filter(
            status=WebhookEventStatus.FAILED,
            retry_count__lt=settings.WEBHOOK_MAX_RETRIES,
        )
        .order_by("created_at")
        .values_list("id", flat=True)[:RETRY_BATCH_SIZE]
    )
    unqueued_ids = list(
        WebhookEvent.objects.filter(
            status=WebhookEventStatus.PENDING,
            created_at__lt=now - timedelta(minutes=UNQUEUED_PENDING_THRESHOLD_MINUTES),
        )
        .order_by("created_at")
        .values_list("id", flat=True)[:RETRY_BATCH_SIZE]
    )

    for webhook_id in failed_ids + unqueued_ids:
        process_webhook_event.delay(str(webhook_id))

    queued_count = len(failed_ids) + len(unqueued_ids)
    logger.info(
        f"Queued {queued_count} webhooks for retry",
        extra={"queued_count": queued_count, "reset_count": reset_count},
    )
    return {"queued_count": queued_count, "reset_count": reset_count}


# =============================================================================
# Reconciliation Tasks
# =============================================================================


@shared_task(acks_late=True)
def reconcile_pending_payments(older_than_minutes: int | None = None) -> dict:
    """Poll the gateway for pending payments older than the threshold."""
    from payments.services import ReconciliationService

    result = ReconciliationService.sweep_pending(older_than_minutes=older_than_minutes)
    return {
        "checked": result.checked,
        "changed": result.changed,
        "errors": result.errors,
    }


@shared_task(bind=True, max_retries=3)
def poll_payment(self, payment_id: str) -> dict:
    """
    Poll a single payment (used by the admin and the poll endpoint).

    Transient gateway failures are retried with jittered backoff.
    """
    from payments.services import ReconciliationService

    try:
        outcome = ReconciliationService.poll(UUID(str(payment_id)))
    except GatewayError as e:
        if is_retryable_gateway_error(e):
            raise self.retry(exc=e, countdown=backoff_delay(self.request.retries))
        raise
    return {"payment_id": str(payment_id), "status": outcome.status, "changed": outcome.changed}


# =============================================================================
# Expiry Tasks
# =============================================================================


@shared_task
def expire_subscriptions() -> dict:
    """
    Mark ACTIVE subscriptions past their expiry as EXPIRED.

    Each expiry decrements the creator's subscriber_count (floored at 0).
    """
    expired_count = 0
    for subscription_id in Subscription.objects.lapsed().values_list("id", flat=True):
        with transaction.atomic():
            updated = Subscription.objects.filter(
                id=subscription_id,
                status=SubscriptionStatus.ACTIVE,
                expires_at__lte=timezone.now(),
            ).update(status=SubscriptionStatus.EXPIRED, updated_at=timezone.now())
            if not updated:
                continue
            creator_id = Subscription.objects.values_list("creator_id", flat=True).get(
                id=subscription_id
            )
            CreatorProfile.objects.filter(id=creator_id).update(
                subscriber_count=Greatest(F("subscriber_count") - 1, Value(0)),
                updated_at=timezone.now(),
            )
        expired_count += 1

    if expired_count:
        logger.info(
            f"Expired {expired_count} subscriptions",
            extra={"expired_count": expired_count},
        )
    return {"expired_count": expired_count}


@shared_task
def expire_pro_plans() -> dict:
    """Clear the pro flag on creators whose plan has lapsed."""
    now = timezone.now()
    expired_count = CreatorProfile.objects.filter(
        is_pro=True,
        pro_expires_at__isnull=False,
        pro_expires_at__lte=now,
    ).update(is_pro=False, updated_at=now)

    if expired_count:
        logger.info(
            f"Expired {expired_count} pro plans",
            extra={"expired_count": expired_count},
        )
    return {"expired_count": expired_count}
