"""
WebhookEvent model for gateway notification tracking.

Stores every authenticated notification received from the PIX gateway for
idempotent processing and audit trails. The unique event_key constraint
ensures duplicate deliveries are detected.

Usage:
    from payments.models import WebhookEvent
    from payments.state_machines import WebhookEventStatus

    event, created = WebhookEvent.objects.get_or_create(
        event_key=payload["id"],
        defaults={"event_type": payload["event"], "payload": payload},
    )

    if not created and event.is_processed:
        return  # duplicate delivery
"""

from __future__ import annotations

from django.conf import settings
from django.db import models
from django.utils import timezone

from core.models import BaseModel
from core.model_mixins import UUIDPrimaryKeyMixin

from payments.state_machines import WebhookEventStatus


class WebhookEvent(UUIDPrimaryKeyMixin, BaseModel):
    """
    Tracks gateway notifications for idempotent processing.

    Processing Flow:
        1. Notification arrives, shared token verified
        2. Insert/get WebhookEvent by event_key
        3. Queue process_webhook_event (Celery)
        4. Task skips events already PROCESSED
        5. Set status to PROCESSING, route to handler
        6. Set status to PROCESSED or FAILED
        7. FAILED events are retried by retry_failed_webhook_events

    Fields:
        event_key: Gateway event id, or SHA-256 of the payload when absent
        event_type: Gateway event name (e.g. PAYMENT_CONFIRMED)
        payload: Full JSON body
        status: Processing status
        processed_at: When the event was successfully processed
        error_message: Error details if processing failed
        retry_count: Number of processing attempts
    """

    event_key = models.CharField(
        max_length=255,
        unique=True,
        help_text="Gateway event id or payload hash - unique for idempotency",
    )

    event_type = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Gateway event type (e.g., 'PAYMENT_CONFIRMED')",
    )

    payload = models.JSONField(
        help_text="Full notification body (JSON)",
    )

    status = models.CharField(
        max_length=20,
        choices=WebhookEventStatus.choices,
        default=WebhookEventStatus.PENDING,
        db_index=True,
    )

    processed_at = models.DateTimeField(null=True, blank=True)

    error_message = models.TextField(null=True, blank=True)

    retry_count = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of processing attempts",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Webhook Event"
        verbose_name_plural = "Webhook Events"
        indexes = [
            models.Index(fields=["status", "created_at"], name="webhook_status_created_idx"),
            models.Index(fields=["status", "retry_count"], name="webhook_status_retry_idx"),
        ]

    def __str__(self) -> str:
        return f"WebhookEvent({self.event_key}, {self.event_type})"

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_processed(self) -> bool:
        return self.status == WebhookEventStatus.PROCESSED

    @property
    def is_failed(self) -> bool:
        return self.status == WebhookEventStatus.FAILED

    @property
    def can_retry(self) -> bool:
        """Failed with fewer attempts than WEBHOOK_MAX_RETRIES."""
        return self.is_failed and self.retry_count < settings.WEBHOOK_MAX_RETRIES

    # ==========================================================================
    # Helper Methods
    # ==========================================================================

    def mark_processing(self) -> None:
        """Note: Does not save - caller must save after calling."""
        self.status = WebhookEventStatus.PROCESSING
        self.retry_count += 1

    def mark_processed(self) -> None:
        """Note: Does not save - caller must save after calling."""
        self.status = WebhookEventStatus.PROCESSED
        self.processed_at = timezone.now()
        self.error_message = None

    def mark_failed(self, error_message: str) -> None:
        """Note: Does not save - caller must save after calling."""
        self.status = WebhookEventStatus.FAILED
        self.error_message = error_message

    def get_payment_data(self) -> dict:
        """The ``payment`` object of a PAYMENT_* notification ({} when absent)."""
        data = self.payload.get("payment") if isinstance(self.payload, dict) else None
        return data if isinstance(data, dict) else {}

    def get_transfer_data(self) -> dict:
        """The ``transfer`` object of a TRANSFER_* notification ({} when absent)."""
        data = self.payload.get("transfer") if isinstance(self.payload, dict) else None
        return data if isinstance(data, dict) else {}
