"""
State enums for payment models.

This module defines all state enums used by payment models with django-fsm.
These are Django TextChoices for database storage and admin integration.

State Machines Overview:

Payment States:
    pending → confirmed → refunded
    pending → failed
    pending → expired

Payout States:
    pending → processing → completed
    pending/processing → failed

Subscription States (plain status, no FSM):
    pending → active → expired / cancelled
"""

from django.db import models


class PaymentKind(models.TextChoices):
    """What a payment buys."""

    SUBSCRIPTION = "subscription", "Subscription"
    PPV = "ppv", "Pay per view"
    TIP = "tip", "Tip"
    PRO_PLAN = "pro_plan", "Pro plan"
    PACK = "pack", "Media pack"


class PaymentStatus(models.TextChoices):
    """
    States for the Payment model lifecycle.

    Terminal states: FAILED, EXPIRED, REFUNDED

    State Flow:
        PENDING → CONFIRMED (gateway confirmed the PIX transfer)
        PENDING → FAILED (charge deleted or gateway error)
        PENDING → EXPIRED (QR code overdue)
        CONFIRMED → REFUNDED
    """

    PENDING = "pending", "Pending"
    CONFIRMED = "confirmed", "Confirmed"
    FAILED = "failed", "Failed"
    EXPIRED = "expired", "Expired"
    REFUNDED = "refunded", "Refunded"


class SubscriptionStatus(models.TextChoices):
    """
    Status of a creator subscription.

    At most one ACTIVE subscription exists per (subscriber, creator).
    """

    PENDING = "pending", "Pending"
    ACTIVE = "active", "Active"
    CANCELLED = "cancelled", "Cancelled"
    EXPIRED = "expired", "Expired"


class PayoutStatus(models.TextChoices):
    """
    States for the Payout model lifecycle.

    State Flow:
        PENDING → PROCESSING (transfer created at the gateway)
        PROCESSING → COMPLETED (TRANSFER_DONE)
        PENDING/PROCESSING → FAILED (gateway error, TRANSFER_FAILED/CANCELLED)
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for WebhookEvent.

    Tracks the lifecycle of webhook event processing for idempotency.

    State Flow:
        PENDING → PROCESSING → PROCESSED
        PENDING → PROCESSING → FAILED (can retry)
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"


__all__ = [
    "PaymentKind",
    "PaymentStatus",
    "SubscriptionStatus",
    "PayoutStatus",
    "WebhookEventStatus",
]
