"""
Webhook event handlers for gateway notifications.

This module provides a handler registry and implementations for
processing the PIX gateway's PAYMENT_* and TRANSFER_* events.

The handler registry allows:
- Clean separation between event routing and handling
- Easy extension for new event types
- Centralized error handling

Payment handlers share their state changes with the polling path: both
end in ReconciliationService, so a notification and a poll for the same
charge converge on the same state.

Usage:
    from payments.webhooks.handlers import dispatch_webhook, register_handler

    # Register a custom handler
    @register_handler("PAYMENT_CHARGEBACK_REQUESTED")
    def handle_chargeback(webhook_event: WebhookEvent) -> ServiceResult:
        ...

    # Dispatch an event to its handler
    result = dispatch_webhook(webhook_event)
"""

from __future__ import annotations

import logging
import uuid
from typing import Callable

from core.services import ServiceResult

from payments.exceptions import PaymentError
from payments.models import Payment, WebhookEvent
from payments.services import PayoutService, ReconciliationService
from payments.state_machines import PayoutStatus


logger = logging.getLogger(__name__)


# =============================================================================
# Handler Registry
# =============================================================================


# Maps event type strings to handler functions
WEBHOOK_HANDLERS: dict[str, Callable[[WebhookEvent], ServiceResult]] = {}

# Events that are acknowledged without any state change
ACKNOWLEDGED_EVENTS = frozenset(
    {
        "PAYMENT_CREATED",
        "PAYMENT_UPDATED",
        "PAYMENT_AWAITING_RISK_ANALYSIS",
    }
)


def register_handler(*event_types: str) -> Callable:
    """
    Decorator to register a webhook event handler.

    Usage:
        @register_handler("PAYMENT_CONFIRMED", "PAYMENT_RECEIVED")
        def handle_payment_paid(webhook_event: WebhookEvent) -> ServiceResult:
            ...

    Args:
        event_types: Gateway event names (e.g., "PAYMENT_CONFIRMED")

    Returns:
        Decorator function that registers the handler
    """

    def decorator(func: Callable[[WebhookEvent], ServiceResult]) -> Callable:
        for event_type in event_types:
            WEBHOOK_HANDLERS[event_type] = func
            logger.debug(f"Registered webhook handler for {event_type}")
        return func

    return decorator


def dispatch_webhook(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Dispatch a webhook event to the appropriate handler.

    Looks up the handler by event type and calls it. If no handler
    is registered, logs the event and returns success (to avoid
    failing on unknown events).

    Args:
        webhook_event: The WebhookEvent to process

    Returns:
        ServiceResult from the handler, or success if no handler
    """
    handler = WEBHOOK_HANDLERS.get(webhook_event.event_type)

    if not handler:
        logger.info(
            f"No handler registered for event type: {webhook_event.event_type}",
            extra={
                "event_key": webhook_event.event_key,
                "acknowledged": webhook_event.event_type in ACKNOWLEDGED_EVENTS,
            },
        )
        return ServiceResult.success(None)

    logger.info(
        f"Dispatching {webhook_event.event_type} to handler",
        extra={"event_key": webhook_event.event_key},
    )

    return handler(webhook_event)


# =============================================================================
# Lookups
# =============================================================================


def find_payment(charge_data: dict) -> Payment | None:
    """
    Find the payment behind a PAYMENT_* notification.

    Tries the gateway charge id first, then our own id carried in
    ``externalReference`` (the notification can beat the request that
    stores the charge id).
    """
    charge_id = charge_data.get("id")
    if charge_id:
        payment = Payment.objects.filter(gateway_charge_id=charge_id).first()
        if payment is not None:
            return payment

    reference = charge_data.get("externalReference")
    if not reference:
        return None
    try:
        return Payment.objects.filter(id=uuid.UUID(str(reference))).first()
    except ValueError:
        return None


def _payment_or_failure(webhook_event: WebhookEvent) -> tuple[Payment | None, ServiceResult | None]:
    charge_data = webhook_event.get_payment_data()
    if not charge_data:
        logger.error(
            f"{webhook_event.event_type}: notification has no payment object",
            extra={"event_key": webhook_event.event_key},
        )
        return None, ServiceResult.failure(
            "Notification has no payment object",
            error_code="INVALID_WEBHOOK_PAYLOAD",
        )

    payment = find_payment(charge_data)
    if payment is None:
        logger.warning(
            f"{webhook_event.event_type}: payment not found",
            extra={
                "event_key": webhook_event.event_key,
                "gateway_charge_id": charge_data.get("id"),
                "external_reference": charge_data.get("externalReference"),
            },
        )
        return None, ServiceResult.failure(
            f"Payment not found for charge {charge_data.get('id')}",
            error_code="PAYMENT_NOT_FOUND",
        )
    return payment, None


def _apply(webhook_event: WebhookEvent, transition: Callable) -> ServiceResult:
    payment, failure = _payment_or_failure(webhook_event)
    if failure is not None:
        return failure

    try:
        outcome = transition(payment)
    except PaymentError as e:
        logger.warning(
            f"{webhook_event.event_type}: transition rejected",
            extra={
                "event_key": webhook_event.event_key,
                "payment_id": str(payment.id),
                "error_code": e.error_code,
            },
        )
        return ServiceResult.from_exception(e)

    logger.info(
        f"{webhook_event.event_type} applied",
        extra={
            "event_key": webhook_event.event_key,
            "payment_id": str(payment.id),
            "status": outcome.status,
            "changed": outcome.changed,
        },
    )
    return ServiceResult.success(outcome)


# =============================================================================
# Payment Handlers
# =============================================================================


@register_handler("PAYMENT_CONFIRMED", "PAYMENT_RECEIVED")
def handle_payment_paid(webhook_event: WebhookEvent) -> ServiceResult:
    """Charge paid: confirm, grant and credit."""
    return _apply(webhook_event, lambda payment: ReconciliationService.confirm(payment.id))


@register_handler("PAYMENT_OVERDUE")
def handle_payment_overdue(webhook_event: WebhookEvent) -> ServiceResult:
    """QR code expired unpaid."""
    return _apply(webhook_event, lambda payment: ReconciliationService.expire(payment.id))


@register_handler("PAYMENT_DELETED")
def handle_payment_deleted(webhook_event: WebhookEvent) -> ServiceResult:
    return _apply(
        webhook_event,
        lambda payment: ReconciliationService.fail(payment.id, reason="Charge deleted at gateway"),
    )


@register_handler("PAYMENT_REFUNDED")
def handle_payment_refunded(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Charge refunded at the gateway.

    A refund that arrives before the confirmation fails with
    REFUND_NOT_ALLOWED; the event is retried once the confirmation
    has been applied.
    """
    return _apply(webhook_event, lambda payment: ReconciliationService.refund(payment.id))


# =============================================================================
# Transfer Handlers
# =============================================================================


def _transfer_payout(webhook_event: WebhookEvent):
    transfer_data = webhook_event.get_transfer_data()
    payout = PayoutService.find_for_transfer(
        transfer_data.get("id"),
        transfer_data.get("externalReference"),
    )
    if payout is None:
        logger.warning(
            f"{webhook_event.event_type}: payout not found",
            extra={
                "event_key": webhook_event.event_key,
                "gateway_transfer_id": transfer_data.get("id"),
            },
        )
    return payout, transfer_data


@register_handler("TRANSFER_DONE")
def handle_transfer_done(webhook_event: WebhookEvent) -> ServiceResult:
    payout, _ = _transfer_payout(webhook_event)
    if payout is None:
        return ServiceResult.failure("Payout not found", error_code="PAYOUT_NOT_FOUND")
    if payout.status == PayoutStatus.PENDING:
        # Transfer id not stored yet; retried later
        return ServiceResult.failure("Payout not processing yet", error_code="PAYOUT_NOT_PROCESSING")

    payout, changed = PayoutService.complete_payout(payout.id)
    return ServiceResult.success({"payout_id": str(payout.id), "changed": changed})


@register_handler("TRANSFER_FAILED", "TRANSFER_CANCELLED")
def handle_transfer_failed(webhook_event: WebhookEvent) -> ServiceResult:
    """Transfer did not go through: fail the payout and return the funds."""
    payout, transfer_data = _transfer_payout(webhook_event)
    if payout is None:
        return ServiceResult.failure("Payout not found", error_code="PAYOUT_NOT_FOUND")

    reason = transfer_data.get("failReason") or webhook_event.event_type.lower()
    payout, changed = PayoutService.fail_payout(payout.id, reason=reason)
    return ServiceResult.success({"payout_id": str(payout.id), "changed": changed})
