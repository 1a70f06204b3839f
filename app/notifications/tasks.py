"""
Celery tasks for notification delivery.

Tasks:
    send_payment_confirmation_email: Receipt for a confirmed payment

Usage:
    from notifications.tasks import send_payment_confirmation_email

    send_payment_confirmation_email.delay(str(payment.id))
"""

from __future__ import annotations

import logging
from smtplib import SMTPException

from celery import shared_task

from payments.models import Payment
from payments.state_machines import PaymentStatus

logger = logging.getLogger(__name__)


@shared_task(
    bind=True,
    autoretry_for=(SMTPException, ConnectionError),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def send_payment_confirmation_email(self, payment_id: str) -> bool:
    """
    Email the payer a receipt for a confirmed payment.

    Flow:
        1. Fetch payment
        2. Skip unless it is still CONFIRMED
        3. Render the kind's template and send

    Args:
        payment_id: UUID string of the Payment

    Returns:
        True if sent, False if skipped

    Raises:
        SMTPException / ConnectionError: On transient failure (triggers retry)
    """
    from notifications.services import PaymentNotificationService

    payment = (
        Payment.objects.select_related("payer", "creator")
        .filter(id=payment_id)
        .first()
    )
    if payment is None:
        logger.warning(f"Confirmation email skipped: payment {payment_id} not found")
        return False

    if payment.status != PaymentStatus.CONFIRMED:
        logger.info(
            f"Confirmation email skipped: payment {payment_id} is {payment.status}"
        )
        return False

    return PaymentNotificationService.send_confirmation_email(payment)
