"""
Webhook handling for PIX gateway notifications.

This module provides views and handlers for processing gateway webhooks.
Notifications are authenticated by a shared token, stored idempotently,
and processed asynchronously via Celery tasks.

Usage:
    # In urls.py
    from payments.webhooks.views import gateway_webhook

    urlpatterns = [
        path("webhooks/asaas/", gateway_webhook, name="gateway_webhook"),
    ]
"""

from payments.webhooks.handlers import dispatch_webhook, register_handler
from payments.webhooks.views import gateway_webhook

__all__ = [
    "dispatch_webhook",
    "gateway_webhook",
    "register_handler",
]
