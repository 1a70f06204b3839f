"""
Notifications app for payment side effects.

This app provides:
- PaymentNotificationService for receipts, live events and cache invalidation
- Signal handlers for the payments app's on-commit signals
- A Celery task for receipt emails
- A WebSocket consumer that streams a user's live events

Usage:
    from notifications.services import PaymentNotificationService

    PaymentNotificationService.send_invalidation([user.id], ["payments"])
"""
