"""
Notifications app configuration.

Connects the payment signal handlers when the app is ready.
"""

from django.apps import AppConfig


class NotificationsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "notifications"
    verbose_name = "Notifications"

    def ready(self):
        from notifications import handlers  # noqa: F401
