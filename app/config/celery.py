"""
Celery configuration for the Django application.

Workers run the payment side of the system outside the request cycle:
- Webhook event processing (payments.tasks.process_webhook_event)
- Receipt emails (notifications.tasks)
- Periodic sweeps: pending-payment polling, webhook retries and
  subscription / pro plan expiry

Periodic schedules live in the database (django-celery-beat) and are
seeded by payments/migrations/0002_periodic_tasks.py.

Usage:
    celery -A config worker -l info
    celery -A config beat -l info

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

# Set the default Django settings module for the Celery worker
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Looks for a tasks.py module in each installed app
app.autodiscover_tasks()
