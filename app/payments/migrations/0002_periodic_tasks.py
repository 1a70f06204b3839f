"""
Add celery-beat schedules for the payment sweeps.

Creates the periodic tasks for:
- reconcile_pending_payments (every 15 minutes): poll stale pending charges
- retry_failed_webhook_events (every 5 minutes)
- expire_subscriptions and expire_pro_plans (hourly)
"""

from django.db import migrations


PERIODIC_TASKS = [
    {
        "name": "Reconcile Pending Payments",
        "task": "payments.tasks.reconcile_pending_payments",
        "every": 15,
        "description": (
            "Polls the gateway for pending payments whose notification "
            "never arrived and applies the reported status."
        ),
    },
    {
        "name": "Retry Failed Webhook Events",
        "task": "payments.tasks.retry_failed_webhook_events",
        "every": 5,
        "description": "Re-queues failed, stuck or unqueued gateway notifications.",
    },
    {
        "name": "Expire Subscriptions",
        "task": "payments.tasks.expire_subscriptions",
        "every": 60,
        "description": "Marks lapsed active subscriptions as expired.",
    },
    {
        "name": "Expire Pro Plans",
        "task": "payments.tasks.expire_pro_plans",
        "every": 60,
        "description": "Clears the pro flag on creators whose plan lapsed.",
    },
]


def create_periodic_tasks(apps, schema_editor):
    """Create the periodic tasks for the payment sweeps."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    for spec in PERIODIC_TASKS:
        schedule, _ = IntervalSchedule.objects.get_or_create(
            every=spec["every"],
            period="minutes",
        )
        PeriodicTask.objects.get_or_create(
            name=spec["name"],
            defaults={
                "task": spec["task"],
                "interval": schedule,
                "enabled": True,
                "description": spec["description"],
            },
        )


def remove_periodic_tasks(apps, schema_editor):
    """Remove the periodic tasks on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(
        name__in=[spec["name"] for spec in PERIODIC_TASKS],
    ).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
