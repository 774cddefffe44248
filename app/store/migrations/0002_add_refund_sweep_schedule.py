"""
Add celery-beat schedule for the refund reconciliation sweep.

Runs reconcile_pending_refunds every 5 minutes to credit wallets for
refunded orders whose reconciliation failed or never ran.
"""

from django.db import migrations

TASK_NAME = "Reconcile Pending Order Refunds"


def create_periodic_task(apps, schema_editor):
    """Create the periodic task for the refund sweep."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    schedule, _ = IntervalSchedule.objects.get_or_create(
        every=5,
        period="minutes",
    )

    PeriodicTask.objects.get_or_create(
        name=TASK_NAME,
        defaults={
            "task": "store.workers.reconciliation_worker.reconcile_pending_refunds",
            "interval": schedule,
            "enabled": True,
            "description": (
                "Replays refund reconciliation for refunded orders without a "
                "wallet credit."
            ),
        },
    )


def remove_periodic_task(apps, schema_editor):
    """Remove the periodic task on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(name=TASK_NAME).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("store", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_task, remove_periodic_task),
    ]
