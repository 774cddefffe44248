"""
Celery configuration for the store backend.

Celery runs the refund reconciliation sweep and single-order replays
(store.workers). Redis is both the message broker and the result backend,
and django-celery-beat stores the periodic schedule in the database.

Usage:
    from store.workers import reconcile_order_refund

    reconcile_order_refund.delay(str(order.id))
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Store tasks live in store.workers rather than store.tasks
app.autodiscover_tasks()
app.autodiscover_tasks(["store"], related_name="workers")
