# =============================================================================
# Django Project Configuration Package
# =============================================================================
# Settings and the Celery application for the store backend.
#
# Importing the Celery app here makes shared_task bind to it when Django
# starts, so workers auto-discover the store tasks.
# =============================================================================

from config.celery import app as celery_app

__all__ = ("celery_app",)
