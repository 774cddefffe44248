"""
Store app configuration.

Connects the refund reconciliation receiver to the order transition event
when the app registry is ready.
"""

from django.apps import AppConfig


class StoreConfig(AppConfig):
    """Configuration for the store application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "store"
    verbose_name = "Store"

    def ready(self) -> None:
        from store.signals import register_signals

        register_signals()
