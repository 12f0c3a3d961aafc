"""
App configuration for the timekeeping app.

Django discovers this configuration through the ``INSTALLED_APPS`` entry in the
project settings.
"""

from django.apps import AppConfig


class TimekeepingConfig(AppConfig):
    """Configuration class for the timekeeping app."""

    name = "timekeeping"
    verbose_name = "Timekeeping"
