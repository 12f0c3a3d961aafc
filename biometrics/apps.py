"""
App configuration for the biometrics app.

Django discovers this configuration through the ``INSTALLED_APPS`` entry in the
project settings.
"""

from django.apps import AppConfig


class BiometricsConfig(AppConfig):
    """Configuration class for the biometrics app."""

    name = "biometrics"
    verbose_name = "Face verification"
