"""
Main URL configuration for the payroll portal attendance kiosk.

The kiosk itself runs as a management command; HTTP exposes only the Django admin
used to manage enrollments and shifts, plus the monitoring endpoints.
"""

from django.contrib import admin
from django.urls import path

from biometrics import views as biometrics_views

urlpatterns = [
    path("monitoring/metrics/", biometrics_views.monitoring_metrics, name="monitoring-metrics"),
    path("monitoring/health/", biometrics_views.monitoring_health, name="monitoring-health"),
    path("django-admin/", admin.site.urls),
]
