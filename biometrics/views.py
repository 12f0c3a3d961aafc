"""Staff-only monitoring endpoints for the attendance kiosk."""

from django.contrib.admin.views.decorators import staff_member_required
from django.http import HttpResponse, JsonResponse
from django.views.decorators.http import require_GET

from . import monitoring


@require_GET
@staff_member_required
def monitoring_metrics(request):
    """Expose Prometheus metrics for the recognition loop."""

    payload = monitoring.export_metrics()
    return HttpResponse(payload, content_type=monitoring.prometheus_content_type())


@require_GET
@staff_member_required
def monitoring_health(request):
    return JsonResponse(monitoring.get_health_snapshot())
