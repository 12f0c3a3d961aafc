"""Daily attendance summary kept in step with the timestamp log."""

from __future__ import annotations

import datetime as _dt
import logging
from typing import Optional

from django.conf import settings
from django.utils import timezone

from .models import AttendanceLog, AttendanceTimestamp, Entry

logger = logging.getLogger(__name__)


def _classify(
    first_in: _dt.datetime,
    last_out: Optional[_dt.datetime],
    shift,
    day: _dt.date,
) -> str:
    if shift is None or last_out is None:
        return AttendanceLog.Status.PRESENT

    grace = _dt.timedelta(minutes=int(getattr(settings, "ATTENDANCE_LATE_GRACE_MINUTES", 10)))
    shift_start = timezone.make_aware(
        _dt.datetime.combine(day, shift.start_time), timezone.get_current_timezone()
    )
    shift_end_day = day + _dt.timedelta(days=1) if shift.spans_midnight else day
    shift_end = timezone.make_aware(
        _dt.datetime.combine(shift_end_day, shift.end_time), timezone.get_current_timezone()
    )
    shift_minutes = (shift_end - shift_start).total_seconds() / 60
    worked_minutes = (last_out - first_in).total_seconds() / 60

    status = AttendanceLog.Status.PRESENT
    if first_in > shift_start + grace:
        status = AttendanceLog.Status.LATE
    if worked_minutes < shift_minutes / 2:
        status = AttendanceLog.Status.HALF_DAY
    return status


def sync_attendance_log(
    tenant_id: str,
    employee_id: str,
    day: _dt.date,
    *,
    face_confidence: Optional[float] = None,
) -> Optional[AttendanceLog]:
    """Recompute the employee's summary row for the shift day ``day``.

    ``clock_in`` is the first IN of the day and ``clock_out`` the last OUT.
    Returns ``None`` when the day has no IN event yet.
    """

    events = list(
        AttendanceTimestamp.objects.filter(
            tenant_id=tenant_id, employee_id=employee_id, shift_date=day
        )
        .select_related("shift")
        .order_by("timestamp", "id")
    )
    first_in = next((event.timestamp for event in events if event.entry == Entry.IN), None)
    if first_in is None:
        return None
    last_out = next(
        (event.timestamp for event in reversed(events) if event.entry == Entry.OUT), None
    )
    shift = next((event.shift for event in events if event.shift_id is not None), None)
    status = _classify(first_in, last_out, shift, day)

    log, created = AttendanceLog.objects.get_or_create(
        tenant_id=tenant_id,
        employee_id=employee_id,
        date=day,
        defaults={
            "clock_in": first_in,
            "clock_out": last_out,
            "status": status,
            "verification_method": AttendanceLog.VerificationMethod.FACE_RECOGNITION,
            "face_confidence": face_confidence,
        },
    )
    if not created:
        log.clock_in = first_in
        log.clock_out = last_out
        log.status = status
        log.save(update_fields=["clock_in", "clock_out", "status", "updated_at"])

    logger.debug(
        "Attendance log synchronised",
        extra={
            "event": "attendance_log_sync",
            "tenant_id": tenant_id,
            "employee_id": employee_id,
            "date": day.isoformat(),
            "status": status,
            "created": created,
        },
    )
    return log


__all__ = ["sync_attendance_log"]
