"""Clock-in/clock-out decisions for verified employees.

For each verified identification the recorder resolves the employee's shift,
toggles the entry relative to the most recent event of that shift day and
appends the new event. Entries therefore alternate IN, OUT, IN, ... per
employee, shift and shift day, starting with IN.
"""

from __future__ import annotations

import datetime as _dt
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from django.db import DatabaseError, transaction
from django.utils import timezone

from .exceptions import AttendancePersistenceError
from .models import AttendanceTimestamp, Entry, TimingStatus
from .shifts import resolve_shift, shift_windows_for
from .summary import sync_attendance_log

logger = logging.getLogger(__name__)


def next_entry(last_entry: Optional[str]) -> Entry:
    """The logical toggle of ``last_entry``; IN when there is no prior entry."""

    return Entry.OUT if last_entry == Entry.IN else Entry.IN


@dataclass(frozen=True)
class AttendanceDecision:
    employee_id: str
    shift_id: Optional[int]
    shift_date: _dt.date
    entry: Entry
    timing_status: TimingStatus
    timestamp: _dt.datetime
    record_id: int


class AttendanceRecorder:
    def __init__(
        self,
        tenant_id: str,
        *,
        clock: Callable[[], _dt.datetime] = timezone.now,
    ) -> None:
        self.tenant_id = str(tenant_id)
        self._clock = clock

    def record(
        self,
        employee_id: str,
        *,
        now: Optional[_dt.datetime] = None,
        face_confidence: Optional[float] = None,
    ) -> AttendanceDecision:
        """Append the next attendance event for ``employee_id``.

        Raises:
            AttendancePersistenceError: The event or the daily summary could not
                be written. Nothing is written in that case.
        """

        employee_id = str(employee_id)
        now = now or self._clock()
        local_now = timezone.localtime(now)
        today = local_now.date()

        try:
            with transaction.atomic():
                resolution = resolve_shift(
                    shift_windows_for(self.tenant_id, employee_id, today),
                    local_now,
                    carried_over=[
                        window
                        for window in shift_windows_for(
                            self.tenant_id, employee_id, today - _dt.timedelta(days=1)
                        )
                        if window.spans_midnight
                    ],
                )
                last_entry = (
                    AttendanceTimestamp.objects.select_for_update()
                    .filter(
                        tenant_id=self.tenant_id,
                        employee_id=employee_id,
                        shift_id=resolution.shift_id,
                        shift_date=resolution.shift_date,
                    )
                    .order_by("-timestamp", "-id")
                    .values_list("entry", flat=True)
                    .first()
                )
                entry = next_entry(last_entry)
                event = AttendanceTimestamp.objects.create(
                    tenant_id=self.tenant_id,
                    employee_id=employee_id,
                    shift_id=resolution.shift_id,
                    shift_date=resolution.shift_date,
                    entry=entry,
                    timing_status=resolution.timing_status,
                    timestamp=now,
                    face_confidence=face_confidence,
                )
                sync_attendance_log(
                    self.tenant_id,
                    employee_id,
                    resolution.shift_date,
                    face_confidence=face_confidence,
                )
        except DatabaseError as exc:
            logger.error(
                "Failed to record attendance",
                extra={
                    "event": "attendance_record",
                    "status": "failure",
                    "tenant_id": self.tenant_id,
                    "employee_id": employee_id,
                },
            )
            raise AttendancePersistenceError(
                f"Could not record attendance for employee {employee_id}"
            ) from exc

        logger.info(
            "Attendance recorded",
            extra={
                "event": "attendance_record",
                "status": "success",
                "tenant_id": self.tenant_id,
                "employee_id": employee_id,
                "entry": entry.value,
                "timing_status": resolution.timing_status.value,
                "shift_id": resolution.shift_id,
            },
        )
        return AttendanceDecision(
            employee_id=employee_id,
            shift_id=resolution.shift_id,
            shift_date=resolution.shift_date,
            entry=entry,
            timing_status=resolution.timing_status,
            timestamp=now,
            record_id=event.pk,
        )


__all__ = ["AttendanceDecision", "AttendanceRecorder", "next_entry"]
