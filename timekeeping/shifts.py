"""Shift window lookup and classification of a clock event against it."""

from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .models import ShiftAssignment, TimingStatus


@dataclass(frozen=True)
class ShiftWindow:
    shift_id: int
    start: _dt.time
    end: _dt.time

    @property
    def spans_midnight(self) -> bool:
        return self.end <= self.start

    def contains(self, moment: _dt.time) -> bool:
        """Whether ``moment`` falls in the window; both bounds are inclusive."""

        if self.spans_midnight:
            return moment >= self.start or moment <= self.end
        return self.start <= moment <= self.end

    def contains_on_start_day(self, moment: _dt.time) -> bool:
        if self.spans_midnight:
            return moment >= self.start
        return self.contains(moment)

    def contains_after_midnight(self, moment: _dt.time) -> bool:
        return self.spans_midnight and moment <= self.end

    def duration_minutes(self) -> int:
        start = self.start.hour * 60 + self.start.minute
        end = self.end.hour * 60 + self.end.minute
        minutes = (end - start) % (24 * 60)
        return minutes or 24 * 60


@dataclass(frozen=True)
class ShiftResolution:
    window: Optional[ShiftWindow]
    timing_status: TimingStatus
    shift_date: _dt.date

    @property
    def shift_id(self) -> Optional[int]:
        return self.window.shift_id if self.window else None


def resolve_shift(
    today: Sequence[ShiftWindow],
    now: _dt.datetime,
    carried_over: Sequence[ShiftWindow] = (),
) -> ShiftResolution:
    """Pick the shift a clock event at local time ``now`` belongs to.

    ``today`` holds the windows assigned for ``now``'s date and ``carried_over``
    those assigned for the previous day. An overnight shift from the previous
    day that is still running wins. Otherwise a window of today's that has started
    is used, then any of today's windows containing the time of day. When none
    contains it, the first assigned shift is used and flagged as outside the
    shift.
    """

    moment = now.time()
    day = now.date()

    for window in carried_over:
        if window.contains_after_midnight(moment):
            return ShiftResolution(window, TimingStatus.OK, day - _dt.timedelta(days=1))

    for window in today:
        if window.contains_on_start_day(moment):
            return ShiftResolution(window, TimingStatus.OK, day)

    # Early-morning event against an overnight shift assigned for today.
    for window in today:
        if window.contains(moment):
            return ShiftResolution(window, TimingStatus.OK, day)

    if today:
        return ShiftResolution(today[0], TimingStatus.OUTSIDE_SHIFT, day)
    return ShiftResolution(None, TimingStatus.NO_SHIFT_ASSIGNED, day)


def shift_windows_for(tenant_id: str, employee_id: str, day: _dt.date) -> List[ShiftWindow]:
    """Windows assigned to the employee for ``day`` in assignment order."""

    assignments = (
        ShiftAssignment.objects.filter(
            tenant_id=tenant_id, employee_id=employee_id, schedule_date=day
        )
        .select_related("shift")
        .order_by("id")
    )
    return [
        ShiftWindow(
            shift_id=assignment.shift_id,
            start=assignment.shift.start_time,
            end=assignment.shift.end_time,
        )
        for assignment in assignments
    ]


__all__ = ["ShiftResolution", "ShiftWindow", "resolve_shift", "shift_windows_for"]
