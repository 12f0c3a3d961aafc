"""Attendance timestamps are append-only."""

from __future__ import annotations

import datetime as dt

import pytest
from django.db.models import ProtectedError

from timekeeping.exceptions import ImmutableRecordError
from timekeeping.models import AttendanceTimestamp, Entry, Shift, TimingStatus

pytestmark = pytest.mark.django_db


def _event(**overrides) -> AttendanceTimestamp:
    values = {
        "tenant_id": "acme",
        "employee_id": "emp-1",
        "shift_date": dt.date(2024, 3, 4),
        "entry": Entry.IN,
        "timing_status": TimingStatus.NO_SHIFT_ASSIGNED,
    }
    values.update(overrides)
    return AttendanceTimestamp.objects.create(**values)


def test_saved_events_cannot_be_modified() -> None:
    event = _event()
    event.entry = Entry.OUT

    with pytest.raises(ImmutableRecordError):
        event.save()

    assert AttendanceTimestamp.objects.get(pk=event.pk).entry == Entry.IN


def test_events_cannot_be_deleted() -> None:
    event = _event()

    with pytest.raises(ImmutableRecordError):
        event.delete()

    assert AttendanceTimestamp.objects.filter(pk=event.pk).exists()


def test_shifts_with_events_cannot_be_deleted() -> None:
    shift = Shift.objects.create(
        tenant_id="acme", name="Day", start_time=dt.time(9), end_time=dt.time(17)
    )
    _event(shift=shift, timing_status=TimingStatus.OK)

    with pytest.raises(ProtectedError):
        shift.delete()
