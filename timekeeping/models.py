"""Database models for shifts and the attendance log."""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from .exceptions import ImmutableRecordError


class Entry(models.TextChoices):
    IN = "IN", "Clock in"
    OUT = "OUT", "Clock out"


class TimingStatus(models.TextChoices):
    OK = "OK", "Within shift"
    OUTSIDE_SHIFT = "OUTSIDE_SHIFT", "Outside shift"
    NO_SHIFT_ASSIGNED = "NO_SHIFT_ASSIGNED", "No shift assigned"


class Shift(models.Model):
    """A named working window given as times of day.

    A shift whose end is not after its start runs past midnight.
    """

    tenant_id = models.CharField(max_length=64, db_index=True)
    name = models.CharField(max_length=100)
    start_time = models.TimeField()
    end_time = models.TimeField()

    class Meta:
        ordering = ["tenant_id", "start_time"]

    def __str__(self) -> str:
        return f"{self.name} ({self.start_time:%H:%M}-{self.end_time:%H:%M})"

    @property
    def spans_midnight(self) -> bool:
        return self.end_time <= self.start_time


class ShiftAssignment(models.Model):
    """Assignment of a shift to an employee for one calendar day."""

    tenant_id = models.CharField(max_length=64, db_index=True)
    employee_id = models.CharField(max_length=64)
    shift = models.ForeignKey(Shift, on_delete=models.CASCADE, related_name="assignments")
    schedule_date = models.DateField()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["tenant_id", "employee_id", "shift", "schedule_date"],
                name="timekeeping_unique_shift_assignment",
            ),
        ]
        indexes = [
            models.Index(
                fields=["tenant_id", "employee_id", "schedule_date"],
                name="timekeeping_assign_day_idx",
            ),
        ]
        ordering = ["schedule_date", "id"]

    def __str__(self) -> str:
        return f"{self.employee_id} -> {self.shift_id} on {self.schedule_date}"


class AttendanceTimestamp(models.Model):
    """Append-only clock-in/clock-out event."""

    tenant_id = models.CharField(max_length=64, db_index=True)
    employee_id = models.CharField(max_length=64)
    shift = models.ForeignKey(
        Shift,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="timestamps",
    )
    shift_date = models.DateField(
        help_text="Calendar day the shift started on; the day itself when no shift applies.",
    )
    entry = models.CharField(max_length=3, choices=Entry.choices)
    timing_status = models.CharField(max_length=20, choices=TimingStatus.choices)
    timestamp = models.DateTimeField(default=timezone.now)
    face_confidence = models.FloatField(null=True, blank=True)

    class Meta:
        ordering = ["timestamp", "id"]
        indexes = [
            models.Index(
                fields=["tenant_id", "employee_id", "shift_date"],
                name="timekeeping_ts_emp_day_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.employee_id} {self.entry} @ {self.timestamp:%Y-%m-%d %H:%M:%S}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ImmutableRecordError("Attendance timestamps cannot be modified.")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ImmutableRecordError("Attendance timestamps cannot be deleted.")


class AttendanceLog(models.Model):
    """Daily attendance summary derived from the timestamp events."""

    class Status(models.TextChoices):
        PRESENT = "Present", "Present"
        LATE = "Late", "Late"
        HALF_DAY = "Half Day", "Half Day"

    class VerificationMethod(models.TextChoices):
        FACE_RECOGNITION = "face_recognition", "Face recognition"
        MANUAL = "manual", "Manual"

    tenant_id = models.CharField(max_length=64, db_index=True)
    employee_id = models.CharField(max_length=64)
    date = models.DateField()
    clock_in = models.DateTimeField(null=True, blank=True)
    clock_out = models.DateTimeField(null=True, blank=True)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.PRESENT)
    verification_method = models.CharField(
        max_length=20,
        choices=VerificationMethod.choices,
        default=VerificationMethod.FACE_RECOGNITION,
    )
    face_confidence = models.FloatField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["tenant_id", "employee_id", "date"],
                name="timekeeping_one_log_per_day",
            ),
        ]
        ordering = ["-date", "employee_id"]

    def __str__(self) -> str:
        return f"{self.employee_id} {self.date} {self.status}"
