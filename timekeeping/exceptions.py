"""Exceptions raised by the attendance decision and persistence code."""


class TimekeepingError(Exception):
    """Base class for timekeeping failures."""


class AttendancePersistenceError(TimekeepingError):
    """An attendance event or its daily summary could not be written."""


class ImmutableRecordError(TimekeepingError):
    """An append-only attendance record was about to be changed or removed."""
