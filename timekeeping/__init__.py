"""Shift-aware clock-in/clock-out decisions and the attendance log."""
