"""Database models for the biometrics app.

Tenants and employees are owned by the HR side of the portal, so they are
referenced here by their opaque identifiers rather than by foreign keys.
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone


class FaceDescriptor(models.Model):
    """The single active face embedding enrolled for an employee of a tenant."""

    tenant_id = models.CharField(max_length=64, db_index=True)
    employee_id = models.CharField(max_length=64)
    encrypted_embedding = models.BinaryField(
        help_text="Fernet-encrypted JSON list holding the averaged embedding.",
    )
    capture_count = models.PositiveSmallIntegerField(
        default=0,
        help_text="Number of captures averaged into this descriptor.",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["tenant_id", "employee_id"],
                name="biometrics_one_descriptor_per_employee",
            ),
        ]
        ordering = ["tenant_id", "employee_id"]
        verbose_name = "Face Descriptor"
        verbose_name_plural = "Face Descriptors"

    def __str__(self) -> str:
        return f"{self.employee_id} @ {self.tenant_id}"


class Visitor(models.Model):
    """An unknown face that passed liveness but matched no enrolled employee."""

    tenant_id = models.CharField(max_length=64, db_index=True)
    encrypted_descriptor = models.BinaryField()
    photo = models.BinaryField(
        blank=True,
        help_text="JPEG snapshot from the first sighting.",
    )
    total_visits = models.PositiveIntegerField(
        default=1,
        help_text="Number of distinct days this visitor was seen.",
    )
    first_seen_at = models.DateTimeField(default=timezone.now)
    last_seen_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ["-last_seen_at"]

    def __str__(self) -> str:
        return f"Visitor #{self.pk} ({self.total_visits} visits)"


class VisitorCapture(models.Model):
    """A single debounced sighting of a visitor at the kiosk."""

    class Entry(models.TextChoices):
        IN = "IN", "In"
        OUT = "OUT", "Out"

    visitor = models.ForeignKey(
        Visitor,
        on_delete=models.CASCADE,
        related_name="captures",
    )
    entry = models.CharField(max_length=3, choices=Entry.choices)
    snapshot = models.BinaryField(blank=True)
    captured_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ["-captured_at"]
        indexes = [
            models.Index(fields=["visitor", "captured_at"], name="biometrics_vcapture_visit_idx"),
        ]

    def __str__(self) -> str:
        return f"Visitor #{self.visitor_id} {self.entry} @ {self.captured_at:%Y-%m-%d %H:%M:%S}"
