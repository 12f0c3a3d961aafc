"""Create face descriptor and visitor tables."""

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="FaceDescriptor",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                ("tenant_id", models.CharField(db_index=True, max_length=64)),
                ("employee_id", models.CharField(max_length=64)),
                (
                    "encrypted_embedding",
                    models.BinaryField(
                        help_text="Fernet-encrypted JSON list holding the averaged embedding."
                    ),
                ),
                (
                    "capture_count",
                    models.PositiveSmallIntegerField(
                        default=0, help_text="Number of captures averaged into this descriptor."
                    ),
                ),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "verbose_name": "Face Descriptor",
                "verbose_name_plural": "Face Descriptors",
                "ordering": ["tenant_id", "employee_id"],
            },
        ),
        migrations.AddConstraint(
            model_name="facedescriptor",
            constraint=models.UniqueConstraint(
                fields=("tenant_id", "employee_id"),
                name="biometrics_one_descriptor_per_employee",
            ),
        ),
        migrations.CreateModel(
            name="Visitor",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                ("tenant_id", models.CharField(db_index=True, max_length=64)),
                ("encrypted_descriptor", models.BinaryField()),
                (
                    "photo",
                    models.BinaryField(
                        blank=True, help_text="JPEG snapshot from the first sighting."
                    ),
                ),
                (
                    "total_visits",
                    models.PositiveIntegerField(
                        default=1, help_text="Number of distinct days this visitor was seen."
                    ),
                ),
                ("first_seen_at", models.DateTimeField(default=django.utils.timezone.now)),
                (
                    "last_seen_at",
                    models.DateTimeField(db_index=True, default=django.utils.timezone.now),
                ),
            ],
            options={
                "ordering": ["-last_seen_at"],
            },
        ),
        migrations.CreateModel(
            name="VisitorCapture",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                (
                    "entry",
                    models.CharField(choices=[("IN", "In"), ("OUT", "Out")], max_length=3),
                ),
                ("snapshot", models.BinaryField(blank=True)),
                (
                    "captured_at",
                    models.DateTimeField(db_index=True, default=django.utils.timezone.now),
                ),
                (
                    "visitor",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="captures",
                        to="biometrics.visitor",
                    ),
                ),
            ],
            options={
                "ordering": ["-captured_at"],
                "indexes": [
                    models.Index(
                        fields=["visitor", "captured_at"],
                        name="biometrics_vcapture_visit_idx",
                    )
                ],
            },
        ),
    ]
