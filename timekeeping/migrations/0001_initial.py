"""Create shift, assignment, attendance timestamp and attendance log tables."""

import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Shift",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                ("tenant_id", models.CharField(db_index=True, max_length=64)),
                ("name", models.CharField(max_length=100)),
                ("start_time", models.TimeField()),
                ("end_time", models.TimeField()),
            ],
            options={
                "ordering": ["tenant_id", "start_time"],
            },
        ),
        migrations.CreateModel(
            name="ShiftAssignment",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                ("tenant_id", models.CharField(db_index=True, max_length=64)),
                ("employee_id", models.CharField(max_length=64)),
                ("schedule_date", models.DateField()),
                (
                    "shift",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="assignments",
                        to="timekeeping.shift",
                    ),
                ),
            ],
            options={
                "ordering": ["schedule_date", "id"],
                "indexes": [
                    models.Index(
                        fields=["tenant_id", "employee_id", "schedule_date"],
                        name="timekeeping_assign_day_idx",
                    )
                ],
            },
        ),
        migrations.AddConstraint(
            model_name="shiftassignment",
            constraint=models.UniqueConstraint(
                fields=("tenant_id", "employee_id", "shift", "schedule_date"),
                name="timekeeping_unique_shift_assignment",
            ),
        ),
        migrations.CreateModel(
            name="AttendanceTimestamp",
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
                    "shift_date",
                    models.DateField(
                        help_text=(
                            "Calendar day the shift started on; the day itself when no shift "
                            "applies."
                        )
                    ),
                ),
                (
                    "entry",
                    models.CharField(
                        choices=[("IN", "Clock in"), ("OUT", "Clock out")], max_length=3
                    ),
                ),
                (
                    "timing_status",
                    models.CharField(
                        choices=[
                            ("OK", "Within shift"),
                            ("OUTSIDE_SHIFT", "Outside shift"),
                            ("NO_SHIFT_ASSIGNED", "No shift assigned"),
                        ],
                        max_length=20,
                    ),
                ),
                ("timestamp", models.DateTimeField(default=django.utils.timezone.now)),
                ("face_confidence", models.FloatField(blank=True, null=True)),
                (
                    "shift",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="timestamps",
                        to="timekeeping.shift",
                    ),
                ),
            ],
            options={
                "ordering": ["timestamp", "id"],
                "indexes": [
                    models.Index(
                        fields=["tenant_id", "employee_id", "shift_date"],
                        name="timekeeping_ts_emp_day_idx",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="AttendanceLog",
            fields=[
                (
                    "id",
                    models.BigAutoField(
                        auto_created=True, primary_key=True, serialize=False, verbose_name="ID"
                    ),
                ),
                ("tenant_id", models.CharField(db_index=True, max_length=64)),
                ("employee_id", models.CharField(max_length=64)),
                ("date", models.DateField()),
                ("clock_in", models.DateTimeField(blank=True, null=True)),
                ("clock_out", models.DateTimeField(blank=True, null=True)),
                (
                    "status",
                    models.CharField(
                        choices=[("Present", "Present"), ("Late", "Late"), ("Half Day", "Half Day")],
                        default="Present",
                        max_length=10,
                    ),
                ),
                (
                    "verification_method",
                    models.CharField(
                        choices=[("face_recognition", "Face recognition"), ("manual", "Manual")],
                        default="face_recognition",
                        max_length=20,
                    ),
                ),
                ("face_confidence", models.FloatField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["-date", "employee_id"],
            },
        ),
        migrations.AddConstraint(
            model_name="attendancelog",
            constraint=models.UniqueConstraint(
                fields=("tenant_id", "employee_id", "date"),
                name="timekeeping_one_log_per_day",
            ),
        ),
    ]
