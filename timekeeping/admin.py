"""Admin registrations for the timekeeping app."""

from django.contrib import admin

from .models import AttendanceLog, AttendanceTimestamp, Shift, ShiftAssignment


@admin.register(Shift)
class ShiftAdmin(admin.ModelAdmin):
    list_display = ("name", "tenant_id", "start_time", "end_time")
    list_filter = ("tenant_id",)
    search_fields = ("name",)


@admin.register(ShiftAssignment)
class ShiftAssignmentAdmin(admin.ModelAdmin):
    list_display = ("schedule_date", "employee_id", "shift", "tenant_id")
    list_filter = ("tenant_id", "schedule_date")
    search_fields = ("employee_id",)
    ordering = ("-schedule_date", "employee_id")


@admin.register(AttendanceTimestamp)
class AttendanceTimestampAdmin(admin.ModelAdmin):
    """The timestamp log is append-only and shown read-only."""

    list_display = ("timestamp", "employee_id", "entry", "timing_status", "shift", "shift_date")
    list_filter = ("tenant_id", "entry", "timing_status")
    search_fields = ("employee_id",)
    ordering = ("-timestamp",)

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(AttendanceLog)
class AttendanceLogAdmin(admin.ModelAdmin):
    list_display = (
        "date",
        "employee_id",
        "status",
        "clock_in",
        "clock_out",
        "verification_method",
        "face_confidence",
    )
    list_filter = ("tenant_id", "status", "verification_method")
    search_fields = ("employee_id",)
    ordering = ("-date", "employee_id")
    readonly_fields = ("created_at", "updated_at")
