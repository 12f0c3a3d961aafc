"""Admin registrations for the biometrics app."""

from django.contrib import admin

from .models import FaceDescriptor, Visitor, VisitorCapture


@admin.register(FaceDescriptor)
class FaceDescriptorAdmin(admin.ModelAdmin):
    """List enrollments; the encrypted vector itself is never shown."""

    list_display = ("employee_id", "tenant_id", "capture_count", "updated_at")
    list_filter = ("tenant_id",)
    search_fields = ("employee_id",)
    exclude = ("encrypted_embedding",)
    readonly_fields = ("tenant_id", "employee_id", "capture_count", "created_at", "updated_at")

    def has_add_permission(self, request):
        # Descriptors are created by the enrollment workflow only.
        return False


class VisitorCaptureInline(admin.TabularInline):
    model = VisitorCapture
    extra = 0
    fields = ("captured_at", "entry")
    readonly_fields = ("captured_at", "entry")
    can_delete = False


@admin.register(Visitor)
class VisitorAdmin(admin.ModelAdmin):
    list_display = ("id", "tenant_id", "total_visits", "first_seen_at", "last_seen_at")
    list_filter = ("tenant_id",)
    ordering = ("-last_seen_at",)
    exclude = ("encrypted_descriptor", "photo")
    readonly_fields = ("tenant_id", "total_visits", "first_seen_at", "last_seen_at")
    inlines = (VisitorCaptureInline,)


@admin.register(VisitorCapture)
class VisitorCaptureAdmin(admin.ModelAdmin):
    list_display = ("captured_at", "visitor", "entry")
    list_filter = ("entry",)
    ordering = ("-captured_at",)
    exclude = ("snapshot",)
    readonly_fields = ("visitor", "entry", "captured_at")
