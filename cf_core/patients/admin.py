# cf_core/patients/admin.py
from django.contrib import admin

from cf_core.patients.models import Patient, PatientProfile


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "status",
        "current_profile_version",
        "assigned_nurse_id",
        "assigned_doctor_id",
        "assigned_bed_id",
        "created_at",
    )
    list_filter = ("status",)
    search_fields = ("id", "profiles__name")
    readonly_fields = ("created_at", "updated_at")
    ordering = ("-created_at",)


@admin.register(PatientProfile)
class PatientProfileAdmin(admin.ModelAdmin):
    list_display = ("name", "patient", "version", "severity", "required_specialty", "created_at")
    list_filter = ("severity",)
    search_fields = ("name", "condition", "required_specialty")
    ordering = ("-created_at",)

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
