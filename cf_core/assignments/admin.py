# cf_core/assignments/admin.py
from django.contrib import admin

from cf_core.assignments.models import AssignmentDecision


@admin.register(AssignmentDecision)
class AssignmentDecisionAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "patient",
        "sequence",
        "source",
        "status",
        "recommended_nurse_id",
        "recommended_doctor_id",
        "recommended_bed_id",
        "created_at",
        "committed_at",
    )
    list_filter = ("status", "source")
    search_fields = ("id", "patient__id", "recommended_nurse_id", "recommended_doctor_id", "recommended_bed_id")
    readonly_fields = ("created_at", "committed_at", "updated_at")
    ordering = ("-created_at",)

    def has_delete_permission(self, request, obj=None):
        return False
