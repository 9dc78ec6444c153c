# cf_core/resources/admin.py
from django.contrib import admin

from cf_core.resources.models import Bed, Doctor, Nurse


class StaffAdmin(admin.ModelAdmin):
    list_display = ("id", "name", "specialization", "availability", "current_assignment_id", "updated_at")
    list_filter = ("availability", "specialization")
    search_fields = ("id", "name", "specialization")
    # availability is owned by the assignment commit service
    readonly_fields = ("availability", "current_assignment_id", "created_at", "updated_at")
    ordering = ("id",)


admin.site.register(Nurse, StaffAdmin)
admin.site.register(Doctor, StaffAdmin)


@admin.register(Bed)
class BedAdmin(admin.ModelAdmin):
    list_display = ("id", "bed_number", "floor", "bed_type", "availability", "current_assignment_id")
    list_filter = ("availability", "bed_type", "floor")
    search_fields = ("id", "bed_number")
    readonly_fields = ("availability", "current_assignment_id", "created_at", "updated_at")
    ordering = ("id",)
