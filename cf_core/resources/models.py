# cf_core/resources/models.py
from django.db import models
from django.db.models import Q

from cf_core.common.models import TimeStampedModel


class ResourceKind(models.TextChoices):
    NURSE = "nurse", "Nurse"
    DOCTOR = "doctor", "Doctor"
    BED = "bed", "Bed"


class StaffAvailability(models.TextChoices):
    AVAILABLE = "available", "Available"
    BUSY = "busy", "Busy"
    UNAVAILABLE = "unavailable", "Unavailable"


class BedAvailability(models.TextChoices):
    AVAILABLE = "available", "Available"
    OCCUPIED = "occupied", "Occupied"
    CLEANING = "cleaning", "Cleaning"
    ICU = "icu", "ICU reserved"


class BedType(models.TextChoices):
    GENERAL = "general", "General"
    ICU = "icu", "ICU"


def _back_reference_constraint(engaged: str, name: str) -> models.CheckConstraint:
    """
    current_assignment_id is set if and only if the resource is engaged.
    """
    return models.CheckConstraint(
        condition=(
            Q(availability=engaged, current_assignment_id__isnull=False)
            | (~Q(availability=engaged) & Q(current_assignment_id__isnull=True))
        ),
        name=name,
    )


class StaffMember(TimeStampedModel):
    """
    Nurse/doctor shared shape. The id is the stable staff code (e.g. "N004"),
    not a surrogate key, so recommender payloads can reference it directly.
    """
    id = models.CharField(primary_key=True, max_length=64)
    name = models.CharField(max_length=255)
    specialization = models.CharField(max_length=128, blank=True, default="", db_index=True)

    availability = models.CharField(
        max_length=16,
        choices=StaffAvailability.choices,
        default=StaffAvailability.AVAILABLE,
        db_index=True,
    )

    # Weak back-reference to the committed AssignmentDecision holding this resource
    current_assignment_id = models.UUIDField(null=True, blank=True, db_index=True)

    class Meta:
        abstract = True

    def __str__(self) -> str:
        return f"{self.name} ({self.id})"


class Nurse(StaffMember):
    class Meta:
        db_table = "resources_nurse"
        ordering = ["id"]
        constraints = [
            _back_reference_constraint(StaffAvailability.BUSY, "ck_nurse_assignment_iff_busy"),
        ]


class Doctor(StaffMember):
    class Meta:
        db_table = "resources_doctor"
        ordering = ["id"]
        constraints = [
            _back_reference_constraint(StaffAvailability.BUSY, "ck_doctor_assignment_iff_busy"),
        ]


class Bed(TimeStampedModel):
    id = models.CharField(primary_key=True, max_length=64)
    bed_number = models.CharField(max_length=32)
    floor = models.PositiveIntegerField(default=1)
    bed_type = models.CharField(max_length=16, choices=BedType.choices, default=BedType.GENERAL)

    availability = models.CharField(
        max_length=16,
        choices=BedAvailability.choices,
        default=BedAvailability.AVAILABLE,
        db_index=True,
    )
    current_assignment_id = models.UUIDField(null=True, blank=True, db_index=True)

    class Meta:
        db_table = "resources_bed"
        ordering = ["id"]
        constraints = [
            _back_reference_constraint(BedAvailability.OCCUPIED, "ck_bed_assignment_iff_occupied"),
        ]

    def __str__(self) -> str:
        return f"Bed {self.bed_number} (floor {self.floor})"
