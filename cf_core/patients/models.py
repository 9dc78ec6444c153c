# cf_core/patients/models.py
from django.db import models

from cf_core.common.models import ImmutableModelMixin, UUIDModel


class Severity(models.TextChoices):
    LOW = "low", "Low"
    MEDIUM = "medium", "Medium"
    HIGH = "high", "High"
    CRITICAL = "critical", "Critical"


class PatientStatus(models.TextChoices):
    PENDING_ASSIGNMENT = "pending_assignment", "Pending assignment"
    ADMITTED = "admitted", "Admitted"
    DISCHARGED = "discharged", "Discharged"


class Patient(UUIDModel):
    """
    Patient identity. Clinical details live in versioned PatientProfile rows;
    assigned_* ids mirror the active committed assignment for list views.
    """
    status = models.CharField(
        max_length=32,
        choices=PatientStatus.choices,
        default=PatientStatus.PENDING_ASSIGNMENT,
        db_index=True,
    )
    current_profile_version = models.PositiveIntegerField(default=1)

    assigned_nurse_id = models.CharField(max_length=64, null=True, blank=True)
    assigned_doctor_id = models.CharField(max_length=64, null=True, blank=True)
    assigned_bed_id = models.CharField(max_length=64, null=True, blank=True)

    class Meta:
        db_table = "patients_patient"
        indexes = [
            models.Index(fields=["status", "created_at"]),
        ]

    def __str__(self) -> str:
        return f"Patient {self.id} ({self.status})"


class PatientProfile(ImmutableModelMixin, UUIDModel):
    """
    Intake profile as submitted for recommendation. A re-submission creates
    version N+1; earlier versions stay untouched.
    """
    patient = models.ForeignKey(Patient, on_delete=models.PROTECT, related_name="profiles")
    version = models.PositiveIntegerField()

    name = models.CharField(max_length=255)
    age = models.PositiveIntegerField(null=True, blank=True)
    gender = models.CharField(max_length=32, blank=True, default="")
    condition = models.CharField(max_length=255)
    required_specialty = models.CharField(max_length=128, blank=True, default="")
    severity = models.CharField(max_length=16, choices=Severity.choices, default=Severity.MEDIUM)
    allergies = models.JSONField(default=list, blank=True)
    notes = models.TextField(blank=True, default="")

    class Meta:
        db_table = "patients_profile"
        constraints = [
            models.UniqueConstraint(fields=["patient", "version"], name="uq_patient_profile_version"),
        ]

    def __str__(self) -> str:
        return f"{self.name} v{self.version}"
