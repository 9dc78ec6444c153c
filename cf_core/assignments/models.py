# cf_core/assignments/models.py
import uuid

from django.db import models
from django.db.models import Q
from django.utils import timezone

from cf_core.patients.models import Patient


class DecisionSource(models.TextChoices):
    EXTERNAL_AI = "external_ai", "External AI"
    FALLBACK_HEURISTIC = "fallback_heuristic", "Fallback heuristic"
    MANUAL_OVERRIDE = "manual_override", "Manual override"


class DecisionStatus(models.TextChoices):
    PROPOSED = "proposed", "Proposed"
    COMMITTED = "committed", "Committed"
    REJECTED = "rejected", "Rejected"
    SUPERSEDED = "superseded", "Superseded"
    RELEASED = "released", "Released"


class AssignmentDecision(models.Model):
    """
    One recommended (nurse, doctor, bed) triple for a patient.

    Rows are versions, never deleted: an override or a newer commit marks the
    older row SUPERSEDED, a discharge marks the active row RELEASED. Only the
    status/committed_at columns change after insert.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    patient = models.ForeignKey(Patient, on_delete=models.PROTECT, related_name="assignment_decisions")

    # per-patient submission order; used to drop straggler commits
    sequence = models.PositiveIntegerField()
    profile_version = models.PositiveIntegerField(default=1)

    recommended_nurse_id = models.CharField(max_length=64, null=True, blank=True)
    recommended_doctor_id = models.CharField(max_length=64, null=True, blank=True)
    recommended_bed_id = models.CharField(max_length=64, null=True, blank=True)

    reasoning = models.TextField(blank=True, default="")
    notice = models.CharField(max_length=255, blank=True, default="")

    source = models.CharField(max_length=32, choices=DecisionSource.choices, db_index=True)
    status = models.CharField(
        max_length=16,
        choices=DecisionStatus.choices,
        default=DecisionStatus.PROPOSED,
        db_index=True,
    )

    supersedes_id = models.UUIDField(null=True, blank=True)

    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    committed_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "assignments_decision"
        ordering = ["patient_id", "sequence"]
        constraints = [
            models.UniqueConstraint(
                fields=["patient", "sequence"],
                name="uq_decision_sequence_per_patient",
            ),
            models.UniqueConstraint(
                fields=["patient"],
                condition=Q(status="committed"),
                name="uq_one_committed_decision_per_patient",
            ),
        ]
        indexes = [
            models.Index(fields=["patient", "status"]),
        ]

    def __str__(self) -> str:
        return f"{self.source} decision {self.id} [{self.status}]"
