# cf_core/audit/models.py
import uuid

from django.db import models
from django.utils import timezone

from cf_core.common.models import ImmutableModelMixin


class AuditEvent(ImmutableModelMixin, models.Model):
    """
    Immutable audit record.
    For assignments this is the reasoning trail: raw vs final slots,
    substitutions, source and the full reasoning text.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    event_code = models.CharField(max_length=128, db_index=True)  # e.g. "assignment.committed"
    entity_type = models.CharField(max_length=128, db_index=True)  # e.g. "AssignmentDecision"
    entity_id = models.UUIDField(db_index=True)
    patient_id = models.UUIDField(null=True, blank=True, db_index=True)

    occurred_at = models.DateTimeField(default=timezone.now, db_index=True)
    metadata = models.JSONField(default=dict)

    class Meta:
        db_table = "audit_audit_event"
        indexes = [
            models.Index(fields=["patient_id", "occurred_at"]),
            models.Index(fields=["entity_type", "entity_id"]),
        ]

    def __str__(self) -> str:
        return f"{self.event_code} {self.entity_type}:{self.entity_id}"
