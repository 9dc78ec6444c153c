# cf_core/assignments/types.py
from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional
from uuid import UUID

from django.utils import timezone

from cf_core.assignments.models import DecisionSource, DecisionStatus
from cf_core.resources.types import BED, DOCTOR, NURSE

# slot order matters: reconciliation and reasoning notes follow it
SLOTS: tuple[str, ...] = (NURSE, DOCTOR, BED)

SLOT_FIELDS = {
    NURSE: "recommended_nurse_id",
    DOCTOR: "recommended_doctor_id",
    BED: "recommended_bed_id",
}


@dataclass(frozen=True)
class AssignmentDecision:
    patient_id: UUID
    recommended_nurse_id: Optional[str] = None
    recommended_doctor_id: Optional[str] = None
    recommended_bed_id: Optional[str] = None
    reasoning: str = ""
    source: str = DecisionSource.EXTERNAL_AI.value
    status: str = DecisionStatus.PROPOSED.value
    notice: str = ""
    id: UUID = field(default_factory=uuid.uuid4)
    sequence: int = 0
    profile_version: int = 1
    supersedes_id: Optional[UUID] = None
    created_at: datetime = field(default_factory=timezone.now)
    committed_at: Optional[datetime] = None

    def slot(self, kind: str) -> Optional[str]:
        return getattr(self, SLOT_FIELDS[kind])

    def slots(self) -> dict[str, Optional[str]]:
        return {kind: self.slot(kind) for kind in SLOTS}

    def with_slot(self, kind: str, resource_id: Optional[str]) -> "AssignmentDecision":
        return replace(self, **{SLOT_FIELDS[kind]: resource_id})

    def with_status(self, status: str, **changes) -> "AssignmentDecision":
        return replace(self, status=status, **changes)

    @property
    def is_committed(self) -> bool:
        return self.status == DecisionStatus.COMMITTED


def substituted_slots(raw: Optional[AssignmentDecision], final: AssignmentDecision) -> list[str]:
    """Slot kinds whose final value differs from what the raw recommendation named."""
    if raw is None:
        return []
    return [kind for kind in SLOTS if raw.slot(kind) != final.slot(kind)]
