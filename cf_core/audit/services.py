# cf_core/audit/services.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional
from uuid import UUID

from cf_core.assignments.types import SLOTS, AssignmentDecision, substituted_slots
from cf_core.audit.types import AuditEntry

DECISION_ENTITY = "AssignmentDecision"
PATIENT_ENTITY = "Patient"

# decision status -> event code
_STATUS_EVENTS = {
    "proposed": "assignment.proposed",
    "rejected": "assignment.rejected",
    "committed": "assignment.committed",
    "superseded": "assignment.superseded",
    "released": "assignment.released",
}


def _slot_values(decision: Optional[AssignmentDecision]) -> Optional[Dict[str, Optional[str]]]:
    if decision is None:
        return None
    return {kind: decision.slot(kind) for kind in SLOTS}


@dataclass(frozen=True)
class AuditRecord:
    event_code: str
    entity_type: str
    entity_id: UUID
    patient_id: Optional[UUID]
    metadata: Dict[str, Any]


class AuditService:
    """
    Central audit writer. Append-only: entries go through the record store
    and are never edited or removed.
    """

    def __init__(self, store):
        self.store = store

    def log(
        self,
        *,
        event_code: str,
        entity_type: str,
        entity_id: UUID,
        patient_id: Optional[UUID],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> AuditRecord:
        metadata = metadata or {}

        self.store.append_audit_entry(
            AuditEntry(
                event_code=event_code,
                entity_type=entity_type,
                entity_id=entity_id,
                patient_id=patient_id,
                metadata=metadata,
            )
        )

        return AuditRecord(
            event_code=event_code,
            entity_type=entity_type,
            entity_id=entity_id,
            patient_id=patient_id,
            metadata=metadata,
        )

    def record(
        self,
        decision: AssignmentDecision,
        raw_recommendation: Optional[AssignmentDecision] = None,
        *,
        event_code: Optional[str] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> AuditRecord:
        """
        Reasoning trail for one decision version: raw vs final slots make
        every substitution visible.
        """
        final = _slot_values(decision)
        raw = _slot_values(raw_recommendation)

        metadata: Dict[str, Any] = {
            "decision_id": str(decision.id),
            "sequence": decision.sequence,
            "profile_version": decision.profile_version,
            "source": decision.source,
            "status": decision.status,
            "raw_slots": raw,
            "final_slots": final,
            "substituted_slots": substituted_slots(raw_recommendation, decision),
            "reasoning": decision.reasoning,
            "notice": decision.notice,
            "supersedes_id": str(decision.supersedes_id) if decision.supersedes_id else None,
            "committed_at": decision.committed_at.isoformat() if decision.committed_at else None,
        }
        if extra:
            metadata.update(extra)

        return self.log(
            event_code=event_code or _STATUS_EVENTS[decision.status],
            entity_type=DECISION_ENTITY,
            entity_id=decision.id,
            patient_id=decision.patient_id,
            metadata=metadata,
        )
