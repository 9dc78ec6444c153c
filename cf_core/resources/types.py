# cf_core/resources/types.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional
from uuid import UUID

from cf_core.resources.models import BedAvailability, ResourceKind, StaffAvailability

NURSE = ResourceKind.NURSE.value
DOCTOR = ResourceKind.DOCTOR.value
BED = ResourceKind.BED.value

KINDS: tuple[str, ...] = (NURSE, DOCTOR, BED)

AVAILABLE = "available"

# status a resource takes while held by a committed decision
ENGAGED_STATUS = {
    NURSE: StaffAvailability.BUSY.value,
    DOCTOR: StaffAvailability.BUSY.value,
    BED: BedAvailability.OCCUPIED.value,
}

VALID_STATUSES = {
    NURSE: frozenset(StaffAvailability.values),
    DOCTOR: frozenset(StaffAvailability.values),
    BED: frozenset(BedAvailability.values),
}


def check_availability_change(kind: str, status: str, assignment_id: Optional[UUID]) -> None:
    """
    Enforces: assignment_id is set if and only if status is the engaged status.
    """
    if kind not in VALID_STATUSES:
        raise ValueError(f"Unknown resource kind: {kind!r}")
    if status not in VALID_STATUSES[kind]:
        raise ValueError(f"Invalid {kind} availability: {status!r}")
    engaged = status == ENGAGED_STATUS[kind]
    if engaged and assignment_id is None:
        raise ValueError(f"{kind} marked {status} requires an assignment id")
    if not engaged and assignment_id is not None:
        raise ValueError(f"{kind} marked {status} cannot carry an assignment id")


@dataclass(frozen=True)
class ResourceRef:
    """
    Read-only view of a nurse, doctor or bed. For beds `specialization`
    holds the bed type and `name` the bed number.
    """
    kind: str
    id: str
    availability: str = AVAILABLE
    name: str = ""
    specialization: str = ""
    current_assignment_id: Optional[UUID] = None
    floor: Optional[int] = None

    @property
    def is_available(self) -> bool:
        return self.availability == AVAILABLE

    def to_payload(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "status": self.availability,
        }
        if self.kind == BED:
            data["bed_number"] = self.name
            data["floor"] = self.floor
            data["type"] = self.specialization
        else:
            data["specialization"] = self.specialization
        return data
