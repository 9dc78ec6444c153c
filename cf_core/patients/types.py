# cf_core/patients/types.py
from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from django.core.exceptions import ValidationError

from cf_core.patients.models import PatientStatus, Severity


@dataclass(frozen=True)
class PatientProfile:
    """
    Intake snapshot handed to the recommender. Frozen: a changed profile is a
    new object (and a new stored version), never an in-place edit.
    """
    name: str
    condition: str
    severity: str = Severity.MEDIUM.value
    age: Optional[int] = None
    gender: str = ""
    required_specialty: str = ""
    allergies: tuple[str, ...] = ()
    notes: str = ""

    @property
    def is_critical(self) -> bool:
        return self.severity == Severity.CRITICAL

    def as_fields(self) -> dict[str, Any]:
        data = asdict(self)
        data["allergies"] = list(self.allergies)
        return data

    def to_payload(self) -> dict[str, Any]:
        """Recommender wire shape (camelCase, like the agent contract)."""
        return {
            "name": self.name,
            "age": self.age,
            "gender": self.gender or None,
            "condition": self.condition,
            "requiredSpecialty": self.required_specialty or None,
            "severity": self.severity,
            "allergies": list(self.allergies),
            "notes": self.notes or None,
        }


def validate_profile(profile: PatientProfile) -> None:
    """
    Raises ValidationError with per-field messages; runs before any
    recommendation call.
    """
    errors: dict[str, str] = {}

    if not (profile.name or "").strip():
        errors["name"] = "This field is required."
    if not (profile.condition or "").strip():
        errors["condition"] = "This field is required."
    if profile.severity not in Severity.values:
        errors["severity"] = f"Must be one of {Severity.values}."
    if profile.age is not None:
        if isinstance(profile.age, bool) or not isinstance(profile.age, int) or profile.age < 0:
            errors["age"] = "Must be a non-negative integer."

    if errors:
        raise ValidationError(errors)


@dataclass(frozen=True)
class PatientRecord:
    id: UUID
    profile: PatientProfile
    profile_version: int = 1
    status: str = PatientStatus.PENDING_ASSIGNMENT.value
    assigned_nurse_id: Optional[str] = None
    assigned_doctor_id: Optional[str] = None
    assigned_bed_id: Optional[str] = None
    created_at: Optional[datetime] = None
