# cf_core/assignments/exceptions.py
from __future__ import annotations

from typing import Iterable, Optional
from uuid import UUID


class RecommenderError(Exception):
    """External recommender failed. Always absorbed by the assignment service."""

    def __init__(self, reason: str):
        super().__init__(reason)
        self.reason = reason


class RecommenderUnavailable(RecommenderError):
    pass


class RecommenderMalformed(RecommenderError):
    pass


class AssignmentError(Exception):
    pass


class ResourceConflict(AssignmentError):
    """
    One or more slots failed re-validation at commit time.
    `slots` maps slot kind -> resource id that could not be reserved.
    """

    def __init__(self, slots: Optional[dict[str, Optional[str]]] = None, message: str = ""):
        self.slots = dict(slots or {})
        if not message:
            named = ", ".join(f"{kind} {rid}" for kind, rid in self.slots.items())
            message = f"Resources no longer available: {named}" if named else "Resource conflict."
        super().__init__(message)


class StaleDecision(ResourceConflict):
    """A newer decision for the same patient is already committed."""

    def __init__(self, decision_id: UUID, active_id: UUID):
        self.decision_id = decision_id
        self.active_id = active_id
        super().__init__(message=f"Decision {decision_id} is older than the active decision {active_id}.")


class BedExhausted(AssignmentError):
    """Critical patient and no bed can be filled. The decision is stored as rejected."""

    def __init__(self, decision_id: UUID, reason: str):
        super().__init__(reason)
        self.decision_id = decision_id
        self.reason = reason


class InvalidDecisionState(AssignmentError):
    def __init__(self, decision_id: UUID, status: str, allowed: Iterable[str] = ("proposed",)):
        self.decision_id = decision_id
        self.status = status
        super().__init__(f"Decision {decision_id} is {status}; expected one of: {', '.join(allowed)}.")


class DecisionNotFound(AssignmentError, LookupError):
    def __init__(self, decision_id):
        self.decision_id = decision_id
        super().__init__(f"Assignment decision {decision_id} not found.")


class AssignmentCancelled(AssignmentError):
    pass


class PatientNotFound(AssignmentError, LookupError):
    def __init__(self, patient_id):
        self.patient_id = patient_id
        super().__init__(f"Patient {patient_id} not found.")


class NoActiveAssignment(AssignmentError, LookupError):
    def __init__(self, patient_id):
        self.patient_id = patient_id
        super().__init__(f"Patient {patient_id} has no active assignment.")


class ResourceNotFound(AssignmentError, LookupError):
    def __init__(self, kind: str, resource_id: str):
        self.kind = kind
        self.resource_id = resource_id
        super().__init__(f"{kind.title()} {resource_id} not found.")
