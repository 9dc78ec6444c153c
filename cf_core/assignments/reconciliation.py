# cf_core/assignments/reconciliation.py
"""
Validate and repair a raw recommendation against a resource snapshot.

Pure: reads the snapshot, returns a new decision, touches nothing else.
The same (raw, pool, profile) always produces the same slots and reasoning.
"""
from __future__ import annotations

from dataclasses import replace
from typing import Optional
from uuid import UUID

from cf_core.assignments.models import DecisionSource, DecisionStatus
from cf_core.assignments.recommender import FALLBACK_REASONING, select_candidate
from cf_core.assignments.types import SLOT_FIELDS, SLOTS, AssignmentDecision
from cf_core.patients.types import PatientProfile
from cf_core.resources.pool import Snapshot
from cf_core.resources.types import BED, ResourceRef

BED_EXHAUSTED_REASON = "Rejected: critical patient requires a bed and no bed is available (bed pool exhausted)"

_SYNTHESIZED_REASONING = {
    DecisionSource.EXTERNAL_AI.value: "Recommender supplied no reasoning; slots validated against current availability",
    DecisionSource.FALLBACK_HEURISTIC.value: FALLBACK_REASONING,
    DecisionSource.MANUAL_OVERRIDE.value: "Manual override by staff",
}


def _usable(ref: Optional[ResourceRef], reusable_assignment_id: Optional[UUID]) -> bool:
    if ref is None:
        return False
    if ref.is_available:
        return True
    # already held by the decision this one replaces
    return reusable_assignment_id is not None and ref.current_assignment_id == reusable_assignment_id


def _why_unusable(kind: str, resource_id: str, ref: Optional[ResourceRef]) -> str:
    if ref is None:
        return f"Recommended {kind} {resource_id} was not found in the current resource pool"
    return f"Recommended {kind} {resource_id} was no longer available ({ref.availability})"


def _fallback(
    kind: str,
    pool: Snapshot,
    profile: PatientProfile,
    reusable_assignment_id: Optional[UUID],
) -> tuple[Optional[ResourceRef], bool]:
    candidates = [r for r in pool.of_kind(kind) if _usable(r, reusable_assignment_id)]
    return select_candidate(candidates, kind=kind, required_specialty=profile.required_specialty)


def reconcile(
    raw: AssignmentDecision,
    pool: Snapshot,
    profile: PatientProfile,
    *,
    reusable_assignment_id: Optional[UUID] = None,
) -> AssignmentDecision:
    """
    Per slot, in nurse/doctor/bed order:
      - named + usable      -> kept
      - named + unusable    -> single-slot fallback, note appended
      - null                -> stays null (critical bed slot is filled or the decision is rejected)

    Each slot draws from its own collection: ids are unique per kind, so a
    nurse and a bed may share an id.

    reusable_assignment_id: resources held by this committed decision count as
    usable (re-confirming a patient's current bed is not a conflict).
    """
    chosen: dict[str, Optional[str]] = {}
    notes: list[str] = []
    rejected = False

    for kind in SLOTS:
        resource_id = raw.slot(kind)
        bed_required = kind == BED and profile.is_critical

        if resource_id:
            ref = pool.find(kind, resource_id)
            if _usable(ref, reusable_assignment_id):
                chosen[kind] = resource_id
                continue

            why = _why_unusable(kind, resource_id, ref)
            substitute, matched = _fallback(kind, pool, profile, reusable_assignment_id)
            if substitute is not None:
                how = "specialty match" if matched else "availability"
                notes.append(f"{why}; substituted {substitute.id} by {how}.")
                chosen[kind] = substitute.id
                continue

            notes.append(f"{why}; no {kind} available, slot left empty.")
            chosen[kind] = None
            rejected = rejected or bed_required
            continue

        if bed_required:
            substitute, _ = _fallback(kind, pool, profile, reusable_assignment_id)
            if substitute is not None:
                notes.append(f"No bed was recommended for a critical patient; assigned {substitute.id} by availability.")
                chosen[kind] = substitute.id
                continue
            rejected = True

        chosen[kind] = None

    if rejected:
        notes.append(BED_EXHAUSTED_REASON)

    reasoning = (raw.reasoning or "").strip() or _SYNTHESIZED_REASONING.get(raw.source, FALLBACK_REASONING)
    if notes:
        reasoning = "\n".join([reasoning, *notes])

    return replace(
        raw,
        reasoning=reasoning,
        status=DecisionStatus.REJECTED.value if rejected else DecisionStatus.PROPOSED.value,
        **{SLOT_FIELDS[kind]: chosen[kind] for kind in SLOTS},
    )
