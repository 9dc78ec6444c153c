# cf_core/assignments/services.py
"""
Public surface of the assignment engine:

    submit_patient_for_assignment  recommend -> reconcile -> store proposal (no commit)
    confirm_assignment             optional manual override -> reconcile -> commit
    get_active_assignment
    get_assignment_history
    release_assignment             discharge: free every slot, patient discharged
    set_resource_availability      manual status change for an unheld resource

Recommender failures never leave this module; callers get a decision
(possibly rejected), a ValidationError, or an AssignmentError.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import replace
from typing import Optional
from uuid import UUID

from django.core.exceptions import ValidationError

from cf_core.assignments.commit import AssignmentCommitService
from cf_core.assignments.exceptions import (
    AssignmentCancelled,
    BedExhausted,
    DecisionNotFound,
    InvalidDecisionState,
    PatientNotFound,
    ResourceConflict,
    StaleDecision,
)
from cf_core.assignments.models import DecisionSource, DecisionStatus
from cf_core.assignments.reconciliation import reconcile
from cf_core.assignments.recommender import (
    RecommendationClient,
    RecommendationMalformed,
    RecommendationOk,
    fallback_decision,
)
from cf_core.assignments.types import SLOT_FIELDS, SLOTS, AssignmentDecision
from cf_core.audit.services import DECISION_ENTITY, AuditService
from cf_core.patients.services import PatientService
from cf_core.patients.types import PatientProfile
from cf_core.resources.pool import ResourcePoolProvider
from cf_core.resources.store import RecordNotFound, RecordStore, get_record_store
from cf_core.resources.types import BED, DOCTOR, NURSE, ResourceRef

logger = logging.getLogger(__name__)

NOTICE_UNAVAILABLE = "AI recommender unreachable; fallback heuristic used"
NOTICE_MALFORMED = "AI recommender returned an invalid response; fallback heuristic used"

OVERRIDE_KEYS = {"nurse_id": NURSE, "doctor_id": DOCTOR, "bed_id": BED}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _check_cancelled(cancel_event: Optional[threading.Event], deadline: Optional[float]) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise AssignmentCancelled("Assignment flow was cancelled by the caller.")
    if deadline is not None and time.monotonic() >= deadline:
        raise AssignmentCancelled("Assignment flow exceeded its deadline.")


def _clean_overrides(overrides: Optional[dict]) -> dict[str, Optional[str]]:
    """{"bed_id": "B2"} -> {"bed": "B2"}; only None clears a slot, blank strings are rejected."""
    if not overrides:
        return {}

    unknown = sorted(set(overrides) - set(OVERRIDE_KEYS))
    if unknown:
        raise ValidationError({key: "Unknown override field." for key in unknown})

    cleaned: dict[str, Optional[str]] = {}
    for key, kind in OVERRIDE_KEYS.items():
        if key not in overrides:
            continue
        value = overrides[key]
        if value is None:
            cleaned[kind] = None
            continue
        if not isinstance(value, str):
            raise ValidationError({key: "Must be a resource id string or null."})
        if not value.strip():
            raise ValidationError({key: "Blank resource id; send null to clear the slot."})
        cleaned[kind] = value.strip()
    return cleaned


def _describe_override(base: AssignmentDecision, overrides: dict[str, Optional[str]]) -> str:
    changes = [
        f"{kind} {base.slot(kind) or 'none'} -> {overrides[kind] or 'none'}"
        for kind in SLOTS
        if kind in overrides
    ]
    return f"Manual override of decision {base.id}: " + ", ".join(changes) + "."


def _store_proposal(
    store: RecordStore,
    decision: AssignmentDecision,
    raw: Optional[AssignmentDecision],
    *,
    supersede: Optional[AssignmentDecision] = None,
) -> AssignmentDecision:
    audit = AuditService(store)
    with store.atomic():
        decision = replace(decision, sequence=store.next_sequence(decision.patient_id))
        if supersede is not None and supersede.status == DecisionStatus.PROPOSED:
            superseded = supersede.with_status(DecisionStatus.SUPERSEDED.value)
            store.save_decision(superseded)
            audit.record(superseded, extra={"superseded_by": str(decision.id)})
        store.save_decision(decision)
        audit.record(decision, raw)
    return decision


def _repropose(
    store: RecordStore,
    base: AssignmentDecision,
    slots: dict[str, Optional[str]],
    *,
    source: str,
    reasoning: str,
) -> AssignmentDecision:
    """
    New proposed version of `base` with the given slot values, reconciled
    against a fresh snapshot. `base` is superseded if it was still proposed.
    """
    patient = store.get_patient(base.patient_id)
    if patient is None:
        raise PatientNotFound(base.patient_id)

    active = store.get_active_decision(base.patient_id)
    raw = AssignmentDecision(
        patient_id=base.patient_id,
        reasoning=reasoning,
        source=source,
        profile_version=patient.profile_version,
        supersedes_id=base.id,
        **{SLOT_FIELDS[kind]: slots.get(kind) for kind in SLOTS},
    )
    snapshot = ResourcePoolProvider(store).snapshot()
    final = reconcile(
        raw,
        snapshot,
        patient.profile,
        reusable_assignment_id=active.id if active is not None else None,
    )
    return _store_proposal(store, final, raw, supersede=base)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def submit_patient_for_assignment(
    profile: PatientProfile,
    *,
    patient_id: Optional[UUID] = None,
    cancel_event: Optional[threading.Event] = None,
    deadline: Optional[float] = None,
    store: Optional[RecordStore] = None,
    client: Optional[RecommendationClient] = None,
) -> AssignmentDecision:
    """
    Registers the patient (or a new profile version for patient_id), asks the
    recommender, reconciles against the live pool and stores the proposal.
    Nothing is reserved until confirm_assignment().

    deadline is a time.monotonic() value.
    """
    store = store or get_record_store()
    client = client or RecommendationClient.from_settings()

    _check_cancelled(cancel_event, deadline)

    patients = PatientService(store)
    if patient_id is None:
        patient = patients.register(profile)
    else:
        try:
            patient = patients.add_profile_version(patient_id=patient_id, profile=profile)
        except RecordNotFound:
            raise PatientNotFound(patient_id)

    snapshot = ResourcePoolProvider(store).snapshot()
    result = client.recommend(
        profile,
        snapshot,
        patient_id=patient.id,
        cancel_event=cancel_event,
        deadline=deadline,
    )

    if isinstance(result, RecommendationOk):
        raw, notice = result.decision, ""
    else:
        _check_cancelled(cancel_event, deadline)
        raw = fallback_decision(profile, snapshot, patient_id=patient.id)
        notice = NOTICE_MALFORMED if isinstance(result, RecommendationMalformed) else NOTICE_UNAVAILABLE

    raw = replace(raw, profile_version=patient.profile_version, notice=notice)

    active = store.get_active_decision(patient.id)
    final = reconcile(
        raw,
        snapshot,
        profile,
        reusable_assignment_id=active.id if active is not None else None,
    )

    _check_cancelled(cancel_event, deadline)
    final = _store_proposal(store, final, raw)

    if final.status == DecisionStatus.REJECTED:
        logger.warning("Decision %s for patient %s rejected: bed pool exhausted", final.id, final.patient_id)
    else:
        logger.info("Proposed decision %s for patient %s (source=%s)", final.id, final.patient_id, final.source)
    return final


def confirm_assignment(
    decision_id: UUID,
    overrides: Optional[dict] = None,
    *,
    cancel_event: Optional[threading.Event] = None,
    deadline: Optional[float] = None,
    retry_on_conflict: bool = False,
    store: Optional[RecordStore] = None,
) -> AssignmentDecision:
    """
    Commits a proposed decision. With overrides ({"nurse_id", "doctor_id",
    "bed_id"}) a manual_override decision is built first; it supersedes the
    base proposal and goes through reconciliation like any other.

    retry_on_conflict: re-reconcile against a fresh snapshot and commit once
    more. Never more than one retry.
    """
    store = store or get_record_store()

    base = store.get_decision(decision_id)
    if base is None:
        raise DecisionNotFound(decision_id)

    changes = _clean_overrides(overrides)

    if not changes:
        if base.is_committed:
            return base
        if base.status == DecisionStatus.REJECTED:
            raise BedExhausted(base.id, base.reasoning)
        if base.status != DecisionStatus.PROPOSED:
            raise InvalidDecisionState(base.id, base.status)
        target = base
    else:
        if base.status in (DecisionStatus.SUPERSEDED, DecisionStatus.RELEASED):
            raise InvalidDecisionState(
                base.id,
                base.status,
                allowed=(DecisionStatus.PROPOSED, DecisionStatus.COMMITTED, DecisionStatus.REJECTED),
            )
        _check_cancelled(cancel_event, deadline)
        slots = {**base.slots(), **changes}
        target = _repropose(
            store,
            base,
            slots,
            source=DecisionSource.MANUAL_OVERRIDE.value,
            reasoning=_describe_override(base, changes),
        )
        if target.status == DecisionStatus.REJECTED:
            raise BedExhausted(target.id, target.reasoning)

    retried = False
    while True:
        _check_cancelled(cancel_event, deadline)
        try:
            return AssignmentCommitService(store).commit(target.id)
        except StaleDecision:
            raise
        except ResourceConflict as e:
            logger.warning("Commit conflict for decision %s: %s", target.id, e)
            AuditService(store).log(
                event_code="assignment.conflict",
                entity_type=DECISION_ENTITY,
                entity_id=target.id,
                patient_id=target.patient_id,
                metadata={"slots": e.slots, "retried": retried},
            )
            if retried or not retry_on_conflict:
                raise

        retried = True

        target = _repropose(
            store,
            target,
            target.slots(),
            source=target.source,
            reasoning=f"{target.reasoning}\nRe-reconciled after a commit conflict.",
        )
        if target.status == DecisionStatus.REJECTED:
            raise BedExhausted(target.id, target.reasoning)


def get_active_assignment(patient_id: UUID, *, store: Optional[RecordStore] = None) -> Optional[AssignmentDecision]:
    store = store or get_record_store()
    return store.get_active_decision(patient_id)


def get_assignment_history(patient_id: UUID, *, store: Optional[RecordStore] = None) -> list[AssignmentDecision]:
    store = store or get_record_store()
    return store.list_decisions(patient_id)


def release_assignment(
    patient_id: UUID,
    *,
    bed_status: Optional[str] = None,
    store: Optional[RecordStore] = None,
) -> AssignmentDecision:
    """
    Discharge: frees the patient's nurse, doctor and bed. The bed goes to
    "cleaning" unless bed_status says otherwise.
    """
    store = store or get_record_store()
    service = AssignmentCommitService(store)
    try:
        if bed_status is None:
            return service.release(patient_id)
        return service.release(patient_id, bed_status=bed_status)
    except ValueError as e:
        raise ValidationError({"bed_status": str(e)})


def set_resource_availability(
    kind: str,
    resource_id: str,
    availability: str,
    *,
    store: Optional[RecordStore] = None,
) -> ResourceRef:
    """
    Manual status change for a resource no assignment holds, e.g. a bed
    leaving cleaning or a nurse going off shift.
    """
    store = store or get_record_store()
    try:
        return AssignmentCommitService(store).set_availability(kind, resource_id, availability)
    except ValueError as e:
        raise ValidationError({"availability": str(e)})
