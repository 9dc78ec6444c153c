# cf_core/assignments/commit.py
from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from django.utils import timezone

from cf_core.assignments.exceptions import (
    DecisionNotFound,
    InvalidDecisionState,
    NoActiveAssignment,
    PatientNotFound,
    ResourceConflict,
    ResourceNotFound,
    StaleDecision,
)
from cf_core.assignments.models import DecisionStatus
from cf_core.assignments.types import SLOTS, AssignmentDecision
from cf_core.audit.services import AuditService
from cf_core.resources.models import BedAvailability
from cf_core.resources.store import RecordStore
from cf_core.resources.types import AVAILABLE, BED, ENGAGED_STATUS, VALID_STATUSES, ResourceRef

logger = logging.getLogger(__name__)


class AssignmentCommitService:
    """
    The only writer of resource availability.

    commit() runs inside store.atomic(): either every slot is reserved, the
    previous commit (if any) released and superseded and the patient linked,
    or nothing changes. release() and set_availability() follow the same rule.

    Lock order for every writer: patient row, then nurses, doctors, beds (each by id).
    """

    def __init__(self, store: RecordStore):
        self.store = store
        self.audit = AuditService(store)

    # ---------------------------------------------------------------------
    # Helpers
    # ---------------------------------------------------------------------
    def _lock_resources(
        self,
        decision: AssignmentDecision,
        active: Optional[AssignmentDecision],
    ) -> dict[str, dict[str, Optional[ResourceRef]]]:
        locked: dict[str, dict[str, Optional[ResourceRef]]] = {}
        for kind in SLOTS:
            ids = {decision.slot(kind)}
            if active is not None:
                ids.add(active.slot(kind))
            locked[kind] = {
                rid: self.store.get_by_id(kind, rid, for_update=True)
                for rid in sorted(i for i in ids if i)
            }
        return locked

    @staticmethod
    def _conflicts(
        decision: AssignmentDecision,
        active: Optional[AssignmentDecision],
        locked: dict[str, dict[str, Optional[ResourceRef]]],
    ) -> dict[str, str]:
        held_by_active = active.id if active is not None else None
        failed: dict[str, str] = {}
        for kind in SLOTS:
            rid = decision.slot(kind)
            if not rid:
                continue
            ref = locked[kind].get(rid)
            if ref is None:
                failed[kind] = rid
            elif not ref.is_available and not (held_by_active and ref.current_assignment_id == held_by_active):
                failed[kind] = rid
        return failed

    def _release(self, active: AssignmentDecision, *, bed_status: str = AVAILABLE) -> None:
        for kind in SLOTS:
            rid = active.slot(kind)
            if not rid:
                continue
            ref = self.store.get_by_id(kind, rid, for_update=True)
            if ref is not None and ref.current_assignment_id == active.id:
                self.store.update_availability(kind, rid, bed_status if kind == BED else AVAILABLE, None)

    # ---------------------------------------------------------------------
    # Commit
    # ---------------------------------------------------------------------
    def commit(self, decision_id: UUID) -> AssignmentDecision:
        stale: Optional[StaleDecision] = None

        with self.store.atomic():
            decision = self.store.get_decision(decision_id)
            if decision is None:
                raise DecisionNotFound(decision_id)

            # concurrent confirms for one patient queue here, so `active` below is current
            self.store.lock_patient(decision.patient_id)
            decision = self.store.get_decision(decision_id, for_update=True)

            if decision.status != DecisionStatus.PROPOSED:
                raise InvalidDecisionState(decision.id, decision.status)
            if not (decision.reasoning or "").strip():
                raise InvalidDecisionState(decision.id, "missing reasoning")

            active = self.store.get_active_decision(decision.patient_id)

            if active is not None and active.sequence > decision.sequence:
                # straggler: a newer decision already won; keep it for history only
                superseded = decision.with_status(DecisionStatus.SUPERSEDED.value)
                self.store.save_decision(superseded)
                self.audit.record(superseded, extra={"superseded_by": str(active.id), "reason": "stale"})
                stale = StaleDecision(decision.id, active.id)
            else:
                locked = self._lock_resources(decision, active)
                failed = self._conflicts(decision, active, locked)
                if failed:
                    raise ResourceConflict(failed)

                if active is not None:
                    self._release(active)
                    superseded = active.with_status(DecisionStatus.SUPERSEDED.value)
                    # the old row must leave "committed" before the new one enters it
                    self.store.save_decision(superseded)
                    self.audit.record(superseded, extra={"superseded_by": str(decision.id)})

                for kind in SLOTS:
                    rid = decision.slot(kind)
                    if rid:
                        self.store.update_availability(kind, rid, ENGAGED_STATUS[kind], decision.id)

                committed = decision.with_status(
                    DecisionStatus.COMMITTED.value,
                    committed_at=timezone.now(),
                    supersedes_id=decision.supersedes_id or (active.id if active is not None else None),
                )
                self.store.save_decision(committed)
                self.store.link_patient_assignment(committed.patient_id, committed)
                self.audit.record(committed)

        if stale is not None:
            logger.warning("Dropped stale decision %s (active: %s)", stale.decision_id, stale.active_id)
            raise stale

        logger.info(
            "Committed decision %s for patient %s (nurse=%s doctor=%s bed=%s)",
            committed.id,
            committed.patient_id,
            committed.recommended_nurse_id,
            committed.recommended_doctor_id,
            committed.recommended_bed_id,
        )
        return committed

    # ---------------------------------------------------------------------
    # Discharge
    # ---------------------------------------------------------------------
    def release(self, patient_id: UUID, *, bed_status: str = BedAvailability.CLEANING.value) -> AssignmentDecision:
        """
        Ends the patient's stay: frees every slot of the active decision (the
        bed goes to bed_status, staff back to available), marks the decision
        released, supersedes open proposals and marks the patient discharged.
        """
        if bed_status not in VALID_STATUSES[BED] or bed_status == ENGAGED_STATUS[BED]:
            raise ValueError(f"Invalid bed status after discharge: {bed_status!r}")

        with self.store.atomic():
            if not self.store.lock_patient(patient_id):
                raise PatientNotFound(patient_id)

            active = self.store.get_active_decision(patient_id)
            if active is None:
                raise NoActiveAssignment(patient_id)

            self._release(active, bed_status=bed_status)
            released = active.with_status(DecisionStatus.RELEASED.value)
            self.store.save_decision(released)

            for pending in self.store.list_decisions(patient_id):
                if pending.status == DecisionStatus.PROPOSED:
                    dropped = pending.with_status(DecisionStatus.SUPERSEDED.value)
                    self.store.save_decision(dropped)
                    self.audit.record(dropped, extra={"superseded_by": str(released.id), "reason": "released"})

            self.store.link_patient_assignment(patient_id, None, discharged=True)
            self.audit.record(released, extra={"bed_status": bed_status})

        logger.info("Released decision %s for patient %s (bed -> %s)", released.id, patient_id, bed_status)
        return released

    # ---------------------------------------------------------------------
    # Manual status changes (cleaning done, staff off shift)
    # ---------------------------------------------------------------------
    def set_availability(self, kind: str, resource_id: str, status: str) -> ResourceRef:
        if kind not in VALID_STATUSES or status not in VALID_STATUSES[kind] or status == ENGAGED_STATUS[kind]:
            raise ValueError(f"{status!r} cannot be set by hand on a {kind}")

        with self.store.atomic():
            ref = self.store.get_by_id(kind, resource_id, for_update=True)
            if ref is None:
                raise ResourceNotFound(kind, resource_id)
            if ref.current_assignment_id is not None:
                raise ResourceConflict({kind: resource_id}, f"{kind.title()} {resource_id} is held by an assignment.")
            updated = self.store.update_availability(kind, resource_id, status, None)

        logger.info("%s %s availability %s -> %s", kind.title(), resource_id, ref.availability, status)
        return updated
