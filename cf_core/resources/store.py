# cf_core/resources/store.py
from __future__ import annotations

import abc
import logging
import threading
import uuid
from contextlib import contextmanager
from typing import Iterator, Optional
from uuid import UUID

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.db import transaction
from django.db.models import Max
from django.utils import timezone

from cf_core.assignments.types import AssignmentDecision
from cf_core.audit.types import AuditEntry
from cf_core.patients.types import PatientProfile, PatientRecord
from cf_core.resources.types import (
    AVAILABLE,
    BED,
    DOCTOR,
    KINDS,
    NURSE,
    ResourceRef,
    check_availability_change,
)

logger = logging.getLogger(__name__)

DATA_MODE_DB = "db"
DATA_MODE_MEMORY = "memory"


class RecordNotFound(LookupError):
    pass


class RecordStore(abc.ABC):
    """
    Data-access boundary for beds, staff, patients, assignment decisions and
    the audit trail. Two implementations with identical semantics:

      - DatabaseRecordStore: Django ORM, atomic() = DB transaction + row locks
      - InMemoryRecordStore: process-local dicts, atomic() = process lock + rollback

    Only the commit service calls update_availability().
    """

    mode: str = ""

    @abc.abstractmethod
    def atomic(self):
        """Context manager: single-writer boundary for snapshot + commit."""

    # -------------------------
    # Resources
    # -------------------------
    @abc.abstractmethod
    def list_resources(self, kind: str, *, for_update: bool = False) -> list[ResourceRef]:
        """All resources of a kind, in stable id order."""

    def list_available(self, kind: str) -> list[ResourceRef]:
        return [r for r in self.list_resources(kind) if r.availability == AVAILABLE]

    @abc.abstractmethod
    def get_by_id(self, kind: str, resource_id: str, *, for_update: bool = False) -> Optional[ResourceRef]:
        ...

    @abc.abstractmethod
    def update_availability(
        self,
        kind: str,
        resource_id: str,
        status: str,
        assignment_id: Optional[UUID],
    ) -> ResourceRef:
        ...

    @abc.abstractmethod
    def upsert_resource(self, ref: ResourceRef) -> ResourceRef:
        ...

    @abc.abstractmethod
    def clear_resources(self) -> None:
        ...

    # -------------------------
    # Patients
    # -------------------------
    @abc.abstractmethod
    def create_patient(self, profile: PatientProfile) -> PatientRecord:
        ...

    @abc.abstractmethod
    def add_profile_version(self, patient_id: UUID, profile: PatientProfile) -> PatientRecord:
        ...

    @abc.abstractmethod
    def get_patient(self, patient_id: UUID) -> Optional[PatientRecord]:
        ...

    @abc.abstractmethod
    def lock_patient(self, patient_id: UUID) -> bool:
        """
        Serializes writers for one patient until the enclosing atomic() ends.
        Returns False for an unknown patient.
        """

    @abc.abstractmethod
    def link_patient_assignment(
        self,
        patient_id: UUID,
        decision: Optional[AssignmentDecision],
        *,
        discharged: bool = False,
    ) -> None:
        """decision=None unlinks; discharged marks the stay as ended."""

    # -------------------------
    # Decisions
    # -------------------------
    @abc.abstractmethod
    def save_decision(self, decision: AssignmentDecision) -> AssignmentDecision:
        """Insert or update (status/committed_at) a decision version."""

    @abc.abstractmethod
    def get_decision(self, decision_id: UUID, *, for_update: bool = False) -> Optional[AssignmentDecision]:
        ...

    @abc.abstractmethod
    def list_decisions(self, patient_id: UUID) -> list[AssignmentDecision]:
        """All decisions for a patient, in sequence order."""

    @abc.abstractmethod
    def get_active_decision(self, patient_id: UUID) -> Optional[AssignmentDecision]:
        ...

    @abc.abstractmethod
    def next_sequence(self, patient_id: UUID) -> int:
        ...

    # -------------------------
    # Audit
    # -------------------------
    @abc.abstractmethod
    def append_audit_entry(self, entry: AuditEntry) -> AuditEntry:
        ...

    @abc.abstractmethod
    def list_audit_entries(
        self,
        *,
        patient_id: Optional[UUID] = None,
        entity_id: Optional[UUID] = None,
    ) -> list[AuditEntry]:
        """Newest first."""


# ---------------------------------------------------------------------------
# Database store
# ---------------------------------------------------------------------------

class DatabaseRecordStore(RecordStore):
    mode = DATA_MODE_DB

    def atomic(self):
        return transaction.atomic()

    @staticmethod
    def _model(kind: str):
        from cf_core.resources.models import Bed, Doctor, Nurse

        models = {NURSE: Nurse, DOCTOR: Doctor, BED: Bed}
        try:
            return models[kind]
        except KeyError:
            raise ValueError(f"Unknown resource kind: {kind!r}")

    @staticmethod
    def _to_ref(kind: str, obj) -> ResourceRef:
        if kind == BED:
            return ResourceRef(
                kind=kind,
                id=obj.id,
                availability=obj.availability,
                name=obj.bed_number,
                specialization=obj.bed_type,
                current_assignment_id=obj.current_assignment_id,
                floor=obj.floor,
            )
        return ResourceRef(
            kind=kind,
            id=obj.id,
            availability=obj.availability,
            name=obj.name,
            specialization=obj.specialization,
            current_assignment_id=obj.current_assignment_id,
        )

    def list_resources(self, kind: str, *, for_update: bool = False) -> list[ResourceRef]:
        qs = self._model(kind).objects.order_by("id")
        if for_update:
            qs = qs.select_for_update()
        return [self._to_ref(kind, obj) for obj in qs]

    def list_available(self, kind: str) -> list[ResourceRef]:
        qs = self._model(kind).objects.filter(availability=AVAILABLE).order_by("id")
        return [self._to_ref(kind, obj) for obj in qs]

    def get_by_id(self, kind: str, resource_id: str, *, for_update: bool = False) -> Optional[ResourceRef]:
        qs = self._model(kind).objects.filter(id=resource_id)
        if for_update:
            qs = qs.select_for_update()
        obj = qs.first()
        return None if obj is None else self._to_ref(kind, obj)

    def update_availability(self, kind, resource_id, status, assignment_id):
        check_availability_change(kind, status, assignment_id)
        updated = self._model(kind).objects.filter(id=resource_id).update(
            availability=status,
            current_assignment_id=assignment_id,
            updated_at=timezone.now(),
        )
        if not updated:
            raise RecordNotFound(f"{kind} {resource_id} not found")
        return self.get_by_id(kind, resource_id)

    @transaction.atomic
    def upsert_resource(self, ref: ResourceRef) -> ResourceRef:
        check_availability_change(ref.kind, ref.availability, ref.current_assignment_id)
        model = self._model(ref.kind)
        if ref.kind == BED:
            defaults = {
                "bed_number": ref.name or ref.id,
                "floor": ref.floor or 1,
                "bed_type": ref.specialization or "general",
            }
        else:
            defaults = {"name": ref.name or ref.id, "specialization": ref.specialization}
        defaults.update(availability=ref.availability, current_assignment_id=ref.current_assignment_id)
        obj, _ = model.objects.update_or_create(id=ref.id, defaults=defaults)
        return self._to_ref(ref.kind, obj)

    @transaction.atomic
    def clear_resources(self) -> None:
        for kind in KINDS:
            self._model(kind).objects.all().delete()

    # -------------------------
    # Patients
    # -------------------------
    @staticmethod
    def _to_profile(row) -> PatientProfile:
        return PatientProfile(
            name=row.name,
            condition=row.condition,
            severity=row.severity,
            age=row.age,
            gender=row.gender,
            required_specialty=row.required_specialty,
            allergies=tuple(row.allergies or ()),
            notes=row.notes,
        )

    def _to_record(self, patient, profile_row) -> PatientRecord:
        return PatientRecord(
            id=patient.id,
            profile=self._to_profile(profile_row),
            profile_version=patient.current_profile_version,
            status=patient.status,
            assigned_nurse_id=patient.assigned_nurse_id,
            assigned_doctor_id=patient.assigned_doctor_id,
            assigned_bed_id=patient.assigned_bed_id,
            created_at=patient.created_at,
        )

    @transaction.atomic
    def create_patient(self, profile: PatientProfile) -> PatientRecord:
        from cf_core.patients.models import Patient, PatientProfile as PatientProfileRow

        patient = Patient.objects.create(current_profile_version=1)
        row = PatientProfileRow.objects.create(patient=patient, version=1, **profile.as_fields())
        return self._to_record(patient, row)

    @transaction.atomic
    def add_profile_version(self, patient_id: UUID, profile: PatientProfile) -> PatientRecord:
        from cf_core.patients.models import Patient, PatientProfile as PatientProfileRow

        patient = Patient.objects.select_for_update().filter(id=patient_id).first()
        if patient is None:
            raise RecordNotFound(f"patient {patient_id} not found")

        version = patient.current_profile_version + 1
        row = PatientProfileRow.objects.create(patient=patient, version=version, **profile.as_fields())
        patient.current_profile_version = version
        patient.save(update_fields=["current_profile_version", "updated_at"])
        return self._to_record(patient, row)

    def get_patient(self, patient_id: UUID) -> Optional[PatientRecord]:
        from cf_core.patients.models import Patient

        patient = Patient.objects.filter(id=patient_id).first()
        if patient is None:
            return None
        row = patient.profiles.get(version=patient.current_profile_version)
        return self._to_record(patient, row)

    def lock_patient(self, patient_id: UUID) -> bool:
        from cf_core.patients.models import Patient

        locked = Patient.objects.select_for_update().filter(id=patient_id).values_list("id", flat=True).first()
        return locked is not None

    def link_patient_assignment(self, patient_id, decision, *, discharged=False) -> None:
        from cf_core.patients.models import Patient, PatientStatus

        if decision is None:
            changes = {
                "status": PatientStatus.DISCHARGED if discharged else PatientStatus.PENDING_ASSIGNMENT,
                "assigned_nurse_id": None,
                "assigned_doctor_id": None,
                "assigned_bed_id": None,
            }
        else:
            changes = {
                "status": PatientStatus.ADMITTED,
                "assigned_nurse_id": decision.recommended_nurse_id,
                "assigned_doctor_id": decision.recommended_doctor_id,
                "assigned_bed_id": decision.recommended_bed_id,
            }
        updated = Patient.objects.filter(id=patient_id).update(updated_at=timezone.now(), **changes)
        if not updated:
            raise RecordNotFound(f"patient {patient_id} not found")

    # -------------------------
    # Decisions
    # -------------------------
    @staticmethod
    def _to_decision(row) -> AssignmentDecision:
        return AssignmentDecision(
            id=row.id,
            patient_id=row.patient_id,
            sequence=row.sequence,
            profile_version=row.profile_version,
            recommended_nurse_id=row.recommended_nurse_id,
            recommended_doctor_id=row.recommended_doctor_id,
            recommended_bed_id=row.recommended_bed_id,
            reasoning=row.reasoning,
            notice=row.notice,
            source=row.source,
            status=row.status,
            supersedes_id=row.supersedes_id,
            created_at=row.created_at,
            committed_at=row.committed_at,
        )

    def save_decision(self, decision: AssignmentDecision) -> AssignmentDecision:
        from cf_core.assignments.models import AssignmentDecision as DecisionRow

        DecisionRow.objects.update_or_create(
            id=decision.id,
            defaults={
                "patient_id": decision.patient_id,
                "sequence": decision.sequence,
                "profile_version": decision.profile_version,
                "recommended_nurse_id": decision.recommended_nurse_id,
                "recommended_doctor_id": decision.recommended_doctor_id,
                "recommended_bed_id": decision.recommended_bed_id,
                "reasoning": decision.reasoning,
                "notice": decision.notice,
                "source": decision.source,
                "status": decision.status,
                "supersedes_id": decision.supersedes_id,
                "created_at": decision.created_at,
                "committed_at": decision.committed_at,
            },
        )
        return decision

    def get_decision(self, decision_id: UUID, *, for_update: bool = False) -> Optional[AssignmentDecision]:
        from cf_core.assignments.models import AssignmentDecision as DecisionRow

        qs = DecisionRow.objects.filter(id=decision_id)
        if for_update:
            qs = qs.select_for_update()
        row = qs.first()
        return None if row is None else self._to_decision(row)

    def list_decisions(self, patient_id: UUID) -> list[AssignmentDecision]:
        from cf_core.assignments.models import AssignmentDecision as DecisionRow

        qs = DecisionRow.objects.filter(patient_id=patient_id).order_by("sequence", "created_at")
        return [self._to_decision(row) for row in qs]

    def get_active_decision(self, patient_id: UUID) -> Optional[AssignmentDecision]:
        from cf_core.assignments.models import AssignmentDecision as DecisionRow, DecisionStatus

        row = DecisionRow.objects.filter(patient_id=patient_id, status=DecisionStatus.COMMITTED).first()
        return None if row is None else self._to_decision(row)

    def next_sequence(self, patient_id: UUID) -> int:
        from cf_core.assignments.models import AssignmentDecision as DecisionRow

        # concurrent submissions serialize on the counter
        self.lock_patient(patient_id)
        current = DecisionRow.objects.filter(patient_id=patient_id).aggregate(m=Max("sequence"))["m"]
        return (current or 0) + 1

    # -------------------------
    # Audit
    # -------------------------
    def append_audit_entry(self, entry: AuditEntry) -> AuditEntry:
        from cf_core.audit.models import AuditEvent

        AuditEvent.objects.create(
            id=entry.id,
            event_code=entry.event_code,
            entity_type=entry.entity_type,
            entity_id=entry.entity_id,
            patient_id=entry.patient_id,
            occurred_at=entry.occurred_at,
            metadata=entry.metadata,
        )
        return entry

    def list_audit_entries(self, *, patient_id=None, entity_id=None) -> list[AuditEntry]:
        from cf_core.audit.selectors import list_audit_events

        return [
            AuditEntry(
                id=ev.id,
                event_code=ev.event_code,
                entity_type=ev.entity_type,
                entity_id=ev.entity_id,
                patient_id=ev.patient_id,
                occurred_at=ev.occurred_at,
                metadata=ev.metadata,
            )
            for ev in list_audit_events(patient_id=patient_id, entity_id=entity_id)
        ]


# ---------------------------------------------------------------------------
# In-memory store (mock mode)
# ---------------------------------------------------------------------------

class InMemoryRecordStore(RecordStore):
    """
    Mock-mode store. Every public method runs under one re-entrant lock;
    atomic() keeps the lock for the whole block and restores the previous
    state if the block raises.
    """

    mode = DATA_MODE_MEMORY

    def __init__(self):
        self._lock = threading.RLock()
        self._resources: dict[str, dict[str, ResourceRef]] = {kind: {} for kind in KINDS}
        self._patients: dict[UUID, PatientRecord] = {}
        self._profiles: dict[UUID, list[PatientProfile]] = {}
        self._decisions: dict[UUID, AssignmentDecision] = {}
        self._audit: list[AuditEntry] = []

    def _capture(self):
        return (
            {kind: dict(items) for kind, items in self._resources.items()},
            dict(self._patients),
            {pid: list(versions) for pid, versions in self._profiles.items()},
            dict(self._decisions),
            list(self._audit),
        )

    def _restore(self, state) -> None:
        self._resources, self._patients, self._profiles, self._decisions, self._audit = state

    @contextmanager
    def atomic(self) -> Iterator[None]:
        with self._lock:
            state = self._capture()
            try:
                yield
            except BaseException:
                self._restore(state)
                raise

    def _bucket(self, kind: str) -> dict[str, ResourceRef]:
        try:
            return self._resources[kind]
        except KeyError:
            raise ValueError(f"Unknown resource kind: {kind!r}")

    # -------------------------
    # Resources
    # -------------------------
    def list_resources(self, kind: str, *, for_update: bool = False) -> list[ResourceRef]:
        with self._lock:
            bucket = self._bucket(kind)
            return [bucket[rid] for rid in sorted(bucket)]

    def get_by_id(self, kind: str, resource_id: str, *, for_update: bool = False) -> Optional[ResourceRef]:
        with self._lock:
            return self._bucket(kind).get(resource_id)

    def update_availability(self, kind, resource_id, status, assignment_id):
        check_availability_change(kind, status, assignment_id)
        with self._lock:
            bucket = self._bucket(kind)
            current = bucket.get(resource_id)
            if current is None:
                raise RecordNotFound(f"{kind} {resource_id} not found")
            updated = ResourceRef(
                kind=current.kind,
                id=current.id,
                availability=status,
                name=current.name,
                specialization=current.specialization,
                current_assignment_id=assignment_id,
                floor=current.floor,
            )
            bucket[resource_id] = updated
            return updated

    def upsert_resource(self, ref: ResourceRef) -> ResourceRef:
        check_availability_change(ref.kind, ref.availability, ref.current_assignment_id)
        with self._lock:
            self._bucket(ref.kind)[ref.id] = ref
            return ref

    def clear_resources(self) -> None:
        with self._lock:
            self._resources = {kind: {} for kind in KINDS}

    # -------------------------
    # Patients
    # -------------------------
    def create_patient(self, profile: PatientProfile) -> PatientRecord:
        with self._lock:
            record = PatientRecord(id=uuid.uuid4(), profile=profile, profile_version=1, created_at=timezone.now())
            self._patients[record.id] = record
            self._profiles[record.id] = [profile]
            return record

    def add_profile_version(self, patient_id: UUID, profile: PatientProfile) -> PatientRecord:
        with self._lock:
            current = self._patients.get(patient_id)
            if current is None:
                raise RecordNotFound(f"patient {patient_id} not found")
            self._profiles[patient_id].append(profile)
            record = PatientRecord(
                id=current.id,
                profile=profile,
                profile_version=len(self._profiles[patient_id]),
                status=current.status,
                assigned_nurse_id=current.assigned_nurse_id,
                assigned_doctor_id=current.assigned_doctor_id,
                assigned_bed_id=current.assigned_bed_id,
                created_at=current.created_at,
            )
            self._patients[patient_id] = record
            return record

    def get_patient(self, patient_id: UUID) -> Optional[PatientRecord]:
        with self._lock:
            return self._patients.get(patient_id)

    def lock_patient(self, patient_id: UUID) -> bool:
        # atomic() already holds the store-wide lock
        with self._lock:
            return patient_id in self._patients

    def link_patient_assignment(self, patient_id, decision, *, discharged=False) -> None:
        from cf_core.patients.models import PatientStatus

        with self._lock:
            current = self._patients.get(patient_id)
            if current is None:
                raise RecordNotFound(f"patient {patient_id} not found")
            if decision is not None:
                status = PatientStatus.ADMITTED.value
            elif discharged:
                status = PatientStatus.DISCHARGED.value
            else:
                status = PatientStatus.PENDING_ASSIGNMENT.value
            self._patients[patient_id] = PatientRecord(
                id=current.id,
                profile=current.profile,
                profile_version=current.profile_version,
                status=status,
                assigned_nurse_id=None if decision is None else decision.recommended_nurse_id,
                assigned_doctor_id=None if decision is None else decision.recommended_doctor_id,
                assigned_bed_id=None if decision is None else decision.recommended_bed_id,
                created_at=current.created_at,
            )

    # -------------------------
    # Decisions
    # -------------------------
    def save_decision(self, decision: AssignmentDecision) -> AssignmentDecision:
        with self._lock:
            if decision.patient_id not in self._patients:
                raise RecordNotFound(f"patient {decision.patient_id} not found")
            if decision.is_committed:
                active = self.get_active_decision(decision.patient_id)
                if active is not None and active.id != decision.id:
                    # same guarantee as the partial unique index in db mode
                    raise ValueError(f"patient {decision.patient_id} already has a committed decision")
            self._decisions[decision.id] = decision
            return decision

    def get_decision(self, decision_id: UUID, *, for_update: bool = False) -> Optional[AssignmentDecision]:
        with self._lock:
            return self._decisions.get(decision_id)

    def list_decisions(self, patient_id: UUID) -> list[AssignmentDecision]:
        with self._lock:
            found = [d for d in self._decisions.values() if d.patient_id == patient_id]
            return sorted(found, key=lambda d: (d.sequence, d.created_at))

    def get_active_decision(self, patient_id: UUID) -> Optional[AssignmentDecision]:
        with self._lock:
            for decision in self._decisions.values():
                if decision.patient_id == patient_id and decision.is_committed:
                    return decision
            return None

    def next_sequence(self, patient_id: UUID) -> int:
        with self._lock:
            return max((d.sequence for d in self.list_decisions(patient_id)), default=0) + 1

    # -------------------------
    # Audit
    # -------------------------
    def append_audit_entry(self, entry: AuditEntry) -> AuditEntry:
        with self._lock:
            self._audit.append(entry)
            return entry

    def list_audit_entries(self, *, patient_id=None, entity_id=None) -> list[AuditEntry]:
        with self._lock:
            found = [
                e
                for e in self._audit
                if (patient_id is None or e.patient_id == patient_id)
                and (entity_id is None or e.entity_id == entity_id)
            ]
            return list(reversed(found))


# ---------------------------------------------------------------------------
# Mode switch
# ---------------------------------------------------------------------------

_MEMORY_STORE: Optional[InMemoryRecordStore] = None
_MEMORY_LOCK = threading.Lock()


def get_record_store(mode: Optional[str] = None) -> RecordStore:
    """
    Returns the store for CAREFLOW_DATA_MODE ("db" or "memory").
    Memory mode shares one store per process so every request sees the same data.
    """
    global _MEMORY_STORE

    mode = (mode or getattr(settings, "CAREFLOW_DATA_MODE", DATA_MODE_DB) or DATA_MODE_DB).lower()

    if mode == DATA_MODE_DB:
        return DatabaseRecordStore()

    if mode == DATA_MODE_MEMORY:
        with _MEMORY_LOCK:
            if _MEMORY_STORE is None:
                logger.info("Record store: in-memory mock data (CAREFLOW_DATA_MODE=memory)")
                _MEMORY_STORE = InMemoryRecordStore()
            return _MEMORY_STORE

    raise ImproperlyConfigured(f"CAREFLOW_DATA_MODE must be 'db' or 'memory', got {mode!r}")


def reset_memory_store() -> None:
    global _MEMORY_STORE
    with _MEMORY_LOCK:
        _MEMORY_STORE = None
