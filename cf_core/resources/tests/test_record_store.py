# cf_core/resources/tests/test_record_store.py
import uuid

import pytest
from django.core.exceptions import ImproperlyConfigured

from cf_core.assignments.types import AssignmentDecision
from cf_core.audit.types import AuditEntry
from cf_core.tests.helpers import add_resources
from cf_core.resources.store import (
    DatabaseRecordStore,
    InMemoryRecordStore,
    RecordNotFound,
    get_record_store,
)
from cf_core.resources.types import BED, DOCTOR, NURSE

pytestmark = pytest.mark.django_db


def test_resources_are_listed_in_id_order(store):
    add_resources(store, NURSE, ("N003", "ICU"), ("N001", "General"), ("N002", "ICU", "unavailable"))

    assert [r.id for r in store.list_resources(NURSE)] == ["N001", "N002", "N003"]
    assert [r.id for r in store.list_available(NURSE)] == ["N001", "N003"]


def test_unknown_id_returns_none(store):
    assert store.get_by_id(BED, "B404") is None
    assert store.get_patient(uuid.uuid4()) is None
    assert store.get_decision(uuid.uuid4()) is None


def test_unknown_kind_is_rejected(store):
    with pytest.raises(ValueError):
        store.list_resources("porter")


def test_update_availability_keeps_back_reference_consistent(store):
    add_resources(store, DOCTOR, ("D001", "Cardiology"))
    assignment_id = uuid.uuid4()

    ref = store.update_availability(DOCTOR, "D001", "busy", assignment_id)
    assert ref.availability == "busy"
    assert ref.current_assignment_id == assignment_id

    with pytest.raises(ValueError):
        store.update_availability(DOCTOR, "D001", "busy", None)
    with pytest.raises(ValueError):
        store.update_availability(DOCTOR, "D001", "available", assignment_id)
    with pytest.raises(ValueError):
        store.update_availability(DOCTOR, "D001", "occupied", assignment_id)

    ref = store.update_availability(DOCTOR, "D001", "available", None)
    assert ref.current_assignment_id is None


def test_update_availability_of_missing_resource(store):
    with pytest.raises(RecordNotFound):
        store.update_availability(BED, "B404", "cleaning", None)


def test_atomic_block_is_all_or_nothing(store):
    add_resources(store, BED, ("B001", "general"), ("B002", "general"))

    with pytest.raises(RuntimeError):
        with store.atomic():
            store.update_availability(BED, "B001", "cleaning", None)
            raise RuntimeError("boom")

    assert store.get_by_id(BED, "B001").is_available


def test_patient_profiles_are_versioned(store, make_profile):
    record = store.create_patient(make_profile(condition="Fever"))
    assert record.profile_version == 1
    assert record.status == "pending_assignment"

    updated = store.add_profile_version(record.id, make_profile(condition="Sepsis", severity="critical"))

    assert updated.id == record.id
    assert updated.profile_version == 2
    assert store.get_patient(record.id).profile.condition == "Sepsis"
    assert store.get_patient(record.id).profile.allergies == ("penicillin",)

    with pytest.raises(RecordNotFound):
        store.add_profile_version(uuid.uuid4(), make_profile())


def test_decisions_are_listed_by_sequence(store, make_profile):
    patient = store.create_patient(make_profile())
    with store.atomic():
        first = store.save_decision(
            AssignmentDecision(patient_id=patient.id, reasoning="a", sequence=store.next_sequence(patient.id))
        )
    with store.atomic():
        second = store.save_decision(
            AssignmentDecision(patient_id=patient.id, reasoning="b", sequence=store.next_sequence(patient.id))
        )

    assert (first.sequence, second.sequence) == (1, 2)
    assert [d.id for d in store.list_decisions(patient.id)] == [first.id, second.id]
    assert store.get_decision(second.id).reasoning == "b"
    assert store.get_active_decision(patient.id) is None


def test_audit_entries_are_filtered_and_newest_first(store):
    patient_id = uuid.uuid4()
    entity_id = uuid.uuid4()
    store.append_audit_entry(AuditEntry("assignment.proposed", "AssignmentDecision", entity_id, patient_id, {}))
    store.append_audit_entry(AuditEntry("assignment.committed", "AssignmentDecision", entity_id, patient_id, {}))
    store.append_audit_entry(AuditEntry("patient.created", "Patient", uuid.uuid4(), uuid.uuid4(), {}))

    assert [e.event_code for e in store.list_audit_entries(patient_id=patient_id)] == [
        "assignment.committed",
        "assignment.proposed",
    ]
    assert len(store.list_audit_entries(entity_id=entity_id)) == 2
    assert len(store.list_audit_entries()) == 3


def test_clear_resources(store):
    add_resources(store, NURSE, ("N001", "ICU"))
    add_resources(store, BED, ("B001", "general"))

    store.clear_resources()

    assert store.list_resources(NURSE) == []
    assert store.list_resources(BED) == []


def test_mode_switch(settings, memory_mode):
    assert isinstance(get_record_store(), InMemoryRecordStore)
    assert get_record_store() is get_record_store()

    assert isinstance(get_record_store("db"), DatabaseRecordStore)

    with pytest.raises(ImproperlyConfigured):
        get_record_store("redis")


def test_lock_patient_reports_unknown_patients(store, make_profile):
    record = store.create_patient(make_profile())

    with store.atomic():
        assert store.lock_patient(record.id) is True
        assert store.lock_patient(uuid.uuid4()) is False


def test_unlinking_a_patient_on_discharge(store, make_profile):
    record = store.create_patient(make_profile())
    decision = AssignmentDecision(patient_id=record.id, recommended_bed_id="B001", reasoning="r", sequence=1)
    store.link_patient_assignment(record.id, decision)
    assert store.get_patient(record.id).status == "admitted"

    store.link_patient_assignment(record.id, None, discharged=True)

    unlinked = store.get_patient(record.id)
    assert unlinked.status == "discharged"
    assert unlinked.assigned_bed_id is None
