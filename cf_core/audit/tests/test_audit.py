# cf_core/audit/tests/test_audit.py
import uuid

import pytest
from django.core.exceptions import ValidationError

from cf_core.assignments.services import confirm_assignment, submit_patient_for_assignment
from cf_core.assignments.types import AssignmentDecision
from cf_core.audit.models import AuditEvent
from cf_core.audit.services import DECISION_ENTITY, AuditService
from cf_core.resources.store import DatabaseRecordStore

pytestmark = pytest.mark.django_db


def test_audit_events_are_immutable():
    store = DatabaseRecordStore()
    AuditService(store).log(
        event_code="patient.created",
        entity_type="Patient",
        entity_id=uuid.uuid4(),
        patient_id=None,
        metadata={"k": "v"},
    )
    event = AuditEvent.objects.get()

    event.event_code = "tampered"
    with pytest.raises(ValidationError):
        event.save()
    with pytest.raises(ValidationError):
        event.delete()


def test_record_keeps_raw_and_final_slots(store):
    patient_id = uuid.uuid4()
    raw = AssignmentDecision(
        patient_id=patient_id,
        recommended_nurse_id="N009",
        recommended_doctor_id="D001",
        recommended_bed_id=None,
        reasoning="Agent pick",
        source="external_ai",
    )
    final = AssignmentDecision(
        id=raw.id,
        patient_id=patient_id,
        sequence=1,
        recommended_nurse_id="N001",
        recommended_doctor_id="D001",
        recommended_bed_id="B001",
        reasoning="Agent pick\nRecommended nurse N009 was not found in the current resource pool; substituted N001 by availability.",
        source="external_ai",
    )

    AuditService(store).record(final, raw)

    [entry] = store.list_audit_entries(entity_id=final.id)
    assert entry.event_code == "assignment.proposed"
    assert entry.entity_type == DECISION_ENTITY
    assert entry.patient_id == patient_id
    assert entry.metadata["raw_slots"] == {"nurse": "N009", "doctor": "D001", "bed": None}
    assert entry.metadata["final_slots"] == {"nurse": "N001", "doctor": "D001", "bed": "B001"}
    assert entry.metadata["substituted_slots"] == ["nurse", "bed"]
    assert entry.metadata["reasoning"] == final.reasoning
    assert entry.metadata["source"] == "external_ai"


def test_record_without_raw(store):
    decision = AssignmentDecision(patient_id=uuid.uuid4(), reasoning="r", status="superseded")

    AuditService(store).record(decision, extra={"superseded_by": "x"})

    [entry] = store.list_audit_entries(entity_id=decision.id)
    assert entry.event_code == "assignment.superseded"
    assert entry.metadata["raw_slots"] is None
    assert entry.metadata["substituted_slots"] == []
    assert entry.metadata["superseded_by"] == "x"


def test_full_flow_leaves_a_reasoning_trail(small_pool, make_profile, offline_recommender):
    proposal = submit_patient_for_assignment(make_profile(), store=small_pool, client=offline_recommender)
    committed = confirm_assignment(proposal.id, store=small_pool)

    codes = [e.event_code for e in small_pool.list_audit_entries(patient_id=committed.patient_id)]

    assert codes == ["assignment.committed", "assignment.proposed", "patient.created"]


def test_audit_events_endpoint(api_client, make_profile, offline_recommender):
    store = DatabaseRecordStore()
    proposal = submit_patient_for_assignment(make_profile(), store=store, client=offline_recommender)
    submit_patient_for_assignment(make_profile(name="Other"), store=store, client=offline_recommender)

    r = api_client.get("/api/v1/audit/events/", {"patient_id": str(proposal.patient_id)})

    assert r.status_code == 200
    assert [e["event_code"] for e in r.data] == ["assignment.proposed", "patient.created"]
    assert r.data[0]["entity_id"] == str(proposal.id)
    assert r.data[0]["metadata"]["notice"] == proposal.notice
    assert "timestamp" in r.data[0]

    by_entity = api_client.get("/api/v1/audit/events/", {"entity_id": str(proposal.id)})
    assert [e["event_code"] for e in by_entity.data] == ["assignment.proposed"]

    limited = api_client.get("/api/v1/audit/events/", {"limit": "1"})
    assert len(limited.data) == 1


def test_audit_events_rejects_bad_uuid(api_client):
    r = api_client.get("/api/v1/audit/events/", {"patient_id": "nope"})

    assert r.status_code == 400
    assert "patient_id" in r.data["detail"]
