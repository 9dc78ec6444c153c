# cf_core/assignments/tests/test_assignment_api.py
import uuid

import pytest

from cf_core.tests.helpers import add_resources
from cf_core.resources.store import DatabaseRecordStore, get_record_store
from cf_core.resources.types import BED, DOCTOR, NURSE

pytestmark = pytest.mark.django_db

SUBMIT_URL = "/api/v1/assignments/submit/"

PROFILE = {
    "name": "Sam Patel",
    "age": 67,
    "gender": "male",
    "condition": "Acute MI",
    "required_specialty": "Cardiology",
    "severity": "high",
    "allergies": ["aspirin"],
}


@pytest.fixture
def pool(db):
    store = DatabaseRecordStore()
    add_resources(store, NURSE, ("N001", "ICU"), ("N002", "Cardiology"))
    add_resources(store, DOCTOR, ("D001", "Cardiology"))
    add_resources(store, BED, ("B001", "general"), ("B002", "general"))
    return store


def test_submit_returns_proposal(api_client, pool):
    r = api_client.post(SUBMIT_URL, PROFILE, format="json")

    assert r.status_code == 201, r.data
    assert r.data["status"] == "proposed"
    assert r.data["source"] == "fallback_heuristic"
    assert r.data["notice"]
    assert r.data["recommended_nurse_id"] == "N002"
    assert r.data["recommended_doctor_id"] == "D001"
    assert r.data["recommended_bed_id"] == "B001"
    assert r["X-Data-Mode"] == "db"


def test_submit_validation_error_envelope(api_client, pool):
    r = api_client.post(SUBMIT_URL, {**PROFILE, "name": "", "severity": "urgent"}, format="json")

    assert r.status_code == 400
    body = r.json()
    assert body["error"]["code"] == "validation_error"
    assert "name" in body["error"]["details"]
    assert "severity" in body["error"]["details"]
    assert body["error"]["request_id"] == r["X-Request-Id"]


def test_submit_for_unknown_patient_is_404(api_client, pool):
    r = api_client.post(SUBMIT_URL, {**PROFILE, "patient_id": str(uuid.uuid4())}, format="json")

    assert r.status_code == 404
    assert r.json()["error"]["code"] == "not_found"


def test_confirm_active_and_history(api_client, pool):
    proposal = api_client.post(SUBMIT_URL, PROFILE, format="json").data
    patient_id = proposal["patient_id"]

    r = api_client.post(f"/api/v1/assignments/{proposal['id']}/confirm/", {}, format="json")
    assert r.status_code == 200, r.data
    assert r.data["status"] == "committed"

    active = api_client.get("/api/v1/assignments/active/", {"patient_id": patient_id})
    assert active.status_code == 200
    assert active.data["id"] == proposal["id"]

    override = api_client.post(
        f"/api/v1/assignments/{proposal['id']}/confirm/",
        {"bed_id": "B002"},
        format="json",
    )
    assert override.status_code == 200, override.data
    assert override.data["source"] == "manual_override"
    assert override.data["recommended_bed_id"] == "B002"

    history = api_client.get("/api/v1/assignments/history/", {"patient_id": patient_id})
    assert history.status_code == 200
    assert [d["status"] for d in history.data] == ["superseded", "committed"]

    detail = api_client.get(f"/api/v1/assignments/{proposal['id']}/")
    assert detail.status_code == 200
    assert detail.data["status"] == "superseded"


def test_active_without_commit_is_404(api_client, pool):
    proposal = api_client.post(SUBMIT_URL, PROFILE, format="json").data

    r = api_client.get("/api/v1/assignments/active/", {"patient_id": proposal["patient_id"]})

    assert r.status_code == 404


def test_active_requires_valid_patient_id(api_client, pool):
    assert api_client.get("/api/v1/assignments/active/").status_code == 400
    assert api_client.get("/api/v1/assignments/history/", {"patient_id": "nope"}).status_code == 400


def test_confirm_conflict_is_409(api_client, pool):
    a = api_client.post(SUBMIT_URL, {**PROFILE, "name": "A"}, format="json").data
    b = api_client.post(SUBMIT_URL, {**PROFILE, "name": "B"}, format="json").data
    api_client.post(f"/api/v1/assignments/{a['id']}/confirm/", {}, format="json")

    r = api_client.post(f"/api/v1/assignments/{b['id']}/confirm/", {}, format="json")

    assert r.status_code == 409
    body = r.json()
    assert body["error"]["code"] == "resource_conflict"
    assert body["error"]["details"]["slots"] == {"nurse": "N002", "doctor": "D001", "bed": "B001"}


def test_confirm_retry_on_conflict(api_client, pool):
    a = api_client.post(SUBMIT_URL, {**PROFILE, "name": "A"}, format="json").data
    b = api_client.post(SUBMIT_URL, {**PROFILE, "name": "B"}, format="json").data
    api_client.post(f"/api/v1/assignments/{a['id']}/confirm/", {}, format="json")

    r = api_client.post(f"/api/v1/assignments/{b['id']}/confirm/", {"retry_on_conflict": True}, format="json")

    assert r.status_code == 200, r.data
    assert r.data["recommended_nurse_id"] == "N001"
    assert r.data["recommended_doctor_id"] is None
    assert r.data["recommended_bed_id"] == "B002"


def test_confirm_rejected_decision_is_409_bed_exhausted(api_client, db):
    add_resources(DatabaseRecordStore(), NURSE, ("N001", "ICU"))
    proposal = api_client.post(SUBMIT_URL, {**PROFILE, "severity": "critical"}, format="json").data
    assert proposal["status"] == "rejected"

    r = api_client.post(f"/api/v1/assignments/{proposal['id']}/confirm/", {}, format="json")

    assert r.status_code == 409
    assert r.json()["error"]["code"] == "bed_exhausted"


def test_confirm_unknown_decision_is_404(api_client, pool):
    r = api_client.post(f"/api/v1/assignments/{uuid.uuid4()}/confirm/", {}, format="json")

    assert r.status_code == 404


def test_unauthenticated_requests_are_rejected(client, pool):
    r = client.post(SUBMIT_URL, PROFILE, content_type="application/json")

    assert r.status_code in (401, 403)


def test_memory_mode_serves_from_in_memory_store(api_client, memory_mode):
    store = get_record_store()
    add_resources(store, NURSE, ("N001", "ICU"))
    add_resources(store, BED, ("B001", "general"))

    r = api_client.post(SUBMIT_URL, PROFILE, format="json")
    assert r.status_code == 201, r.data
    assert r["X-Data-Mode"] == "memory"

    confirm = api_client.post(f"/api/v1/assignments/{r.data['id']}/confirm/", {}, format="json")
    assert confirm.status_code == 200, confirm.data
    assert store.get_by_id(BED, "B001").current_assignment_id == uuid.UUID(r.data["id"])
    assert DatabaseRecordStore().get_by_id(BED, "B001") is None


def test_blank_override_is_400(api_client, pool):
    proposal = api_client.post(SUBMIT_URL, PROFILE, format="json").data

    r = api_client.post(f"/api/v1/assignments/{proposal['id']}/confirm/", {"bed_id": ""}, format="json")

    assert r.status_code == 400
    assert "bed_id" in r.json()["error"]["details"]


def test_release_discharges_and_frees_resources(api_client, pool):
    proposal = api_client.post(SUBMIT_URL, PROFILE, format="json").data
    api_client.post(f"/api/v1/assignments/{proposal['id']}/confirm/", {}, format="json")

    r = api_client.post("/api/v1/assignments/release/", {"patient_id": proposal["patient_id"]}, format="json")

    assert r.status_code == 200, r.data
    assert r.data["status"] == "released"
    assert pool.get_by_id(BED, "B001").availability == "cleaning"
    assert pool.get_by_id(NURSE, "N002").is_available
    assert api_client.get(f"/api/v1/patients/{proposal['patient_id']}/").data["status"] == "discharged"

    again = api_client.post("/api/v1/assignments/release/", {"patient_id": proposal["patient_id"]}, format="json")
    assert again.status_code == 404


def test_release_rejects_engaged_bed_status(api_client, pool):
    r = api_client.post(
        "/api/v1/assignments/release/",
        {"patient_id": str(uuid.uuid4()), "bed_status": "occupied"},
        format="json",
    )

    assert r.status_code == 400
    assert "bed_status" in r.json()["error"]["details"]
