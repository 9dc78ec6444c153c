# cf_core/resources/tests/test_pool.py
import pytest
from django.core.management import call_command

from cf_core.tests.helpers import add_resources
from cf_core.resources.pool import ResourcePoolProvider
from cf_core.resources.seeding import build_seed
from cf_core.resources.store import get_record_store
from cf_core.resources.types import BED, DOCTOR, NURSE

pytestmark = pytest.mark.django_db


def test_snapshot_covers_all_three_collections(small_pool):
    snapshot = ResourcePoolProvider(small_pool).snapshot()

    assert [n.id for n in snapshot.nurses] == ["N001", "N002"]
    assert [d.id for d in snapshot.doctors] == ["D001", "D002"]
    assert [b.id for b in snapshot.beds] == ["B001", "B002"]
    assert snapshot.find(NURSE, "N002").specialization == "Cardiology"
    assert snapshot.find(BED, "B404") is None


def test_snapshot_is_a_value_not_a_view(small_pool):
    snapshot = ResourcePoolProvider(small_pool).snapshot()

    small_pool.update_availability(BED, "B001", "cleaning", None)

    assert snapshot.find(BED, "B001").is_available
    assert not ResourcePoolProvider(small_pool).snapshot().find(BED, "B001").is_available


def test_recommender_payload_only_offers_available_resources(store):
    add_resources(store, NURSE, ("N001", "ICU"), ("N002", "ICU", "unavailable"))
    add_resources(store, BED, ("B001", "icu", "cleaning"), ("B002", "general"))

    payload = ResourcePoolProvider(store).snapshot().to_payload()

    assert [n["id"] for n in payload["availableNurses"]] == ["N001"]
    assert payload["availableDoctors"] == []
    assert payload["availableBeds"] == [
        {"id": "B002", "name": "B002", "status": "available", "bed_number": "B002", "floor": 1, "type": "general"}
    ]


def test_build_seed_is_deterministic():
    refs = build_seed(nurses=4, doctors=2, beds=11)

    assert refs == build_seed(nurses=4, doctors=2, beds=11)
    nurses = [r for r in refs if r.kind == NURSE]
    assert [n.id for n in nurses] == ["N001", "N002", "N003", "N004"]
    assert nurses[3].availability == "unavailable"
    beds = [r for r in refs if r.kind == BED]
    assert [b.specialization for b in beds].count("icu") == 2


def test_seed_resources_command(settings):
    settings.CAREFLOW_DATA_MODE = "db"

    call_command("seed_resources", nurses=3, doctors=2, beds=5)
    call_command("seed_resources", nurses=2, doctors=1, beds=1, reset=True)

    store = get_record_store()
    assert len(store.list_resources(NURSE)) == 2
    assert len(store.list_resources(DOCTOR)) == 1
    assert [b.id for b in store.list_resources(BED)] == ["B001"]
