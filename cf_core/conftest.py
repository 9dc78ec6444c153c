# cf_core/conftest.py
from unittest.mock import MagicMock

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from cf_core.assignments.recommender import RecommendationClient
from cf_core.tests.helpers import add_resources, fake_response
from cf_core.patients.types import PatientProfile
from cf_core.resources.store import DatabaseRecordStore, InMemoryRecordStore, reset_memory_store
from cf_core.resources.types import BED, DOCTOR, NURSE

RECOMMENDER_URL = "http://recommender.test/assign"


@pytest.fixture
def user(db):
    User = get_user_model()
    return User.objects.create_user(username="charge-nurse", password="testpass", is_active=True)


@pytest.fixture
def api_client(user):
    c = APIClient()
    c.force_authenticate(user=user)
    return c


@pytest.fixture(params=["db", "memory"])
def store(request, db):
    """Runs the test once against each record store."""
    if request.param == "memory":
        return InMemoryRecordStore()
    return DatabaseRecordStore()


@pytest.fixture
def memory_mode(settings):
    settings.CAREFLOW_DATA_MODE = "memory"
    reset_memory_store()
    yield
    reset_memory_store()


@pytest.fixture
def small_pool(store):
    """
    Nurses N001 (ICU), N002 (Cardiology); doctors D001 (Cardiology), D002 (ICU);
    beds B001, B002 (general).
    """
    add_resources(store, NURSE, ("N001", "ICU"), ("N002", "Cardiology"))
    add_resources(store, DOCTOR, ("D001", "Cardiology"), ("D002", "ICU"))
    add_resources(store, BED, ("B001", "general"), ("B002", "general"))
    return store


@pytest.fixture
def make_profile():
    def _make(**overrides):
        data = {
            "name": "Jane Doe",
            "condition": "Chest pain",
            "severity": "medium",
            "age": 54,
            "gender": "female",
            "required_specialty": "Cardiology",
            "allergies": ("penicillin",),
        }
        data.update(overrides)
        return PatientProfile(**data)

    return _make


@pytest.fixture
def recommender():
    """
    Client factory with a mocked requests session:
        client = recommender(body={...}) / recommender(status_code=503) / recommender(exc=Timeout())
    """
    def _make(body=None, *, status_code=200, json_error=False, exc=None, token=None):
        session = MagicMock()
        if exc is not None:
            session.post.side_effect = exc
        else:
            session.post.return_value = fake_response(status_code, body, json_error)
        return RecommendationClient(RECOMMENDER_URL, timeout_seconds=5, api_token=token, session=session)

    return _make


@pytest.fixture
def offline_recommender():
    return RecommendationClient("", session=MagicMock())
