# cf_core/assignments/recommender.py
from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from dataclasses import dataclass
from typing import Any, Iterable, Optional, Union
from uuid import UUID

import requests
from django.conf import settings

from cf_core.assignments.exceptions import RecommenderMalformed, RecommenderUnavailable
from cf_core.assignments.models import DecisionSource
from cf_core.assignments.types import SLOT_FIELDS, SLOTS, AssignmentDecision
from cf_core.patients.types import PatientProfile
from cf_core.resources.pool import Snapshot
from cf_core.resources.types import BED, ResourceRef

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 25.0
FALLBACK_REASONING = "Assigned using fallback logic based on availability and specialization matching"

# how often a blocked call checks the caller's cancel event
_CANCEL_POLL_SECONDS = 0.1


# ---------------------------------------------------------------------------
# Tagged result
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class RecommendationOk:
    decision: AssignmentDecision


@dataclass(frozen=True)
class RecommendationUnavailable:
    reason: str


@dataclass(frozen=True)
class RecommendationMalformed:
    reason: str


RecommendationResult = Union[RecommendationOk, RecommendationUnavailable, RecommendationMalformed]


# ---------------------------------------------------------------------------
# Fallback heuristic
# ---------------------------------------------------------------------------

def select_candidate(
    candidates: Iterable[ResourceRef],
    *,
    kind: str,
    required_specialty: str = "",
) -> tuple[Optional[ResourceRef], bool]:
    """
    First candidate (in the given order) whose specialization contains
    required_specialty, case-insensitive; else the first candidate.
    Callers pass only usable resources of one kind; ids are unique per kind
    only, so nurse "1" and bed "1" never compete.

    Returns (candidate or None, matched_by_specialty). Beds ignore specialty.
    """
    available = list(candidates)
    if not available:
        return None, False

    needle = (required_specialty or "").strip().lower()
    if kind != BED and needle:
        for ref in available:
            if needle in (ref.specialization or "").lower():
                return ref, True

    return available[0], False


def fallback_decision(profile: PatientProfile, pool: Snapshot, *, patient_id: UUID) -> AssignmentDecision:
    chosen: dict[str, Optional[str]] = {}
    for kind in SLOTS:
        ref, _ = select_candidate(
            pool.available(kind),
            kind=kind,
            required_specialty=profile.required_specialty,
        )
        chosen[SLOT_FIELDS[kind]] = ref.id if ref else None

    return AssignmentDecision(
        patient_id=patient_id,
        reasoning=FALLBACK_REASONING,
        source=DecisionSource.FALLBACK_HEURISTIC.value,
        **chosen,
    )


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------

def _parse_slot_id(body: dict, key: str) -> Optional[str]:
    if key not in body:
        raise RecommenderMalformed(f"response is missing '{key}'")
    value = body[key]
    if value is None:
        return None
    # agents sometimes send numeric ids; bool is an int subclass and never an id
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, str):
        value = value.strip()
        return value or None
    raise RecommenderMalformed(f"'{key}' must be a string or null, got {type(value).__name__}")


def parse_recommendation(payload: Any, *, patient_id: UUID) -> AssignmentDecision:
    """
    Validates a recommender response body. Unwraps the {"ok": ..., "data": ...}
    envelope some agent deployments use.
    """
    body = payload
    if isinstance(body, dict) and "ok" in body:
        if not body.get("ok"):
            error = body.get("error")
            message = error.get("message") if isinstance(error, dict) else error
            raise RecommenderUnavailable(f"recommender reported failure: {message or 'unknown error'}")
        body = body.get("data")

    if not isinstance(body, dict):
        raise RecommenderMalformed("response body is not a JSON object")

    slots = {field: _parse_slot_id(body, field) for field in SLOT_FIELDS.values()}

    reasoning = body.get("reasoning")
    if reasoning is None:
        reasoning = ""
    if not isinstance(reasoning, str):
        raise RecommenderMalformed("'reasoning' must be a string")

    return AssignmentDecision(
        patient_id=patient_id,
        reasoning=reasoning.strip(),
        source=DecisionSource.EXTERNAL_AI.value,
        **slots,
    )


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class RecommendationClient:
    """
    HTTP client for the external assignment recommender.

    fetch() raises RecommenderUnavailable / RecommenderMalformed.
    recommend() never raises for recommender problems; it returns a tagged result.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        api_token: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ):
        self.endpoint = (endpoint or "").strip()
        self.timeout_seconds = float(timeout_seconds)
        self.api_token = api_token or None
        self.session = session or requests.Session()

    @classmethod
    def from_settings(cls, session: Optional[requests.Session] = None) -> "RecommendationClient":
        conf = getattr(settings, "CAREFLOW_RECOMMENDER", {}) or {}
        return cls(
            conf.get("ENDPOINT") or "",
            timeout_seconds=conf.get("TIMEOUT_SECONDS") or DEFAULT_TIMEOUT_SECONDS,
            api_token=conf.get("API_TOKEN"),
            session=session,
        )

    @property
    def is_configured(self) -> bool:
        # placeholder URLs from .env templates count as not configured
        return bool(self.endpoint) and "your-" not in self.endpoint

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        return headers

    def _post(self, payload: dict, timeout: float) -> requests.Response:
        return self.session.post(self.endpoint, json=payload, headers=self._headers(), timeout=timeout)

    def _post_cancellable(self, payload: dict, timeout: float, cancel_event: threading.Event) -> requests.Response:
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="recommender")
        try:
            future = executor.submit(self._post, payload, timeout)
            while True:
                try:
                    return future.result(timeout=_CANCEL_POLL_SECONDS)
                except FuturesTimeout:
                    if cancel_event.is_set():
                        future.cancel()
                        raise RecommenderUnavailable("request cancelled by caller")
        finally:
            # the worker finishes on its own once the HTTP timeout elapses
            executor.shutdown(wait=False)

    def _budget(self, deadline: Optional[float]) -> float:
        if deadline is None:
            return self.timeout_seconds
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise RecommenderUnavailable("deadline passed before the recommender was called")
        return min(self.timeout_seconds, remaining)

    def fetch(
        self,
        profile: PatientProfile,
        pool: Snapshot,
        *,
        patient_id: UUID,
        cancel_event: Optional[threading.Event] = None,
        deadline: Optional[float] = None,
    ) -> AssignmentDecision:
        """
        deadline is a time.monotonic() value; the HTTP timeout is clipped to it.
        """
        if not self.is_configured:
            raise RecommenderUnavailable("recommender endpoint is not configured")
        if cancel_event is not None and cancel_event.is_set():
            raise RecommenderUnavailable("request cancelled by caller")

        timeout = self._budget(deadline)
        payload = {"patient": profile.to_payload(), **pool.to_payload()}

        try:
            if cancel_event is None:
                response = self._post(payload, timeout)
            else:
                response = self._post_cancellable(payload, timeout, cancel_event)
        except requests.exceptions.Timeout:
            raise RecommenderUnavailable(f"recommender timed out after {timeout:.1f}s")
        except requests.exceptions.ConnectionError as e:
            raise RecommenderUnavailable(f"connection error: {e}")
        except requests.exceptions.RequestException as e:
            raise RecommenderUnavailable(f"request failed: {e}")

        if response.status_code >= 400:
            raise RecommenderUnavailable(f"recommender returned HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError:
            raise RecommenderMalformed("response is not valid JSON")

        return parse_recommendation(body, patient_id=patient_id)

    def recommend(
        self,
        profile: PatientProfile,
        pool: Snapshot,
        *,
        patient_id: UUID,
        cancel_event: Optional[threading.Event] = None,
        deadline: Optional[float] = None,
    ) -> RecommendationResult:
        try:
            decision = self.fetch(
                profile,
                pool,
                patient_id=patient_id,
                cancel_event=cancel_event,
                deadline=deadline,
            )
        except RecommenderUnavailable as e:
            logger.warning("Recommender unavailable for patient %s: %s", patient_id, e.reason)
            return RecommendationUnavailable(reason=e.reason)
        except RecommenderMalformed as e:
            logger.warning("Recommender returned a malformed response for patient %s: %s", patient_id, e.reason)
            return RecommendationMalformed(reason=e.reason)

        logger.info("Recommender answered for patient %s", patient_id)
        return RecommendationOk(decision=decision)
