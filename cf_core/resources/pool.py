# cf_core/resources/pool.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from cf_core.resources.store import RecordStore
from cf_core.resources.types import BED, DOCTOR, KINDS, NURSE, ResourceRef


@dataclass(frozen=True)
class Snapshot:
    """
    Point-in-time view of the three resource collections, each in id order.
    Read-only: nothing downstream mutates a snapshot.
    """
    nurses: tuple[ResourceRef, ...] = ()
    doctors: tuple[ResourceRef, ...] = ()
    beds: tuple[ResourceRef, ...] = ()

    def of_kind(self, kind: str) -> tuple[ResourceRef, ...]:
        if kind == NURSE:
            return self.nurses
        if kind == DOCTOR:
            return self.doctors
        if kind == BED:
            return self.beds
        raise ValueError(f"Unknown resource kind: {kind!r}")

    def available(self, kind: str) -> tuple[ResourceRef, ...]:
        return tuple(r for r in self.of_kind(kind) if r.is_available)

    def find(self, kind: str, resource_id: Optional[str]) -> Optional[ResourceRef]:
        if resource_id is None:
            return None
        for ref in self.of_kind(kind):
            if ref.id == resource_id:
                return ref
        return None

    def to_payload(self) -> dict:
        """Recommender request fields; only available resources are offered."""
        return {
            "availableNurses": [r.to_payload() for r in self.available(NURSE)],
            "availableDoctors": [r.to_payload() for r in self.available(DOCTOR)],
            "availableBeds": [r.to_payload() for r in self.available(BED)],
        }


class ResourcePoolProvider:
    def __init__(self, store: RecordStore):
        self.store = store

    def snapshot(self) -> Snapshot:
        # same lock boundary (and lock order) as the commit service
        with self.store.atomic():
            collections = {kind: tuple(self.store.list_resources(kind, for_update=True)) for kind in KINDS}
        return Snapshot(
            nurses=collections[NURSE],
            doctors=collections[DOCTOR],
            beds=collections[BED],
        )
