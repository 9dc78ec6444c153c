# cf_core/resources/seeding.py
from __future__ import annotations

from cf_core.resources.models import BedAvailability, BedType, StaffAvailability
from cf_core.resources.store import RecordStore
from cf_core.resources.types import BED, DOCTOR, NURSE, ResourceRef

SPECIALIZATIONS = ("ICU", "Cardiology", "Emergency", "Pediatrics", "General Medicine")
DOCTOR_NAMES = ("Smith", "Johnson", "Williams", "Brown", "Jones")

BEDS_PER_FLOOR = 15


def build_seed(*, nurses: int = 20, doctors: int = 15, beds: int = 50) -> list[ResourceRef]:
    """
    Deterministic demo pool: ids N001/D001/B001..., every fourth staff member
    off shift, every tenth bed an ICU bed.
    """
    refs: list[ResourceRef] = []

    for i in range(nurses):
        refs.append(
            ResourceRef(
                kind=NURSE,
                id=f"N{i + 1:03d}",
                name=f"Nurse {chr(65 + i % 26)}{'' if i < 26 else i // 26}",
                specialization=SPECIALIZATIONS[i % len(SPECIALIZATIONS)],
                availability=StaffAvailability.UNAVAILABLE.value if i % 4 == 3 else StaffAvailability.AVAILABLE.value,
            )
        )

    for i in range(doctors):
        refs.append(
            ResourceRef(
                kind=DOCTOR,
                id=f"D{i + 1:03d}",
                name=f"Dr. {DOCTOR_NAMES[i % len(DOCTOR_NAMES)]}",
                specialization=SPECIALIZATIONS[i % len(SPECIALIZATIONS)],
                availability=StaffAvailability.UNAVAILABLE.value if i % 4 == 3 else StaffAvailability.AVAILABLE.value,
            )
        )

    for i in range(beds):
        refs.append(
            ResourceRef(
                kind=BED,
                id=f"B{i + 1:03d}",
                name=f"B{i + 1:03d}",
                floor=i // BEDS_PER_FLOOR + 1,
                specialization=BedType.ICU.value if i % 10 == 0 else BedType.GENERAL.value,
                availability=BedAvailability.AVAILABLE.value,
            )
        )

    return refs


def seed_pool(store: RecordStore, *, nurses: int = 20, doctors: int = 15, beds: int = 50, reset: bool = False) -> int:
    with store.atomic():
        if reset:
            store.clear_resources()
        refs = build_seed(nurses=nurses, doctors=doctors, beds=beds)
        for ref in refs:
            store.upsert_resource(ref)
    return len(refs)
