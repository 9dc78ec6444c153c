# cf_core/patients/services.py
from __future__ import annotations

from uuid import UUID

from cf_core.audit.services import PATIENT_ENTITY, AuditService
from cf_core.patients.types import PatientProfile, PatientRecord, validate_profile


class PatientService:
    """
    Intake writes. Profiles are versioned: a re-submission adds version N+1
    and leaves earlier versions untouched.
    """

    def __init__(self, store):
        self.store = store
        self.audit = AuditService(store)

    def register(self, profile: PatientProfile) -> PatientRecord:
        validate_profile(profile)

        with self.store.atomic():
            record = self.store.create_patient(profile)
            self.audit.log(
                event_code="patient.created",
                entity_type=PATIENT_ENTITY,
                entity_id=record.id,
                patient_id=record.id,
                metadata={
                    "profile_version": record.profile_version,
                    "severity": profile.severity,
                    "required_specialty": profile.required_specialty,
                },
            )
        return record

    def add_profile_version(self, *, patient_id: UUID, profile: PatientProfile) -> PatientRecord:
        """Raises RecordNotFound for an unknown patient."""
        validate_profile(profile)

        with self.store.atomic():
            record = self.store.add_profile_version(patient_id, profile)
            self.audit.log(
                event_code="patient.profile_versioned",
                entity_type=PATIENT_ENTITY,
                entity_id=record.id,
                patient_id=record.id,
                metadata={
                    "profile_version": record.profile_version,
                    "severity": profile.severity,
                    "required_specialty": profile.required_specialty,
                },
            )
        return record
