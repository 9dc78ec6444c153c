# cf_core/patients/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from cf_core.patients.models import Severity
from cf_core.patients.types import PatientProfile


class PatientProfileSerializer(serializers.Serializer):
    """
    Intake contract. Field-level typing here; business rules
    (validate_profile) run again in the service layer.
    """
    name = serializers.CharField(max_length=255)
    condition = serializers.CharField(max_length=255)
    severity = serializers.ChoiceField(choices=Severity.choices, default=Severity.MEDIUM.value)
    age = serializers.IntegerField(min_value=0, required=False, allow_null=True, default=None)
    gender = serializers.CharField(max_length=32, required=False, allow_blank=True, default="")
    required_specialty = serializers.CharField(max_length=128, required=False, allow_blank=True, default="")
    allergies = serializers.ListField(
        child=serializers.CharField(max_length=128),
        required=False,
        default=list,
    )
    notes = serializers.CharField(required=False, allow_blank=True, default="")

    def to_profile(self) -> PatientProfile:
        data = dict(self.validated_data)
        data.pop("patient_id", None)
        data["allergies"] = tuple(data.get("allergies") or ())
        return PatientProfile(**data)


class PatientRecordSerializer(serializers.Serializer):
    id = serializers.UUIDField(read_only=True)
    status = serializers.CharField(read_only=True)
    profile_version = serializers.IntegerField(read_only=True)
    profile = PatientProfileSerializer(read_only=True)
    assigned_nurse_id = serializers.CharField(read_only=True, allow_null=True)
    assigned_doctor_id = serializers.CharField(read_only=True, allow_null=True)
    assigned_bed_id = serializers.CharField(read_only=True, allow_null=True)
    created_at = serializers.DateTimeField(read_only=True, allow_null=True)
