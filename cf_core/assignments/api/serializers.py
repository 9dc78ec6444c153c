# cf_core/assignments/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from cf_core.patients.api.serializers import PatientProfileSerializer
from cf_core.resources.models import BedAvailability


class SubmitAssignmentSerializer(PatientProfileSerializer):
    """
    Profile fields plus an optional patient_id: present means re-submission
    (new profile version) for an existing patient.
    """
    patient_id = serializers.UUIDField(required=False, allow_null=True, default=None)


class ConfirmAssignmentSerializer(serializers.Serializer):
    nurse_id = serializers.CharField(max_length=64, required=False, allow_null=True)
    doctor_id = serializers.CharField(max_length=64, required=False, allow_null=True)
    bed_id = serializers.CharField(max_length=64, required=False, allow_null=True)
    retry_on_conflict = serializers.BooleanField(required=False, default=False)

    def overrides(self) -> dict:
        return {k: v for k, v in self.validated_data.items() if k != "retry_on_conflict"}


class AssignmentDecisionSerializer(serializers.Serializer):
    id = serializers.UUIDField(read_only=True)
    patient_id = serializers.UUIDField(read_only=True)
    sequence = serializers.IntegerField(read_only=True)
    profile_version = serializers.IntegerField(read_only=True)
    recommended_nurse_id = serializers.CharField(read_only=True, allow_null=True)
    recommended_doctor_id = serializers.CharField(read_only=True, allow_null=True)
    recommended_bed_id = serializers.CharField(read_only=True, allow_null=True)
    reasoning = serializers.CharField(read_only=True)
    notice = serializers.CharField(read_only=True)
    source = serializers.CharField(read_only=True)
    status = serializers.CharField(read_only=True)
    supersedes_id = serializers.UUIDField(read_only=True, allow_null=True)
    created_at = serializers.DateTimeField(read_only=True)
    committed_at = serializers.DateTimeField(read_only=True, allow_null=True)


class ReleaseAssignmentSerializer(serializers.Serializer):
    patient_id = serializers.UUIDField()
    bed_status = serializers.ChoiceField(
        choices=[BedAvailability.AVAILABLE.value, BedAvailability.CLEANING.value, BedAvailability.ICU.value],
        required=False,
        allow_null=True,
        default=None,
    )
