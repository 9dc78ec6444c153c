# cf_core/resources/api/serializers.py
from __future__ import annotations

from rest_framework import serializers


class StaffSerializer(serializers.Serializer):
    id = serializers.CharField(read_only=True)
    name = serializers.CharField(read_only=True)
    specialization = serializers.CharField(read_only=True)
    availability = serializers.CharField(read_only=True)
    current_assignment_id = serializers.UUIDField(read_only=True, allow_null=True)


class BedSerializer(serializers.Serializer):
    id = serializers.CharField(read_only=True)
    bed_number = serializers.CharField(source="name", read_only=True)
    floor = serializers.IntegerField(read_only=True, allow_null=True)
    bed_type = serializers.CharField(source="specialization", read_only=True)
    availability = serializers.CharField(read_only=True)
    current_assignment_id = serializers.UUIDField(read_only=True, allow_null=True)


class AvailabilityChangeSerializer(serializers.Serializer):
    availability = serializers.CharField(max_length=16)
