# cf_core/audit/api/serializers.py
from rest_framework import serializers


class AuditEventSerializer(serializers.Serializer):
    id = serializers.UUIDField(read_only=True)
    event_code = serializers.CharField(read_only=True)
    entity_type = serializers.CharField(read_only=True)
    entity_id = serializers.UUIDField(read_only=True)
    patient_id = serializers.UUIDField(read_only=True, allow_null=True)

    # API field name "timestamp", mapped to occurred_at
    timestamp = serializers.DateTimeField(source="occurred_at", read_only=True)
    metadata = serializers.JSONField(read_only=True)
