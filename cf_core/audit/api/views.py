# cf_core/audit/api/views.py
from __future__ import annotations

from uuid import UUID

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from cf_core.audit.api.serializers import AuditEventSerializer


class AuditEventViewSet(viewsets.ViewSet):
    """
    Assignment reasoning trail, newest first.
    """
    permission_classes = [IsAuthenticated]
    serializer_class = AuditEventSerializer

    @extend_schema(
        tags=["Audit"],
        responses={200: AuditEventSerializer(many=True)},
        parameters=[
            OpenApiParameter(
                name="patient_id",
                type=OpenApiTypes.UUID,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Filter by patient UUID.",
            ),
            OpenApiParameter(
                name="entity_id",
                type=OpenApiTypes.UUID,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Filter by entity UUID (e.g. an assignment decision).",
            ),
            OpenApiParameter(
                name="limit",
                type=OpenApiTypes.INT,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Max records to return (default 200, max 500).",
            ),
        ],
    )
    def list(self, request):
        filters = {}
        for name in ("patient_id", "entity_id"):
            raw = request.query_params.get(name) or None
            if raw:
                try:
                    filters[name] = UUID(str(raw))
                except ValueError:
                    return Response({"detail": f"Invalid {name} (UUID expected)"}, status=status.HTTP_400_BAD_REQUEST)

        entries = request.record_store.list_audit_entries(**filters)

        # keep it safe: timeline endpoints can get huge
        limit = request.query_params.get("limit")
        try:
            limit_n = int(limit) if limit else 200
        except ValueError:
            limit_n = 200
        limit_n = max(1, min(limit_n, 500))

        return Response(AuditEventSerializer(entries[:limit_n], many=True).data, status=status.HTTP_200_OK)
