# cf_core/resources/api/views.py
from __future__ import annotations

from django.core.exceptions import ValidationError as DjangoValidationError
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound, ValidationError as DRFValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from cf_core.assignments import services
from cf_core.assignments.exceptions import ResourceConflict, ResourceNotFound
from cf_core.common.api.exceptions import ResourceConflictError, validation_payload
from cf_core.common.api.pagination import paginate
from cf_core.resources.api.serializers import AvailabilityChangeSerializer, BedSerializer, StaffSerializer
from cf_core.resources.types import BED, DOCTOR, NURSE, VALID_STATUSES


class ResourceViewSet(viewsets.ViewSet):
    """
    Pool listings. Availability changes only through the assignment engine:
    commits and discharges, or the manual `availability` action for
    resources no assignment holds.
    """
    permission_classes = [IsAuthenticated]
    kind: str = ""
    serializer_class = StaffSerializer

    @extend_schema(
        tags=["Resources"],
        parameters=[
            OpenApiParameter(
                name="availability",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Filter by availability (e.g. available, busy, occupied).",
            ),
        ],
    )
    def list(self, request):
        availability = (request.query_params.get("availability") or "").strip().lower()
        if availability and availability not in VALID_STATUSES[self.kind]:
            raise DRFValidationError(
                {"availability": f"Must be one of {sorted(VALID_STATUSES[self.kind])}."}
            )

        refs = request.record_store.list_resources(self.kind)
        if availability:
            refs = [r for r in refs if r.availability == availability]
        return paginate(request, refs, self.serializer_class)

    @extend_schema(tags=["Resources"])
    def retrieve(self, request, pk=None):
        ref = request.record_store.get_by_id(self.kind, str(pk))
        if ref is None:
            raise NotFound(f"{self.kind.title()} not found.")
        return Response(self.serializer_class(ref).data, status=status.HTTP_200_OK)

    @extend_schema(tags=["Resources"], request=AvailabilityChangeSerializer)
    @action(detail=True, methods=["post"], url_path="availability")
    def availability(self, request, pk=None):
        ser = AvailabilityChangeSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        try:
            ref = services.set_resource_availability(
                self.kind,
                str(pk),
                ser.validated_data["availability"],
                store=request.record_store,
            )
        except ResourceNotFound:
            raise NotFound(f"{self.kind.title()} not found.")
        except ResourceConflict as e:
            raise ResourceConflictError(detail={"detail": str(e), "slots": e.slots})
        except DjangoValidationError as e:
            raise DRFValidationError(validation_payload(e))

        return Response(self.serializer_class(ref).data, status=status.HTTP_200_OK)


class NurseViewSet(ResourceViewSet):
    kind = NURSE


class DoctorViewSet(ResourceViewSet):
    kind = DOCTOR


class BedViewSet(ResourceViewSet):
    kind = BED
    serializer_class = BedSerializer
