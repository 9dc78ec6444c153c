# cf_core/assignments/api/views.py
from __future__ import annotations

from uuid import UUID

from django.core.exceptions import ValidationError as DjangoValidationError
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.exceptions import NotFound, ValidationError as DRFValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from cf_core.assignments import services
from cf_core.assignments.api.serializers import (
    AssignmentDecisionSerializer,
    ConfirmAssignmentSerializer,
    ReleaseAssignmentSerializer,
    SubmitAssignmentSerializer,
)
from cf_core.assignments.exceptions import (
    AssignmentCancelled,
    BedExhausted,
    DecisionNotFound,
    InvalidDecisionState,
    NoActiveAssignment,
    PatientNotFound,
    ResourceConflict,
    ResourceNotFound,
)
from cf_core.common.api.exceptions import (
    BedExhaustedError,
    CancelledError,
    ConflictError,
    ResourceConflictError,
    validation_payload,
)

PATIENT_ID_PARAM = OpenApiParameter(
    name="patient_id",
    type=OpenApiTypes.UUID,
    location=OpenApiParameter.QUERY,
    required=True,
    description="Patient UUID.",
)


def _uuid_or_400(raw, field: str) -> UUID:
    if not raw:
        raise DRFValidationError({field: "This query parameter is required."})
    try:
        return UUID(str(raw))
    except ValueError:
        raise DRFValidationError({field: "Invalid UUID."})


def _translate(exc: Exception):
    """
    Domain exception -> DRF exception rendered by the global handler.
    """
    if isinstance(exc, ResourceConflict):
        return ResourceConflictError(detail={"detail": str(exc), "slots": exc.slots})
    if isinstance(exc, BedExhausted):
        return BedExhaustedError(detail={"detail": exc.reason, "decision_id": str(exc.decision_id)})
    if isinstance(exc, AssignmentCancelled):
        return CancelledError(detail=str(exc))
    if isinstance(exc, InvalidDecisionState):
        return ConflictError(detail=str(exc))
    if isinstance(exc, (DecisionNotFound, PatientNotFound, NoActiveAssignment, ResourceNotFound)):
        return NotFound(str(exc))
    if isinstance(exc, DjangoValidationError):
        return DRFValidationError(validation_payload(exc))
    return exc


class AssignmentViewSet(viewsets.ViewSet):
    """
    Assignment engine endpoints: submit (propose), confirm (commit, with
    optional manual overrides), release (discharge), active decision and full
    history per patient.
    """
    permission_classes = [IsAuthenticated]
    serializer_class = AssignmentDecisionSerializer

    def retrieve(self, request, pk=None):
        decision = request.record_store.get_decision(_uuid_or_400(pk, "id"))
        if decision is None:
            raise NotFound("Assignment decision not found.")
        return Response(AssignmentDecisionSerializer(decision).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Assignments"],
        request=SubmitAssignmentSerializer,
        responses={201: AssignmentDecisionSerializer},
    )
    @action(detail=False, methods=["post"], url_path="submit")
    def submit(self, request):
        ser = SubmitAssignmentSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        try:
            decision = services.submit_patient_for_assignment(
                ser.to_profile(),
                patient_id=ser.validated_data.get("patient_id"),
                store=request.record_store,
            )
        except (DjangoValidationError, PatientNotFound) as e:
            raise _translate(e)

        return Response(AssignmentDecisionSerializer(decision).data, status=status.HTTP_201_CREATED)

    @extend_schema(
        tags=["Assignments"],
        request=ConfirmAssignmentSerializer,
        responses={200: AssignmentDecisionSerializer},
    )
    @action(detail=True, methods=["post"], url_path="confirm")
    def confirm(self, request, pk=None):
        decision_id = _uuid_or_400(pk, "id")

        ser = ConfirmAssignmentSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        try:
            decision = services.confirm_assignment(
                decision_id,
                ser.overrides() or None,
                retry_on_conflict=ser.validated_data["retry_on_conflict"],
                store=request.record_store,
            )
        except (
            ResourceConflict,
            BedExhausted,
            AssignmentCancelled,
            InvalidDecisionState,
            DecisionNotFound,
            PatientNotFound,
            DjangoValidationError,
        ) as e:
            raise _translate(e)

        return Response(AssignmentDecisionSerializer(decision).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Assignments"],
        request=ReleaseAssignmentSerializer,
        responses={200: AssignmentDecisionSerializer},
    )
    @action(detail=False, methods=["post"], url_path="release")
    def release(self, request):
        ser = ReleaseAssignmentSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        try:
            decision = services.release_assignment(
                ser.validated_data["patient_id"],
                bed_status=ser.validated_data["bed_status"],
                store=request.record_store,
            )
        except (NoActiveAssignment, PatientNotFound, DjangoValidationError) as e:
            raise _translate(e)

        return Response(AssignmentDecisionSerializer(decision).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Assignments"],
        parameters=[PATIENT_ID_PARAM],
        responses={200: AssignmentDecisionSerializer},
    )
    @action(detail=False, methods=["get"], url_path="active")
    def active(self, request):
        patient_id = _uuid_or_400(request.query_params.get("patient_id"), "patient_id")

        decision = services.get_active_assignment(patient_id, store=request.record_store)
        if decision is None:
            raise NotFound("No active assignment for this patient.")
        return Response(AssignmentDecisionSerializer(decision).data, status=status.HTTP_200_OK)

    @extend_schema(
        tags=["Assignments"],
        parameters=[PATIENT_ID_PARAM],
        responses={200: AssignmentDecisionSerializer(many=True)},
    )
    @action(detail=False, methods=["get"], url_path="history")
    def history(self, request):
        patient_id = _uuid_or_400(request.query_params.get("patient_id"), "patient_id")

        decisions = services.get_assignment_history(patient_id, store=request.record_store)
        return Response(AssignmentDecisionSerializer(decisions, many=True).data, status=status.HTTP_200_OK)
