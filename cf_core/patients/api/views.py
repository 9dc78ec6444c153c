# cf_core/patients/api/views.py
from __future__ import annotations

from uuid import UUID

from rest_framework import status, viewsets
from rest_framework.exceptions import NotFound, ValidationError as DRFValidationError
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from cf_core.patients.api.serializers import PatientRecordSerializer


class PatientViewSet(viewsets.ViewSet):
    """
    Patient record with its current profile version and assigned resources.
    """
    permission_classes = [IsAuthenticated]
    serializer_class = PatientRecordSerializer

    def retrieve(self, request, pk=None):
        try:
            patient_id = UUID(str(pk))
        except ValueError:
            raise DRFValidationError({"detail": "Invalid patient id (UUID expected)."})

        record = request.record_store.get_patient(patient_id)
        if record is None:
            raise NotFound("Patient not found.")
        return Response(PatientRecordSerializer(record).data, status=status.HTTP_200_OK)
