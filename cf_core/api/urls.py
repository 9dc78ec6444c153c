# cf_core/api/urls.py
from __future__ import annotations

from rest_framework.routers import DefaultRouter

from cf_core.assignments.api.views import AssignmentViewSet
from cf_core.audit.api.views import AuditEventViewSet
from cf_core.patients.api.views import PatientViewSet
from cf_core.resources.api.views import BedViewSet, DoctorViewSet, NurseViewSet

router = DefaultRouter()

router.register(r"assignments", AssignmentViewSet, basename="assignments")
router.register(r"patients", PatientViewSet, basename="patients")
router.register(r"resources/nurses", NurseViewSet, basename="nurses")
router.register(r"resources/doctors", DoctorViewSet, basename="doctors")
router.register(r"resources/beds", BedViewSet, basename="beds")
router.register(r"audit/events", AuditEventViewSet, basename="audit-events")

urlpatterns = [
    *router.urls,
]
