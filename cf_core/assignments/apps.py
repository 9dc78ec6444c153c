# cf_core/assignments/apps.py
import logging

from django.apps import AppConfig
from django.conf import settings

logger = logging.getLogger(__name__)


class AssignmentsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "cf_core.assignments"

    def ready(self):
        endpoint = (getattr(settings, "CAREFLOW_RECOMMENDER", {}) or {}).get("ENDPOINT")
        if not endpoint:
            logger.warning("CAREFLOW_RECOMMENDER_URL is not set; assignments will use the fallback heuristic")
