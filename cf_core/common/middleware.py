from __future__ import annotations

from django.conf import settings
from django.utils.deprecation import MiddlewareMixin

from cf_core.common.api.exceptions import ensure_request_id


class RecordStoreMiddleware(MiddlewareMixin):
    """
    Application boundary for the data mode switch.

    Attaches to every request:
      - request.request_id   (echoed back as X-Request-Id)
      - request.record_store (database or in-memory store, per CAREFLOW_DATA_MODE)

    Views never pick a store themselves; they use request.record_store so the
    whole request runs against one backend.
    """

    def process_request(self, request):
        from cf_core.resources.store import get_record_store

        ensure_request_id(request)
        request.record_store = get_record_store()
        return None

    def process_response(self, request, response):
        rid = getattr(request, "request_id", None)
        if rid:
            response["X-Request-Id"] = rid
        response["X-Data-Mode"] = getattr(settings, "CAREFLOW_DATA_MODE", "db")
        return response
