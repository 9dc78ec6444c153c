# cf_core/tests/helpers.py
from unittest.mock import MagicMock

from cf_core.resources.types import AVAILABLE, BED, ResourceRef


def add_resources(store, kind, *specs):
    """
    specs: (id, specialization[, availability]) tuples; beds use the bed type
    as specialization.
    """
    refs = []
    for spec in specs:
        rid, specialization, *rest = spec
        availability = rest[0] if rest else AVAILABLE
        refs.append(
            store.upsert_resource(
                ResourceRef(
                    kind=kind,
                    id=rid,
                    name=rid,
                    specialization=specialization,
                    availability=availability,
                    floor=1 if kind == BED else None,
                )
            )
        )
    return refs


def fake_response(status_code=200, body=None, json_error=False):
    resp = MagicMock()
    resp.status_code = status_code
    if json_error:
        resp.json.side_effect = ValueError("No JSON object could be decoded")
    else:
        resp.json.return_value = body
    return resp
