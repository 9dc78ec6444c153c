# cf_core/common/api/pagination.py
from __future__ import annotations

from typing import Sequence

from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class PoolPagination(PageNumberPagination):
    """
    Page size fits a ward's bed list on one page; the seeded pool has 50 beds.
    """
    page_size = 50
    page_size_query_param = "page_size"
    max_page_size = 200


def paginate(request, items: Sequence, serializer_class) -> Response:
    """
    Paged listing with the { count, next, previous, results } contract.

    The record store returns plain lists in both data modes, so this never
    sees a queryset.
    """
    paginator = PoolPagination()
    page = paginator.paginate_queryset(list(items), request)
    return paginator.get_paginated_response(serializer_class(page, many=True).data)
