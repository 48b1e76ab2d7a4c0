"""Pagination helpers shared by the paginated listings."""
from math import ceil
from typing import Tuple

from placement_portal.core.exceptions import ValidationError


def get_page_window(page: int, limit: int) -> Tuple[int, int]:
    """
    Validate 1-based pagination and return (limit, offset).

    page must be >= 1 and limit > 0.
    """
    if page is None or page < 1:
        raise ValidationError("page must be 1 or greater")
    if limit is None or limit <= 0:
        raise ValidationError("limit must be greater than 0")
    return limit, (page - 1) * limit


def total_pages(total: int, limit: int) -> int:
    return ceil(total / limit) if total > 0 else 0
