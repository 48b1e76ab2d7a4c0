"""
Helpers shared by the placement officer and super admin routers.

Both roles list and export students through the same filter; officers are
additionally scoped to their own college.
"""

from typing import List, Optional

from fastapi import Request
from fastapi.responses import Response

from placement_portal.core.config import get_settings
from placement_portal.schemas.schemas import FilterCriteria, StudentListResponse, StudentSummary
from placement_portal.services.export_service import DEFAULT_EXPORT_FIELDS, ExportResult
from placement_portal.services.student_filter import list_students, parse_filter_criteria

LIST_FILTERS = ("districts", "branches")


async def get_filter_criteria(request: Request) -> FilterCriteria:
    """
    FastAPI dependency - FilterCriteria from the query string.

    districts / branches may be repeated or comma separated.
    """
    data = {}
    for name in FilterCriteria.model_fields:
        values = request.query_params.getlist(name)
        if values:
            data[name] = values if name in LIST_FILTERS else values[-1]
    return parse_filter_criteria(data)


async def get_export_fields(request: Request) -> Optional[List[str]]:
    """
    FastAPI dependency - requested export fields.

    A missing fields parameter means the default columns; a present but
    empty one is passed through so the export rejects it.
    """
    if "fields" not in request.query_params:
        return list(DEFAULT_EXPORT_FIELDS)
    fields = []
    for value in request.query_params.getlist("fields"):
        fields.extend(part.strip() for part in value.split(",") if part.strip())
    return fields


def student_list_response(criteria: FilterCriteria, page: int, limit: Optional[int],
                          college_scope: Optional[int] = None) -> StudentListResponse:
    limit = get_settings().default_page_limit if limit is None else limit
    result = list_students(criteria, page, limit, college_scope=college_scope)
    return StudentListResponse(
        data=[StudentSummary(**row) for row in result.rows],
        total=result.total,
        page=page,
        limit=limit,
        total_pages=result.total_pages,
        count=len(result.rows),
    )


def export_file_response(result: ExportResult) -> Response:
    return Response(content=result.content, media_type=result.media_type, headers=result.headers)


def export_details(criteria: FilterCriteria, fields: List[str], result: ExportResult) -> dict:
    """Activity log details for an export."""
    return {
        "filters": criteria.model_dump(exclude_none=True, mode="json"),
        "fields": fields,
        "format": result.filename.rsplit(".", 1)[-1],
        "exported": result.exported_count,
        "total": result.total_matches,
        "truncated": result.truncated,
    }
