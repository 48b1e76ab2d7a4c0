"""
Student Query Filter

Turns FilterCriteria into a single SQL predicate. The paginated listing and
every export build their WHERE clause here, so both always select the same
students; exports differ only in having no LIMIT/OFFSET.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import Date, bindparam, text
from sqlalchemy.sql.elements import TextClause

from placement_portal.core.exceptions import ValidationError
from placement_portal.db.postgres import get_db_session
from placement_portal.schemas.schemas import (
    DOCUMENT_FLAG_FIELDS, DocumentFlag, FilterCriteria, StudentStatusFilter
)
from placement_portal.utils.pagination import get_page_window, total_pages

logger = logging.getLogger(__name__)

# Inactive accounts are never listed or exported
STUDENT_FROM = """
    FROM students s
    JOIN users u ON s.user_id = u.user_id
    JOIN colleges c ON s.college_id = c.college_id
    JOIN regions r ON s.region_id = r.region_id
    WHERE u.is_active = TRUE
"""

LIST_COLUMNS = """
    SELECT s.student_id, s.prn, s.student_name, s.email, s.mobile_number, s.date_of_birth,
           s.gender, s.branch, s.district, s.college_id, c.college_name, s.region_id,
           r.region_name, s.programme_cgpa, s.backlog_count, s.registration_status,
           s.is_blacklisted, s.created_at
"""

LIST_ORDER = " ORDER BY s.created_at DESC, s.student_id DESC"
EXPORT_ORDER = " ORDER BY c.college_name, s.college_id, s.branch, s.prn"

LIKE_ESCAPE = "!"


@dataclass
class StudentFilter:
    """AND-ed SQL fragments plus their bind parameters."""
    sql: str = ""
    params: Dict[str, Any] = field(default_factory=dict)
    expanding: List[str] = field(default_factory=list)
    dates: List[str] = field(default_factory=list)

    def add(self, clause: str, **params) -> None:
        self.sql += f" AND {clause}"
        self.params.update(params)

    def statement(self, sql: str) -> TextClause:
        """Wrap SQL containing this filter in text() with typed binds."""
        binds = [bindparam(name, expanding=True) for name in self.expanding]
        binds += [bindparam(name, type_=Date) for name in self.dates]
        clause = text(sql)
        return clause.bindparams(*binds) if binds else clause


@dataclass
class StudentPage:
    rows: List[dict]
    total: int
    total_pages: int


@dataclass
class ExportRows:
    rows: List[dict]
    total: int


def parse_filter_criteria(data: Mapping[str, Any]) -> FilterCriteria:
    """Build FilterCriteria from raw request values, raising ValidationError on bad input."""
    try:
        return FilterCriteria.model_validate(dict(data))
    except PydanticValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'filters'}: {err['msg']}" for err in e.errors()
        )
        raise ValidationError(f"Invalid filters - {problems}") from e


def _escape_like(value: str) -> str:
    for ch in (LIKE_ESCAPE, "%", "_"):
        value = value.replace(ch, LIKE_ESCAPE + ch)
    return value


def build_student_filter(
    criteria: FilterCriteria,
    today: Optional[date] = None,
    college_scope: Optional[int] = None,
) -> StudentFilter:
    """
    Build the student predicate for the given criteria.

    Every criterion is optional and applied independently; absent ones add
    nothing. college_scope restricts results to one college (placement
    officers). today is injectable so the dob_to default is deterministic.
    """
    flt = StudentFilter()

    if college_scope is not None:
        flt.add("s.college_id = :scope_college_id", scope_college_id=college_scope)

    # Blacklisted is its own bucket; the other statuses exclude it
    if criteria.status == StudentStatusFilter.blacklisted:
        flt.add("s.is_blacklisted = TRUE")
    elif criteria.status is not None and criteria.status != StudentStatusFilter.all:
        flt.add("s.registration_status = :status AND s.is_blacklisted = FALSE",
                status=criteria.status.value)

    if criteria.search:
        pattern = f"%{_escape_like(criteria.search.lower())}%"
        flt.add(
            "(LOWER(s.prn) LIKE :search ESCAPE '!'"
            " OR LOWER(s.student_name) LIKE :search ESCAPE '!'"
            " OR LOWER(s.email) LIKE :search ESCAPE '!')",
            search=pattern,
        )

    if criteria.cgpa_min is not None:
        flt.add("s.programme_cgpa >= :cgpa_min", cgpa_min=criteria.cgpa_min)
    if criteria.cgpa_max is not None:
        flt.add("s.programme_cgpa <= :cgpa_max", cgpa_max=criteria.cgpa_max)

    # "At most N" backlogs
    if criteria.backlog_count is not None:
        flt.add("s.backlog_count <= :backlog_count", backlog_count=criteria.backlog_count)

    if criteria.branch:
        flt.add("s.branch = :branch", branch=criteria.branch)
    if criteria.branches:
        flt.add("s.branch IN :branches", branches=list(criteria.branches))
        flt.expanding.append("branches")

    if criteria.dob_from is not None:
        dob_to = criteria.dob_to or today or date.today()
        flt.add("s.date_of_birth >= :dob_from AND s.date_of_birth <= :dob_to",
                dob_from=criteria.dob_from, dob_to=dob_to)
        flt.dates += ["dob_from", "dob_to"]
    elif criteria.dob_to is not None:
        flt.add("s.date_of_birth <= :dob_to", dob_to=criteria.dob_to)
        flt.dates.append("dob_to")

    for column in ("height", "weight"):
        low, high = getattr(criteria, f"{column}_min"), getattr(criteria, f"{column}_max")
        if low is not None:
            flt.add(f"s.{column} >= :{column}_min", **{f"{column}_min": low})
        if high is not None:
            flt.add(f"s.{column} <= :{column}_max", **{f"{column}_max": high})

    # "no" also matches students who never filled the flag in
    for flag in DOCUMENT_FLAG_FIELDS:
        value = getattr(criteria, flag)
        if value == DocumentFlag.yes:
            flt.add(f"s.{flag} = TRUE")
        elif value == DocumentFlag.no:
            flt.add(f"COALESCE(s.{flag}, FALSE) = FALSE")

    if criteria.districts:
        flt.add("s.district IN :districts", districts=list(criteria.districts))
        flt.expanding.append("districts")

    if criteria.college_id is not None:
        flt.add("s.college_id = :college_id", college_id=criteria.college_id)
    if criteria.region_id is not None:
        flt.add("s.region_id = :region_id", region_id=criteria.region_id)

    return flt


def list_students(
    criteria: FilterCriteria,
    page: int = 1,
    limit: int = 100,
    college_scope: Optional[int] = None,
    today: Optional[date] = None,
) -> StudentPage:
    """Paginated, newest-first student listing with the total match count."""
    limit, offset = get_page_window(page, limit)
    flt = build_student_filter(criteria, today=today, college_scope=college_scope)

    with get_db_session() as db:
        total = db.execute(
            flt.statement("SELECT COUNT(*)" + STUDENT_FROM + flt.sql), flt.params
        ).scalar() or 0
        result = db.execute(
            flt.statement(LIST_COLUMNS + STUDENT_FROM + flt.sql + LIST_ORDER
                          + " LIMIT :limit OFFSET :offset"),
            {**flt.params, "limit": limit, "offset": offset},
        )
        rows = [dict(r) for r in result.mappings().all()]

    logger.debug(f"Student listing page {page}: {len(rows)} of {total} (filter:{flt.sql or ' none'})")
    return StudentPage(rows=rows, total=total, total_pages=total_pages(total, limit))


def fetch_export_rows(
    criteria: FilterCriteria,
    columns: List[str],
    cap: int,
    college_scope: Optional[int] = None,
    today: Optional[date] = None,
) -> ExportRows:
    """
    Same predicate as list_students, without pagination.

    At most cap rows are returned; total is the full match count so the
    caller can tell when the export was truncated.
    """
    flt = build_student_filter(criteria, today=today, college_scope=college_scope)
    select_sql = "SELECT " + ", ".join(columns)

    with get_db_session() as db:
        total = db.execute(
            flt.statement("SELECT COUNT(*)" + STUDENT_FROM + flt.sql), flt.params
        ).scalar() or 0
        result = db.execute(
            flt.statement(select_sql + STUDENT_FROM + flt.sql + EXPORT_ORDER + " LIMIT :cap"),
            {**flt.params, "cap": cap},
        )
        rows = [dict(r) for r in result.mappings().all()]

    return ExportRows(rows=rows, total=total)


def list_districts(college_scope: Optional[int] = None) -> List[str]:
    sql = "SELECT DISTINCT s.district" + STUDENT_FROM + " AND s.district IS NOT NULL"
    params = {}
    if college_scope is not None:
        sql += " AND s.college_id = :college_id"
        params["college_id"] = college_scope
    with get_db_session() as db:
        result = db.execute(text(sql + " ORDER BY s.district"), params)
        return [row[0] for row in result.fetchall()]


def list_branches(college_scope: Optional[int] = None) -> List[str]:
    sql = "SELECT DISTINCT s.branch" + STUDENT_FROM + " AND s.branch IS NOT NULL"
    params = {}
    if college_scope is not None:
        sql += " AND s.college_id = :college_id"
        params["college_id"] = college_scope
    with get_db_session() as db:
        result = db.execute(text(sql + " ORDER BY s.branch"), params)
        return [row[0] for row in result.fetchall()]


def student_status_counts(college_scope: Optional[int] = None) -> Dict[str, int]:
    """Dashboard counts; each bucket uses the same status predicate as the listing."""
    buckets = {
        "total_students": StudentStatusFilter.all,
        "pending": StudentStatusFilter.pending,
        "approved": StudentStatusFilter.approved,
        "rejected": StudentStatusFilter.rejected,
        "blacklisted": StudentStatusFilter.blacklisted,
    }
    counts = {}
    with get_db_session() as db:
        for name, status in buckets.items():
            flt = build_student_filter(FilterCriteria(status=status), college_scope=college_scope)
            counts[name] = db.execute(
                flt.statement("SELECT COUNT(*)" + STUDENT_FROM + flt.sql), flt.params
            ).scalar() or 0
    return counts
