"""
Job Request Service

Placement officers request jobs for their students; super admins approve
(creating the job) or reject them. A request aimed only at the officer's
own college is approved immediately.

Jobs carry a target audience: every student, chosen regions, or chosen
colleges. Students only see active jobs aimed at them, and may apply to
those they are eligible for.
"""

import logging
from datetime import date, datetime
from typing import Dict, List, Optional

from sqlalchemy import Date, bindparam, text

from placement_portal.core.exceptions import NotFoundError, ValidationError
from placement_portal.db.postgres import get_db_session
from placement_portal.schemas.schemas import JobCreate, JobRequestCreate, TargetType
from placement_portal.services.activity_service import ActionType, log_activity

logger = logging.getLogger(__name__)

JOB_FIELDS = (
    "company_name", "job_title", "job_description", "location", "salary_package",
    "application_deadline", "min_cgpa", "max_backlogs", "target_type",
)


def _as_date(value) -> Optional[date]:
    # SQLite hands dates back as ISO strings
    if value is None or isinstance(value, date):
        return value.date() if isinstance(value, datetime) else value
    return date.fromisoformat(str(value)[:10])


def _job_values(data) -> dict:
    values = {name: getattr(data, name) for name in JOB_FIELDS}
    values["target_type"] = TargetType(values["target_type"]).value
    return values


def _check_targets(db, data) -> None:
    """Unknown region / college ids are rejected."""
    checks = (
        (TargetType.region, data.target_region_ids, "regions", "region_id"),
        (TargetType.college, data.target_college_ids, "colleges", "college_id"),
    )
    for target_type, ids, table, column in checks:
        if data.target_type != target_type:
            continue
        found = db.execute(
            text(f"SELECT {column} FROM {table} WHERE {column} IN :ids").bindparams(
                bindparam("ids", expanding=True)),
            {"ids": list(ids)}
        ).scalars().all()
        missing = sorted(set(ids) - set(found))
        if missing:
            raise ValidationError(f"Unknown {table}: {', '.join(str(m) for m in missing)}")


def _insert_targets(db, table: str, owner_column: str, owner_id: int, target_type: str,
                    region_ids: List[int], college_ids: List[int]) -> None:
    if target_type == TargetType.region.value:
        for region_id in dict.fromkeys(region_ids):
            db.execute(text(f"INSERT INTO {table} ({owner_column}, region_id) VALUES (:owner, :rid)"),
                       {"owner": owner_id, "rid": region_id})
    elif target_type == TargetType.college.value:
        for college_id in dict.fromkeys(college_ids):
            db.execute(text(f"INSERT INTO {table} ({owner_column}, college_id) VALUES (:owner, :cid)"),
                       {"owner": owner_id, "cid": college_id})


def _insert_job(db, values: dict, region_ids: List[int], college_ids: List[int], created_by: int) -> int:
    job_id = db.execute(
        text("""
            INSERT INTO jobs (company_name, job_title, job_description, location, salary_package,
                application_deadline, min_cgpa, max_backlogs, target_type, is_active, created_by)
            VALUES (:company_name, :job_title, :job_description, :location, :salary_package,
                :application_deadline, :min_cgpa, :max_backlogs, :target_type, TRUE, :created_by)
            RETURNING job_id
        """).bindparams(bindparam("application_deadline", type_=Date)),
        {**values, "created_by": created_by}
    ).scalar()
    _insert_targets(db, "job_targets", "job_id", job_id, values["target_type"], region_ids, college_ids)
    return job_id


def _targets_by_owner(db, table: str, owner_column: str, owner_ids: List[int]) -> Dict[int, dict]:
    targets = {owner_id: {"target_region_ids": [], "target_college_ids": []} for owner_id in owner_ids}
    if not owner_ids:
        return targets
    rows = db.execute(
        text(f"SELECT {owner_column}, region_id, college_id FROM {table} WHERE {owner_column} IN :ids")
        .bindparams(bindparam("ids", expanding=True)),
        {"ids": owner_ids}
    ).fetchall()
    for owner_id, region_id, college_id in rows:
        if region_id is not None:
            targets[owner_id]["target_region_ids"].append(region_id)
        if college_id is not None:
            targets[owner_id]["target_college_ids"].append(college_id)
    return targets


# ============================================================
# JOB REQUESTS
# ============================================================

JOB_REQUEST_SELECT = """
    SELECT jr.request_id, jr.requested_by, jr.college_id, c.college_name, jr.company_name, jr.job_title,
           jr.job_description, jr.location, jr.salary_package, jr.application_deadline, jr.min_cgpa,
           jr.max_backlogs, jr.target_type, jr.status, jr.review_comment, jr.reviewed_date, jr.job_id,
           jr.created_at
    FROM job_requests jr
    JOIN colleges c ON jr.college_id = c.college_id
"""


def create_job_request(data: JobRequestCreate, actor: dict) -> dict:
    """
    Submit a job request for the officer's college.

    Requests targeting only the officer's own college are approved on the
    spot and the job is created.
    """
    values = _job_values(data)
    own_college_only = (
        data.target_type == TargetType.college
        and set(data.target_college_ids) == {actor["college_id"]}
    )

    with get_db_session() as db:
        _check_targets(db, data)
        request_id = db.execute(
            text("""
                INSERT INTO job_requests (requested_by, college_id, company_name, job_title, job_description,
                    location, salary_package, application_deadline, min_cgpa, max_backlogs, target_type, status)
                VALUES (:requested_by, :college_id, :company_name, :job_title, :job_description,
                    :location, :salary_package, :application_deadline, :min_cgpa, :max_backlogs,
                    :target_type, 'pending')
                RETURNING request_id
            """).bindparams(bindparam("application_deadline", type_=Date)),
            {**values, "requested_by": actor["user_id"], "college_id": actor["college_id"]}
        ).scalar()
        _insert_targets(db, "job_request_targets", "request_id", request_id, values["target_type"],
                        data.target_region_ids, data.target_college_ids)

        if own_college_only:
            job_id = _insert_job(db, values, [], data.target_college_ids, actor["user_id"])
            db.execute(
                text("""
                    UPDATE job_requests
                    SET status = 'approved', job_id = :job_id, reviewed_by = :uid,
                        review_comment = 'Auto-approved: own college only', reviewed_date = CURRENT_TIMESTAMP
                    WHERE request_id = :id
                """),
                {"id": request_id, "job_id": job_id, "uid": actor["user_id"]}
            )

    logger.info(f"Job request {request_id} created by user {actor['user_id']}"
                + (" (auto-approved)" if own_college_only else ""))
    log_activity(actor, ActionType.JOB_REQUEST_CREATE,
                 f"Requested job {data.job_title} at {data.company_name}", "job_request", request_id,
                 {"auto_approved": own_college_only})
    return get_job_request(request_id)


def get_job_request(request_id: int) -> dict:
    with get_db_session() as db:
        row = db.execute(text(JOB_REQUEST_SELECT + " WHERE jr.request_id = :id"),
                         {"id": request_id}).mappings().fetchone()
        if not row:
            raise NotFoundError(f"Job request {request_id} not found")
        targets = _targets_by_owner(db, "job_request_targets", "request_id", [request_id])
    return {**dict(row), **targets[request_id]}


def list_job_requests(status: Optional[str] = None, college_scope: Optional[int] = None) -> List[dict]:
    sql = JOB_REQUEST_SELECT + " WHERE 1 = 1"
    params = {}
    if status:
        sql += " AND jr.status = :status"
        params["status"] = status
    if college_scope is not None:
        sql += " AND jr.college_id = :college_id"
        params["college_id"] = college_scope
    sql += " ORDER BY jr.created_at DESC, jr.request_id DESC"

    with get_db_session() as db:
        rows = [dict(r) for r in db.execute(text(sql), params).mappings().all()]
        targets = _targets_by_owner(db, "job_request_targets", "request_id", [r["request_id"] for r in rows])
    return [{**row, **targets[row["request_id"]]} for row in rows]


def _load_pending_request(db, request_id: int) -> dict:
    row = db.execute(
        text(f"SELECT request_id, status, {', '.join(JOB_FIELDS)} FROM job_requests WHERE request_id = :id"),
        {"id": request_id}
    ).mappings().fetchone()
    if not row or row["status"] != "pending":
        raise NotFoundError("Job request not found or already reviewed")
    return dict(row)


def approve_job_request(request_id: int, actor: dict) -> dict:
    """Approve a pending request and create its job with the same audience."""
    with get_db_session() as db:
        request = _load_pending_request(db, request_id)
        targets = _targets_by_owner(db, "job_request_targets", "request_id", [request_id])[request_id]
        values = {name: request[name] for name in JOB_FIELDS}
        values["application_deadline"] = _as_date(values["application_deadline"])
        job_id = _insert_job(db, values, targets["target_region_ids"], targets["target_college_ids"],
                             actor["user_id"])
        db.execute(
            text("""
                UPDATE job_requests
                SET status = 'approved', job_id = :job_id, reviewed_by = :uid, reviewed_date = CURRENT_TIMESTAMP
                WHERE request_id = :id
            """),
            {"id": request_id, "job_id": job_id, "uid": actor["user_id"]}
        )

    logger.info(f"Job request {request_id} approved as job {job_id}")
    log_activity(actor, ActionType.JOB_REQUEST_APPROVE, f"Approved job request {request_id}",
                 "job_request", request_id, {"job_id": job_id})
    return get_job_request(request_id)


def reject_job_request(request_id: int, comment: Optional[str], actor: dict) -> dict:
    if comment is None or not comment.strip():
        raise ValidationError("Review comment is required when rejecting a job request")
    with get_db_session() as db:
        _load_pending_request(db, request_id)
        db.execute(
            text("""
                UPDATE job_requests
                SET status = 'rejected', review_comment = :comment, reviewed_by = :uid,
                    reviewed_date = CURRENT_TIMESTAMP
                WHERE request_id = :id
            """),
            {"id": request_id, "comment": comment.strip(), "uid": actor["user_id"]}
        )

    log_activity(actor, ActionType.JOB_REQUEST_REJECT, f"Rejected job request {request_id}",
                 "job_request", request_id, {"comment": comment.strip()})
    return get_job_request(request_id)


# ============================================================
# JOBS
# ============================================================

JOB_SELECT = """
    SELECT j.job_id, j.company_name, j.job_title, j.job_description, j.location, j.salary_package,
           j.application_deadline, j.min_cgpa, j.max_backlogs, j.target_type, j.is_active, j.created_at
    FROM jobs j
"""


def _with_targets(db, rows: List[dict]) -> List[dict]:
    targets = _targets_by_owner(db, "job_targets", "job_id", [r["job_id"] for r in rows])
    return [{**row, **targets[row["job_id"]]} for row in rows]


def create_job(data: JobCreate, actor: dict) -> dict:
    """Create a job directly (super admin)."""
    with get_db_session() as db:
        _check_targets(db, data)
        job_id = _insert_job(db, _job_values(data), data.target_region_ids, data.target_college_ids,
                             actor["user_id"])

    log_activity(actor, ActionType.JOB_CREATE, f"Created job {data.job_title} at {data.company_name}",
                 "job", job_id)
    return get_job(job_id)


def get_job(job_id: int) -> dict:
    with get_db_session() as db:
        row = db.execute(text(JOB_SELECT + " WHERE j.job_id = :id"), {"id": job_id}).mappings().fetchone()
        if not row:
            raise NotFoundError(f"Job {job_id} not found")
        return _with_targets(db, [dict(row)])[0]


def list_jobs(active_only: bool = False) -> List[dict]:
    sql = JOB_SELECT + (" WHERE j.is_active = TRUE" if active_only else "")
    with get_db_session() as db:
        rows = [dict(r) for r in db.execute(text(sql + " ORDER BY j.created_at DESC, j.job_id DESC")).mappings().all()]
        return _with_targets(db, rows)


def toggle_job(job_id: int, actor: dict) -> dict:
    with get_db_session() as db:
        result = db.execute(
            text("UPDATE jobs SET is_active = NOT is_active WHERE job_id = :id"), {"id": job_id}
        )
        if result.rowcount == 0:
            raise NotFoundError(f"Job {job_id} not found")

    job = get_job(job_id)
    log_activity(actor, ActionType.JOB_TOGGLE,
                 f"{'Activated' if job['is_active'] else 'Deactivated'} job {job_id}", "job", job_id)
    return job


def _ineligibility_reason(job: dict, student: dict, today: date) -> Optional[str]:
    if student["registration_status"] != "approved":
        return "Registration not approved"
    if student["is_blacklisted"]:
        return "Student is blacklisted"
    deadline = _as_date(job["application_deadline"])
    if deadline is not None and deadline < today:
        return "Application deadline has passed"
    if job["min_cgpa"] is not None and (student["programme_cgpa"] is None
                                        or student["programme_cgpa"] < job["min_cgpa"]):
        return f"Minimum CGPA {job['min_cgpa']} required"
    if job["max_backlogs"] is not None and (student["backlog_count"] or 0) > job["max_backlogs"]:
        return f"At most {job['max_backlogs']} backlogs allowed"
    return None


def jobs_for_student(student_id: int, today: Optional[date] = None) -> List[dict]:
    """Active jobs whose audience includes the student, each flagged with can_apply."""
    today = today or date.today()
    with get_db_session() as db:
        student = db.execute(
            text("""
                SELECT student_id, college_id, region_id, registration_status, is_blacklisted,
                       programme_cgpa, backlog_count
                FROM students WHERE student_id = :id
            """),
            {"id": student_id}
        ).mappings().fetchone()
        if not student:
            raise NotFoundError(f"Student {student_id} not found")

        rows = db.execute(
            text(JOB_SELECT + """
                WHERE j.is_active = TRUE AND (
                    j.target_type = 'all'
                    OR (j.target_type = 'region' AND EXISTS (
                        SELECT 1 FROM job_targets t WHERE t.job_id = j.job_id AND t.region_id = :region_id))
                    OR (j.target_type = 'college' AND EXISTS (
                        SELECT 1 FROM job_targets t WHERE t.job_id = j.job_id AND t.college_id = :college_id))
                )
                ORDER BY j.created_at DESC, j.job_id DESC
            """),
            {"region_id": student["region_id"], "college_id": student["college_id"]}
        ).mappings().all()
        jobs = _with_targets(db, [dict(r) for r in rows])

    for job in jobs:
        reason = _ineligibility_reason(job, student, today)
        job["can_apply"] = reason is None
        job["ineligibility_reason"] = reason
    return jobs


# ============================================================
# APPLICATIONS
# ============================================================

def apply_to_job(job_id: int, student: dict, today: Optional[date] = None) -> dict:
    """
    Apply the student to a job aimed at them.

    The student must be eligible (same checks as can_apply) and may apply
    to a job only once.
    """
    student_id = student["student_id"]
    job = next((j for j in jobs_for_student(student_id, today) if j["job_id"] == job_id), None)
    if job is None:
        raise NotFoundError(f"Job {job_id} not found")
    if job["ineligibility_reason"]:
        raise ValidationError(f"Cannot apply: {job['ineligibility_reason']}")

    with get_db_session() as db:
        existing = db.execute(
            text("SELECT application_id FROM job_applications WHERE job_id = :jid AND student_id = :sid"),
            {"jid": job_id, "sid": student_id}
        ).fetchone()
        if existing:
            raise ValidationError("You have already applied to this job")
        application_id = db.execute(
            text("""
                INSERT INTO job_applications (job_id, student_id, status)
                VALUES (:jid, :sid, 'applied')
                RETURNING application_id
            """),
            {"jid": job_id, "sid": student_id}
        ).scalar()

    logger.info(f"Student {student_id} applied to job {job_id}")
    log_activity(student, ActionType.APPLY_JOB, f"Applied to {job['job_title']} at {job['company_name']}",
                 "job_application", application_id, {"job_id": job_id})
    return {"application_id": application_id, "job_id": job_id, "status": "applied"}


def list_student_applications(student_id: int) -> List[dict]:
    with get_db_session() as db:
        result = db.execute(
            text("""
                SELECT a.application_id, a.job_id, j.company_name, j.job_title, j.location,
                       j.application_deadline, a.status, a.applied_at
                FROM job_applications a
                JOIN jobs j ON a.job_id = j.job_id
                WHERE a.student_id = :sid
                ORDER BY a.applied_at DESC, a.application_id DESC
            """),
            {"sid": student_id}
        )
        return [dict(r) for r in result.mappings().all()]


def list_job_applicants(job_id: int, college_scope: Optional[int] = None) -> List[dict]:
    """Applicants of a job; officers only see their own college's students."""
    get_job(job_id)

    sql = """
        SELECT a.application_id, s.student_id, s.prn, s.student_name, s.email, s.mobile_number, s.branch,
               c.college_name, s.programme_cgpa, s.backlog_count, a.status, a.applied_at
        FROM job_applications a
        JOIN students s ON a.student_id = s.student_id
        JOIN colleges c ON s.college_id = c.college_id
        WHERE a.job_id = :jid
    """
    params = {"jid": job_id}
    if college_scope is not None:
        sql += " AND s.college_id = :college_id"
        params["college_id"] = college_scope
    sql += " ORDER BY c.college_name, s.branch, s.prn"

    with get_db_session() as db:
        return [dict(r) for r in db.execute(text(sql), params).mappings().all()]
