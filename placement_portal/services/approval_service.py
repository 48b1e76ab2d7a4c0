"""
Student Approval Service

Registration status transitions and the blacklist / whitelist workflow:

    pending  --approve-->          approved
    pending  --reject(reason)-->   rejected
    approved --blacklist(reason)-> blacklisted (is_blacklisted = TRUE)
    blacklisted --whitelist-->     is_blacklisted = FALSE   (super admin)
    blacklisted --request_whitelist(reason)--> pending whitelist request (officer)

Placement officers may only act on students of their own college.
Every change is a single-row update; bulk operations apply each student
independently and report the failures together.
"""

import logging
from typing import List, Optional

from sqlalchemy import text

from placement_portal.core.exceptions import (
    AuthorizationError, NotFoundError, PartialBatchFailure, PortalError, ValidationError
)
from placement_portal.db.postgres import execute_raw_sql, get_db_session
from placement_portal.services.activity_service import ActionType, log_activity

logger = logging.getLogger(__name__)


def _load_student(db, student_id: int) -> dict:
    row = db.execute(
        text("""
            SELECT student_id, prn, student_name, college_id, registration_status, is_blacklisted
            FROM students WHERE student_id = :id
        """),
        {"id": student_id}
    ).mappings().fetchone()
    if not row:
        raise NotFoundError(f"Student {student_id} not found")
    return dict(row)


def _check_scope(actor: dict, student: dict) -> None:
    if actor.get("role") == "placement_officer" and student["college_id"] != actor.get("college_id"):
        raise AuthorizationError("You can only manage students of your own college")


def _require_text(value: Optional[str], message: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(message)
    return value.strip()


# ============================================================
# REGISTRATION STATUS
# ============================================================

def approve_student(student_id: int, actor: dict, record_activity: bool = True) -> dict:
    """Approve a pending registration."""
    with get_db_session() as db:
        student = _load_student(db, student_id)
        _check_scope(actor, student)
        if student["registration_status"] != "pending":
            raise ValidationError(
                f"Only pending registrations can be approved (current status: {student['registration_status']})"
            )
        result = db.execute(
            text("""
                UPDATE students
                SET registration_status = 'approved', approved_by = :uid, approved_at = CURRENT_TIMESTAMP,
                    rejection_reason = NULL, updated_at = CURRENT_TIMESTAMP
                WHERE student_id = :id AND registration_status = 'pending'
            """),
            {"id": student_id, "uid": actor["user_id"]}
        )
        if result.rowcount == 0:
            raise ValidationError("Registration was changed by another request")

    logger.info(f"Student {student['prn']} approved by user {actor['user_id']}")
    if record_activity:
        log_activity(actor, ActionType.APPROVE_STUDENT, f"Approved student {student['prn']}",
                     "student", student_id)
    student["registration_status"] = "approved"
    return student


def reject_student(student_id: int, reason: Optional[str], actor: dict, record_activity: bool = True) -> dict:
    """Reject a pending registration. The reason is shown to the student."""
    reason = _require_text(reason, "Rejection reason is required")
    with get_db_session() as db:
        student = _load_student(db, student_id)
        _check_scope(actor, student)
        if student["registration_status"] != "pending":
            raise ValidationError(
                f"Only pending registrations can be rejected (current status: {student['registration_status']})"
            )
        result = db.execute(
            text("""
                UPDATE students
                SET registration_status = 'rejected', rejection_reason = :reason,
                    updated_at = CURRENT_TIMESTAMP
                WHERE student_id = :id AND registration_status = 'pending'
            """),
            {"id": student_id, "reason": reason}
        )
        if result.rowcount == 0:
            raise ValidationError("Registration was changed by another request")

    logger.info(f"Student {student['prn']} rejected by user {actor['user_id']}")
    if record_activity:
        log_activity(actor, ActionType.REJECT_STUDENT, f"Rejected student {student['prn']}",
                     "student", student_id, {"reason": reason})
    student["registration_status"] = "rejected"
    return student


def bulk_update_status(student_ids: List[int], action: str, actor: dict, reason: Optional[str] = None) -> List[int]:
    """
    Approve or reject many students.

    Each student is updated on its own; one failure does not undo the
    others. Raises PartialBatchFailure listing the failed ids when any
    student could not be updated.
    """
    if action not in ("approve", "reject"):
        raise ValidationError(f"Unknown bulk action '{action}'")
    if action == "reject":
        reason = _require_text(reason, "Rejection reason is required")
    if not student_ids:
        raise ValidationError("No students selected")

    succeeded, failed = [], []
    for student_id in dict.fromkeys(student_ids):
        try:
            if action == "approve":
                approve_student(student_id, actor, record_activity=False)
            else:
                reject_student(student_id, reason, actor, record_activity=False)
            succeeded.append(student_id)
        except PortalError as e:
            failed.append({"student_id": student_id, "message": e.message})

    verb = "approved" if action == "approve" else "rejected"
    action_type = ActionType.BULK_APPROVE_STUDENTS if action == "approve" else ActionType.BULK_REJECT_STUDENTS
    if succeeded:
        log_activity(actor, action_type, f"Bulk {verb} {len(succeeded)} students", "student", None,
                     {"student_ids": succeeded, "failed": failed, "reason": reason})

    if failed:
        raise PartialBatchFailure(
            f"{len(succeeded)} of {len(succeeded) + len(failed)} students {verb}; {len(failed)} failed",
            succeeded, failed
        )
    return succeeded


# ============================================================
# BLACKLIST / WHITELIST
# ============================================================

def blacklist_student(student_id: int, reason: Optional[str], actor: dict) -> dict:
    """Blacklist an approved student."""
    reason = _require_text(reason, "Blacklist reason is required")
    with get_db_session() as db:
        student = _load_student(db, student_id)
        _check_scope(actor, student)
        if student["is_blacklisted"]:
            raise ValidationError("Student is already blacklisted")
        if student["registration_status"] != "approved":
            raise ValidationError("Only approved students can be blacklisted")
        result = db.execute(
            text("""
                UPDATE students
                SET is_blacklisted = TRUE, blacklist_reason = :reason, blacklisted_at = CURRENT_TIMESTAMP,
                    blacklisted_by = :uid, updated_at = CURRENT_TIMESTAMP
                WHERE student_id = :id AND registration_status = 'approved' AND is_blacklisted = FALSE
            """),
            {"id": student_id, "reason": reason, "uid": actor["user_id"]}
        )
        if result.rowcount == 0:
            raise ValidationError("Student was changed by another request")

    logger.info(f"Student {student['prn']} blacklisted by user {actor['user_id']}")
    log_activity(actor, ActionType.BLACKLIST_STUDENT, f"Blacklisted student {student['prn']}",
                 "student", student_id, {"reason": reason})
    student["is_blacklisted"] = True
    return student


def _clear_blacklist(db, student_id: int) -> None:
    db.execute(
        text("""
            UPDATE students
            SET is_blacklisted = FALSE, blacklist_reason = NULL, blacklisted_at = NULL,
                blacklisted_by = NULL, updated_at = CURRENT_TIMESTAMP
            WHERE student_id = :id
        """),
        {"id": student_id}
    )


def whitelist_student(student_id: int, actor: dict, comment: Optional[str] = None) -> dict:
    """Remove a student from the blacklist directly (super admin). Open requests are closed."""
    with get_db_session() as db:
        student = _load_student(db, student_id)
        if not student["is_blacklisted"]:
            raise ValidationError("Student is not blacklisted")
        _clear_blacklist(db, student_id)
        db.execute(
            text("""
                UPDATE whitelist_requests
                SET status = 'approved', reviewed_by = :uid, review_comment = :comment,
                    reviewed_date = CURRENT_TIMESTAMP
                WHERE student_id = :id AND status = 'pending'
            """),
            {"id": student_id, "uid": actor["user_id"], "comment": comment or "Whitelisted directly"}
        )

    logger.info(f"Student {student['prn']} whitelisted by user {actor['user_id']}")
    log_activity(actor, ActionType.WHITELIST_STUDENT, f"Whitelisted student {student['prn']}",
                 "student", student_id, {"comment": comment})
    student["is_blacklisted"] = False
    return student


def request_whitelist(student_id: int, reason: Optional[str], actor: dict) -> int:
    """File a whitelist request for a blacklisted student (placement officer). Returns the request id."""
    reason = _require_text(reason, "Whitelist request reason is required")
    with get_db_session() as db:
        student = _load_student(db, student_id)
        _check_scope(actor, student)
        if not student["is_blacklisted"]:
            raise ValidationError("Student is not blacklisted")
        pending = db.execute(
            text("SELECT request_id FROM whitelist_requests WHERE student_id = :id AND status = 'pending'"),
            {"id": student_id}
        ).fetchone()
        if pending:
            raise ValidationError("A whitelist request for this student is already pending")
        request_id = db.execute(
            text("""
                INSERT INTO whitelist_requests (student_id, requested_by, request_reason, status)
                VALUES (:id, :uid, :reason, 'pending')
                RETURNING request_id
            """),
            {"id": student_id, "uid": actor["user_id"], "reason": reason}
        ).scalar()

    log_activity(actor, ActionType.WHITELIST_REQUEST, f"Requested whitelist for student {student['prn']}",
                 "whitelist_request", request_id, {"student_id": student_id, "reason": reason})
    return request_id


def list_whitelist_requests(status: Optional[str] = None, college_scope: Optional[int] = None) -> List[dict]:
    sql = """
        SELECT w.request_id, w.student_id, s.prn, s.student_name, c.college_name, w.requested_by,
               w.request_reason, w.status, w.reviewed_by, w.review_comment, w.reviewed_date, w.created_at
        FROM whitelist_requests w
        JOIN students s ON w.student_id = s.student_id
        JOIN colleges c ON s.college_id = c.college_id
        WHERE 1 = 1
    """
    params = {}
    if status:
        sql += " AND w.status = :status"
        params["status"] = status
    if college_scope is not None:
        sql += " AND s.college_id = :college_id"
        params["college_id"] = college_scope
    sql += " ORDER BY w.created_at DESC, w.request_id DESC"

    return execute_raw_sql(sql, params)


def review_whitelist_request(request_id: int, approve: bool, actor: dict, comment: Optional[str] = None) -> dict:
    """Approve (clears the blacklist) or reject a pending whitelist request."""
    if not approve:
        comment = _require_text(comment, "Review comment is required when rejecting a request")
    with get_db_session() as db:
        request = db.execute(
            text("SELECT request_id, student_id, status FROM whitelist_requests WHERE request_id = :id"),
            {"id": request_id}
        ).mappings().fetchone()
        if not request:
            raise NotFoundError(f"Whitelist request {request_id} not found")
        if request["status"] != "pending":
            raise ValidationError(f"Whitelist request is already {request['status']}")

        if approve:
            _clear_blacklist(db, request["student_id"])
        db.execute(
            text("""
                UPDATE whitelist_requests
                SET status = :status, reviewed_by = :uid, review_comment = :comment,
                    reviewed_date = CURRENT_TIMESTAMP
                WHERE request_id = :id
            """),
            {"id": request_id, "status": "approved" if approve else "rejected",
             "uid": actor["user_id"], "comment": comment}
        )

    action_type = ActionType.APPROVE_WHITELIST if approve else ActionType.REJECT_WHITELIST
    verb = "Approved" if approve else "Rejected"
    log_activity(actor, action_type, f"{verb} whitelist request {request_id}", "whitelist_request",
                 request_id, {"student_id": request["student_id"], "comment": comment})
    return {"request_id": request_id, "student_id": request["student_id"],
            "status": "approved" if approve else "rejected"}
