"""
Activity Log Service

Append-only audit trail of approvals, blacklisting, job requests and exports.
A failed log write is reported but never fails the action being logged.
"""

import json
import logging
from typing import Optional

from sqlalchemy import text

from placement_portal.core.exceptions import InfrastructureError
from placement_portal.db.postgres import get_db_session
from placement_portal.utils.pagination import get_page_window, total_pages

logger = logging.getLogger(__name__)


class ActionType:
    APPROVE_STUDENT = "APPROVE_STUDENT"
    REJECT_STUDENT = "REJECT_STUDENT"
    BULK_APPROVE_STUDENTS = "BULK_APPROVE_STUDENTS"
    BULK_REJECT_STUDENTS = "BULK_REJECT_STUDENTS"
    BLACKLIST_STUDENT = "BLACKLIST_STUDENT"
    WHITELIST_REQUEST = "WHITELIST_REQUEST"
    WHITELIST_STUDENT = "WHITELIST_STUDENT"
    APPROVE_WHITELIST = "APPROVE_WHITELIST"
    REJECT_WHITELIST = "REJECT_WHITELIST"
    JOB_REQUEST_CREATE = "JOB_REQUEST_CREATE"
    JOB_REQUEST_APPROVE = "JOB_REQUEST_APPROVE"
    JOB_REQUEST_REJECT = "JOB_REQUEST_REJECT"
    JOB_CREATE = "JOB_CREATE"
    JOB_TOGGLE = "JOB_TOGGLE"
    APPLY_JOB = "APPLY_JOB"
    EXPORT_STUDENTS = "EXPORT_STUDENTS"
    CUSTOM_EXPORT_STUDENTS = "CUSTOM_EXPORT_STUDENTS"


def log_activity(
    actor: dict,
    action_type: str,
    description: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    details: Optional[dict] = None,
) -> None:
    """
    Record an action performed by actor (the authenticated user dict).
    """
    try:
        with get_db_session() as db:
            db.execute(
                text("""
                    INSERT INTO activity_logs (user_id, action_type, action_description, entity_type,
                        entity_id, details, ip_address, user_agent)
                    VALUES (:user_id, :action_type, :description, :entity_type, :entity_id,
                        :details, :ip_address, :user_agent)
                """),
                {
                    "user_id": actor.get("user_id"),
                    "action_type": action_type,
                    "description": description,
                    "entity_type": entity_type,
                    "entity_id": entity_id,
                    "details": json.dumps(details, default=str) if details is not None else None,
                    "ip_address": actor.get("ip_address"),
                    "user_agent": actor.get("user_agent"),
                }
            )
    except InfrastructureError:
        logger.exception(f"Failed to write activity log {action_type} for user {actor.get('user_id')}")


def list_activity_logs(
    page: int = 1,
    limit: int = 50,
    action_type: Optional[str] = None,
    user_id: Optional[int] = None,
) -> dict:
    """Newest-first page of activity logs."""
    limit, offset = get_page_window(page, limit)

    where = " WHERE 1 = 1"
    params = {}
    if action_type:
        where += " AND action_type = :action_type"
        params["action_type"] = action_type
    if user_id is not None:
        where += " AND user_id = :user_id"
        params["user_id"] = user_id

    with get_db_session() as db:
        total = db.execute(text("SELECT COUNT(*) FROM activity_logs" + where), params).scalar() or 0
        result = db.execute(
            text(f"""
                SELECT log_id, user_id, action_type, action_description, entity_type, entity_id,
                       details, ip_address, user_agent, created_at
                FROM activity_logs {where}
                ORDER BY created_at DESC, log_id DESC
                LIMIT :limit OFFSET :offset
            """),
            {**params, "limit": limit, "offset": offset}
        )
        rows = [dict(r) for r in result.mappings().all()]

    for row in rows:
        row["details"] = json.loads(row["details"]) if row["details"] else None

    return {"data": rows, "total": total, "total_pages": total_pages(total, limit)}
