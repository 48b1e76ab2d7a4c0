"""
Student registration and profile maintenance.

programme_cgpa and backlog_count are derived columns: they are recomputed
from the semester values whenever a student updates their profile.
"""

import logging
from typing import Optional, Tuple

from sqlalchemy import Date, bindparam, text

from placement_portal.core.auth import hash_password
from placement_portal.core.exceptions import NotFoundError, ValidationError
from placement_portal.db.postgres import get_db_session
from placement_portal.schemas.schemas import StudentRegister, StudentUpdate

logger = logging.getLogger(__name__)

SEMESTERS = range(1, 7)
CGPA_COLUMNS = [f"cgpa_sem{n}" for n in SEMESTERS]
BACKLOG_COLUMNS = [f"backlogs_sem{n}" for n in SEMESTERS]


def derive_academics(values: dict) -> Tuple[Optional[float], int]:
    """
    (programme_cgpa, backlog_count) for a set of semester values.

    programme_cgpa is the mean of the populated semester CGPAs (None when
    none are populated); backlog_count is the sum of semester backlogs.
    """
    cgpas = [values[c] for c in CGPA_COLUMNS if values.get(c) is not None]
    programme_cgpa = round(sum(cgpas) / len(cgpas), 2) if cgpas else None
    backlog_count = sum(values.get(c) or 0 for c in BACKLOG_COLUMNS)
    return programme_cgpa, backlog_count


def register_student(data: StudentRegister) -> int:
    """Create the student account and a pending registration. Returns the student id."""
    with get_db_session() as db:
        if db.execute(text("SELECT user_id FROM users WHERE email = :email"),
                      {"email": data.email}).fetchone():
            raise ValidationError("Email already registered")
        if db.execute(text("SELECT student_id FROM students WHERE prn = :prn"),
                      {"prn": data.prn}).fetchone():
            raise ValidationError("PRN already registered")

        college = db.execute(text("SELECT college_id, region_id FROM colleges WHERE college_id = :id"),
                             {"id": data.college_id}).fetchone()
        if not college:
            raise ValidationError(f"Unknown college {data.college_id}")

        user_id = db.execute(
            text("""
                INSERT INTO users (email, password_hash, role, is_active)
                VALUES (:email, :password_hash, 'student', TRUE)
                RETURNING user_id
            """),
            {"email": data.email, "password_hash": hash_password(data.password)}
        ).scalar()

        student_id = db.execute(
            text("""
                INSERT INTO students (user_id, prn, student_name, email, mobile_number, date_of_birth, gender,
                    height, weight, branch, college_id, region_id, district, has_driving_license,
                    has_pan_card, has_aadhar_card, has_passport, registration_status, is_blacklisted,
                    backlog_count)
                VALUES (:user_id, :prn, :student_name, :email, :mobile_number, :date_of_birth, :gender,
                    :height, :weight, :branch, :college_id, :region_id, :district, :has_driving_license,
                    :has_pan_card, :has_aadhar_card, :has_passport, 'pending', FALSE, 0)
                RETURNING student_id
            """).bindparams(bindparam("date_of_birth", type_=Date)),
            {
                "user_id": user_id, "prn": data.prn.strip(), "student_name": data.student_name.strip(),
                "email": data.email, "mobile_number": data.mobile_number,
                "date_of_birth": data.date_of_birth, "gender": data.gender, "height": data.height,
                "weight": data.weight, "branch": data.branch, "college_id": college[0],
                "region_id": college[1], "district": data.district,
                "has_driving_license": data.has_driving_license, "has_pan_card": data.has_pan_card,
                "has_aadhar_card": data.has_aadhar_card, "has_passport": data.has_passport,
            }
        ).scalar()

    logger.info(f"Student {data.prn} registered (pending approval)")
    return student_id


def get_profile(student_id: int) -> dict:
    with get_db_session() as db:
        row = db.execute(
            text("""
                SELECT s.*, c.college_name, r.region_name
                FROM students s
                JOIN colleges c ON s.college_id = c.college_id
                JOIN regions r ON s.region_id = r.region_id
                WHERE s.student_id = :id
            """),
            {"id": student_id}
        ).mappings().fetchone()
    if not row:
        raise NotFoundError("Student profile not found")
    return dict(row)


def update_profile(student_id: int, data: StudentUpdate) -> dict:
    """Update only the provided fields and refresh the derived academic totals."""
    changes = data.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationError("No fields to update")

    current = get_profile(student_id)
    merged = {**current, **changes}
    if any(c in changes for c in CGPA_COLUMNS + BACKLOG_COLUMNS):
        changes["programme_cgpa"], changes["backlog_count"] = derive_academics(merged)

    assignments = ", ".join(f"{field} = :{field}" for field in changes)
    statement = text(
        f"UPDATE students SET {assignments}, updated_at = CURRENT_TIMESTAMP WHERE student_id = :id"
    )
    if "date_of_birth" in changes:
        statement = statement.bindparams(bindparam("date_of_birth", type_=Date))

    with get_db_session() as db:
        db.execute(statement, {**changes, "id": student_id})

    return get_profile(student_id)
