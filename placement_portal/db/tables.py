"""
Table definitions (SQLAlchemy Core).

Queries are written as raw SQL against these tables; the metadata is used
to create the schema for local setups and the test database. Production
migrations are managed outside this service.
"""

from sqlalchemy import (
    MetaData, Table, Column, Integer, String, Text, Float, Boolean, Date, DateTime,
    ForeignKey, UniqueConstraint, func, true, false
)

metadata = MetaData()


def _timestamp(name: str = "created_at") -> Column:
    return Column(name, DateTime, server_default=func.current_timestamp(), nullable=False)


users = Table(
    "users", metadata,
    Column("user_id", Integer, primary_key=True),
    Column("email", String(255), unique=True, nullable=False),
    Column("password_hash", String(255), nullable=False),
    # student | placement_officer | super_admin
    Column("role", String(30), nullable=False),
    Column("is_active", Boolean, nullable=False, server_default=true()),
    _timestamp(),
)

regions = Table(
    "regions", metadata,
    Column("region_id", Integer, primary_key=True),
    Column("region_name", String(100), unique=True, nullable=False),
)

colleges = Table(
    "colleges", metadata,
    Column("college_id", Integer, primary_key=True),
    Column("college_name", String(255), nullable=False),
    Column("college_code", String(20), unique=True),
    Column("region_id", Integer, ForeignKey("regions.region_id"), nullable=False),
)

placement_officers = Table(
    "placement_officers", metadata,
    Column("officer_id", Integer, primary_key=True),
    Column("user_id", Integer, ForeignKey("users.user_id"), unique=True, nullable=False),
    Column("college_id", Integer, ForeignKey("colleges.college_id"), nullable=False),
    Column("officer_name", String(150), nullable=False),
    Column("phone", String(20)),
)

students = Table(
    "students", metadata,
    Column("student_id", Integer, primary_key=True),
    Column("user_id", Integer, ForeignKey("users.user_id"), unique=True, nullable=False),
    Column("prn", String(30), unique=True, nullable=False),
    Column("student_name", String(150), nullable=False),
    Column("email", String(255), nullable=False),
    Column("mobile_number", String(20)),
    Column("date_of_birth", Date),
    Column("gender", String(20)),
    Column("height", Float),
    Column("weight", Float),
    Column("branch", String(150)),
    Column("college_id", Integer, ForeignKey("colleges.college_id"), nullable=False),
    Column("region_id", Integer, ForeignKey("regions.region_id"), nullable=False),
    Column("district", String(100)),
    *[Column(f"cgpa_sem{n}", Float) for n in range(1, 7)],
    Column("programme_cgpa", Float),
    *[Column(f"backlogs_sem{n}", Integer) for n in range(1, 7)],
    Column("backlog_count", Integer, nullable=False, server_default="0"),
    Column("has_driving_license", Boolean),
    Column("has_pan_card", Boolean),
    Column("has_aadhar_card", Boolean),
    Column("has_passport", Boolean),
    # pending | approved | rejected
    Column("registration_status", String(20), nullable=False, server_default="pending"),
    Column("rejection_reason", Text),
    Column("is_blacklisted", Boolean, nullable=False, server_default=false()),
    Column("blacklist_reason", Text),
    Column("blacklisted_at", DateTime),
    Column("blacklisted_by", Integer, ForeignKey("users.user_id")),
    Column("approved_by", Integer, ForeignKey("users.user_id")),
    Column("approved_at", DateTime),
    _timestamp(),
    _timestamp("updated_at"),
)

whitelist_requests = Table(
    "whitelist_requests", metadata,
    Column("request_id", Integer, primary_key=True),
    Column("student_id", Integer, ForeignKey("students.student_id"), nullable=False),
    Column("requested_by", Integer, ForeignKey("users.user_id"), nullable=False),
    Column("request_reason", Text, nullable=False),
    Column("status", String(20), nullable=False, server_default="pending"),
    Column("reviewed_by", Integer, ForeignKey("users.user_id")),
    Column("review_comment", Text),
    Column("reviewed_date", DateTime),
    _timestamp(),
)

activity_logs = Table(
    "activity_logs", metadata,
    Column("log_id", Integer, primary_key=True),
    Column("user_id", Integer, ForeignKey("users.user_id")),
    Column("action_type", String(50), nullable=False),
    Column("action_description", Text),
    Column("entity_type", String(50)),
    Column("entity_id", Integer),
    # JSON-encoded details
    Column("details", Text),
    Column("ip_address", String(64)),
    Column("user_agent", String(500)),
    _timestamp(),
)

def _job_columns() -> list:
    """Columns shared by jobs and job_requests (fresh objects per table)."""
    return [
        Column("company_name", String(200), nullable=False),
        Column("job_title", String(200), nullable=False),
        Column("job_description", Text),
        Column("location", String(200)),
        Column("salary_package", String(100)),
        Column("application_deadline", Date),
        Column("min_cgpa", Float),
        Column("max_backlogs", Integer),
        # all | region | college
        Column("target_type", String(20), nullable=False, server_default="all"),
    ]

jobs = Table(
    "jobs", metadata,
    Column("job_id", Integer, primary_key=True),
    *_job_columns(),
    Column("is_active", Boolean, nullable=False, server_default=true()),
    Column("created_by", Integer, ForeignKey("users.user_id")),
    _timestamp(),
)

job_targets = Table(
    "job_targets", metadata,
    Column("id", Integer, primary_key=True),
    Column("job_id", Integer, ForeignKey("jobs.job_id"), nullable=False),
    Column("region_id", Integer, ForeignKey("regions.region_id")),
    Column("college_id", Integer, ForeignKey("colleges.college_id")),
)

job_requests = Table(
    "job_requests", metadata,
    Column("request_id", Integer, primary_key=True),
    Column("requested_by", Integer, ForeignKey("users.user_id"), nullable=False),
    Column("college_id", Integer, ForeignKey("colleges.college_id"), nullable=False),
    *_job_columns(),
    Column("status", String(20), nullable=False, server_default="pending"),
    Column("reviewed_by", Integer, ForeignKey("users.user_id")),
    Column("review_comment", Text),
    Column("reviewed_date", DateTime),
    Column("job_id", Integer, ForeignKey("jobs.job_id")),
    _timestamp(),
)

job_request_targets = Table(
    "job_request_targets", metadata,
    Column("id", Integer, primary_key=True),
    Column("request_id", Integer, ForeignKey("job_requests.request_id"), nullable=False),
    Column("region_id", Integer, ForeignKey("regions.region_id")),
    Column("college_id", Integer, ForeignKey("colleges.college_id")),
)

job_applications = Table(
    "job_applications", metadata,
    Column("application_id", Integer, primary_key=True),
    Column("job_id", Integer, ForeignKey("jobs.job_id"), nullable=False),
    Column("student_id", Integer, ForeignKey("students.student_id"), nullable=False),
    # applied | shortlisted | selected | rejected
    Column("status", String(20), nullable=False, server_default="applied"),
    _timestamp("applied_at"),
    UniqueConstraint("job_id", "student_id", name="uq_job_applications_job_student"),
)
