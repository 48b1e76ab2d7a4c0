"""
Super Admin Routes

GET  /super-admin/students - List students of every college with filters and pagination
GET  /super-admin/students/export - Export filtered students (csv, excel, pdf)
POST /super-admin/students/export/custom - Export with chosen fields and PDF options
POST /super-admin/students/{student_id}/blacklist - Blacklist an approved student
POST /super-admin/students/{student_id}/whitelist - Remove a student from the blacklist
GET  /super-admin/whitelist-requests - Whitelist requests filed by officers
POST /super-admin/whitelist-requests/{request_id}/approve - Approve (whitelists the student)
POST /super-admin/whitelist-requests/{request_id}/reject - Reject with a comment
GET  /super-admin/job-requests - Job requests from officers
POST /super-admin/job-requests/{request_id}/approve - Approve and create the job
POST /super-admin/job-requests/{request_id}/reject - Reject with a comment
GET  /super-admin/jobs - All jobs
POST /super-admin/jobs - Create a job directly
POST /super-admin/jobs/{job_id}/toggle - Activate / deactivate a job
GET  /super-admin/activity-logs - Audit trail
GET  /super-admin/branches - Branches across colleges
GET  /super-admin/districts - Districts across colleges
GET  /super-admin/jobs/{job_id}/applicants - Applicants from every college
GET  /super-admin/dashboard - Student counts by status
"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from placement_portal.api.common import (
    export_details, export_file_response, get_export_fields, get_filter_criteria, student_list_response
)
from placement_portal.core.auth import get_current_admin
from placement_portal.schemas.schemas import (
    ActivityLogListResponse, ApplicantResponse, DashboardStats, ExportRequest, FilterCriteria, JobCreate,
    JobRequestResponse, JobResponse, MessageResponse, ReasonRequest, RequestStatus, ReviewRequest, StudentListResponse,
    WhitelistRequestResponse
)
from placement_portal.services import approval_service, job_service
from placement_portal.services.activity_service import ActionType, list_activity_logs, log_activity
from placement_portal.services.branch_names import BranchNameLookup, get_branch_lookup
from placement_portal.services.export_service import ExportOptions, export_students
from placement_portal.services.student_filter import list_branches, list_districts, student_status_counts

router = APIRouter(prefix="/super-admin", tags=["Super Admin"])


# ============================================================
# STUDENTS
# ============================================================

@router.get("/students", response_model=StudentListResponse)
async def list_all_students(
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    criteria: FilterCriteria = Depends(get_filter_criteria),
    admin: dict = Depends(get_current_admin)
):
    """List students across colleges. Newest registrations first."""
    return student_list_response(criteria, page, limit)


@router.get("/students/export")
async def export_all_students(
    format: str = Query("excel"),
    use_short_names: bool = Query(False),
    separate_colleges: bool = Query(False),
    company_name: Optional[str] = Query(None),
    drive_date: Optional[date] = Query(None),
    include_signature: bool = Query(False),
    criteria: FilterCriteria = Depends(get_filter_criteria),
    fields: List[str] = Depends(get_export_fields),
    branch_lookup: BranchNameLookup = Depends(get_branch_lookup),
    admin: dict = Depends(get_current_admin)
):
    """Export the students matched by the listing filters (no pagination)."""
    options = ExportOptions(use_short_names, separate_colleges, company_name, drive_date, include_signature)
    result = export_students(criteria, fields, format, options, branch_lookup=branch_lookup)
    log_activity(admin, ActionType.EXPORT_STUDENTS, f"Exported {result.exported_count} students",
                 "student", None, export_details(criteria, fields, result))
    return export_file_response(result)


@router.post("/students/export/custom")
async def custom_export_all_students(
    request: ExportRequest,
    branch_lookup: BranchNameLookup = Depends(get_branch_lookup),
    admin: dict = Depends(get_current_admin)
):
    options = ExportOptions(request.use_short_names, request.separate_colleges, request.company_name,
                            request.drive_date, request.include_signature)
    result = export_students(request.filters, request.fields, request.format, options,
                             branch_lookup=branch_lookup)
    log_activity(admin, ActionType.CUSTOM_EXPORT_STUDENTS, f"Custom export of {result.exported_count} students",
                 "student", None, export_details(request.filters, request.fields, result))
    return export_file_response(result)


@router.post("/students/{student_id}/blacklist", response_model=MessageResponse)
async def blacklist(student_id: int, request: ReasonRequest, admin: dict = Depends(get_current_admin)):
    student = approval_service.blacklist_student(student_id, request.reason, admin)
    return MessageResponse(message=f"Student {student['prn']} blacklisted")


@router.post("/students/{student_id}/whitelist", response_model=MessageResponse)
async def whitelist(student_id: int, review: Optional[ReviewRequest] = None,
                    admin: dict = Depends(get_current_admin)):
    """Whitelist directly. Any pending whitelist request for the student is closed as approved."""
    student = approval_service.whitelist_student(student_id, admin, review.comment if review else None)
    return MessageResponse(message=f"Student {student['prn']} whitelisted")


# ============================================================
# WHITELIST REQUESTS
# ============================================================

@router.get("/whitelist-requests", response_model=List[WhitelistRequestResponse])
async def whitelist_requests(
    status: Optional[RequestStatus] = Query(None),
    admin: dict = Depends(get_current_admin)
):
    return approval_service.list_whitelist_requests(status.value if status else None)


@router.post("/whitelist-requests/{request_id}/approve", response_model=MessageResponse)
async def approve_whitelist_request(request_id: int, review: Optional[ReviewRequest] = None,
                                    admin: dict = Depends(get_current_admin)):
    approval_service.review_whitelist_request(request_id, True, admin, review.comment if review else None)
    return MessageResponse(message="Whitelist request approved")


@router.post("/whitelist-requests/{request_id}/reject", response_model=MessageResponse)
async def reject_whitelist_request(request_id: int, review: ReviewRequest,
                                   admin: dict = Depends(get_current_admin)):
    approval_service.review_whitelist_request(request_id, False, admin, review.comment)
    return MessageResponse(message="Whitelist request rejected")


# ============================================================
# JOB REQUESTS / JOBS
# ============================================================

@router.get("/job-requests", response_model=List[JobRequestResponse])
async def job_requests(
    status: Optional[RequestStatus] = Query(None),
    admin: dict = Depends(get_current_admin)
):
    return job_service.list_job_requests(status.value if status else None)


@router.post("/job-requests/{request_id}/approve", response_model=JobRequestResponse)
async def approve_job_request(request_id: int, admin: dict = Depends(get_current_admin)):
    """Approve a pending request; the job is created with the request's target audience."""
    return job_service.approve_job_request(request_id, admin)


@router.post("/job-requests/{request_id}/reject", response_model=JobRequestResponse)
async def reject_job_request(request_id: int, review: ReviewRequest, admin: dict = Depends(get_current_admin)):
    return job_service.reject_job_request(request_id, review.comment, admin)


@router.get("/jobs", response_model=List[JobResponse])
async def jobs(active_only: bool = Query(False), admin: dict = Depends(get_current_admin)):
    return job_service.list_jobs(active_only)


@router.post("/jobs", response_model=JobResponse, status_code=201)
async def create_job(job: JobCreate, admin: dict = Depends(get_current_admin)):
    return job_service.create_job(job, admin)


@router.post("/jobs/{job_id}/toggle", response_model=JobResponse)
async def toggle_job(job_id: int, admin: dict = Depends(get_current_admin)):
    return job_service.toggle_job(job_id, admin)


# ============================================================
# ACTIVITY LOGS / LOOKUPS
# ============================================================

@router.get("/activity-logs", response_model=ActivityLogListResponse)
async def activity_logs(
    page: int = Query(1),
    limit: int = Query(50),
    action_type: Optional[str] = Query(None),
    user_id: Optional[int] = Query(None),
    admin: dict = Depends(get_current_admin)
):
    result = list_activity_logs(page, limit, action_type, user_id)
    return ActivityLogListResponse(page=page, limit=limit, **result)


@router.get("/branches", response_model=List[str])
async def branches(admin: dict = Depends(get_current_admin)):
    return list_branches()


@router.get("/districts", response_model=List[str])
async def districts(admin: dict = Depends(get_current_admin)):
    return list_districts()


@router.get("/jobs/{job_id}/applicants", response_model=List[ApplicantResponse])
async def job_applicants(job_id: int, admin: dict = Depends(get_current_admin)):
    return job_service.list_job_applicants(job_id)


@router.get("/dashboard", response_model=DashboardStats)
async def dashboard(admin: dict = Depends(get_current_admin)):
    return DashboardStats(**student_status_counts())
