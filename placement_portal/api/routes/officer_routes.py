"""
Placement Officer Routes

All operations are limited to students of the officer's own college.

GET  /placement-officer/students - List students with filters and pagination
GET  /placement-officer/students/export - Export filtered students (csv, excel, pdf)
POST /placement-officer/students/export/custom - Export with chosen fields and PDF options
POST /placement-officer/students/bulk-approve - Approve many pending students
POST /placement-officer/students/bulk-reject - Reject many pending students
POST /placement-officer/students/{student_id}/approve - Approve a pending student
POST /placement-officer/students/{student_id}/reject - Reject a pending student
POST /placement-officer/students/{student_id}/blacklist - Blacklist an approved student
POST /placement-officer/students/{student_id}/whitelist-request - Ask a super admin to whitelist
GET  /placement-officer/whitelist-requests - Whitelist requests for the college
GET  /placement-officer/branches - Branches present in the college
GET  /placement-officer/districts - Districts present in the college
POST /placement-officer/job-requests - Request a job for students
GET  /placement-officer/job-requests - Job requests of the college
GET  /placement-officer/jobs/{job_id}/applicants - Applicants from the college
GET  /placement-officer/dashboard - Student counts by status
"""

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from placement_portal.api.common import (
    export_details, export_file_response, get_export_fields, get_filter_criteria, student_list_response
)
from placement_portal.core.auth import get_current_officer
from placement_portal.schemas.schemas import (
    ApplicantResponse, BulkActionRequest, BulkActionResponse, DashboardStats, ExportRequest, FilterCriteria,
    JobRequestCreate, JobRequestResponse, MessageResponse, ReasonRequest, RequestStatus, StudentListResponse,
    WhitelistRequestResponse
)
from placement_portal.services import approval_service, job_service
from placement_portal.services.activity_service import ActionType, log_activity
from placement_portal.services.branch_names import BranchNameLookup, get_branch_lookup
from placement_portal.services.export_service import ExportOptions, export_students
from placement_portal.services.student_filter import list_branches, list_districts, student_status_counts

router = APIRouter(prefix="/placement-officer", tags=["Placement Officer"])


@router.get("/students", response_model=StudentListResponse)
async def list_college_students(
    page: int = Query(1),
    limit: Optional[int] = Query(None),
    criteria: FilterCriteria = Depends(get_filter_criteria),
    officer: dict = Depends(get_current_officer)
):
    """List students of the officer's college. Newest registrations first."""
    return student_list_response(criteria, page, limit, college_scope=officer["college_id"])


@router.get("/students/export")
async def export_college_students(
    format: str = Query("excel"),
    use_short_names: bool = Query(False),
    separate_colleges: bool = Query(False),
    company_name: Optional[str] = Query(None),
    drive_date: Optional[date] = Query(None),
    include_signature: bool = Query(False),
    criteria: FilterCriteria = Depends(get_filter_criteria),
    fields: List[str] = Depends(get_export_fields),
    branch_lookup: BranchNameLookup = Depends(get_branch_lookup),
    officer: dict = Depends(get_current_officer)
):
    """Export the students matched by the listing filters (no pagination)."""
    options = ExportOptions(use_short_names, separate_colleges, company_name, drive_date, include_signature)
    result = export_students(criteria, fields, format, options, college_scope=officer["college_id"],
                             branch_lookup=branch_lookup)
    log_activity(officer, ActionType.EXPORT_STUDENTS, f"Exported {result.exported_count} students",
                 "student", None, export_details(criteria, fields, result))
    return export_file_response(result)


@router.post("/students/export/custom")
async def custom_export_college_students(
    request: ExportRequest,
    branch_lookup: BranchNameLookup = Depends(get_branch_lookup),
    officer: dict = Depends(get_current_officer)
):
    """Export with an explicit field selection and PDF drive details."""
    options = ExportOptions(request.use_short_names, request.separate_colleges, request.company_name,
                            request.drive_date, request.include_signature)
    result = export_students(request.filters, request.fields, request.format, options,
                             college_scope=officer["college_id"], branch_lookup=branch_lookup)
    log_activity(officer, ActionType.CUSTOM_EXPORT_STUDENTS, f"Custom export of {result.exported_count} students",
                 "student", None, export_details(request.filters, request.fields, result))
    return export_file_response(result)


@router.post("/students/bulk-approve", response_model=BulkActionResponse)
async def bulk_approve(request: BulkActionRequest, officer: dict = Depends(get_current_officer)):
    """Approve each listed student independently. Partial failures answer 207."""
    succeeded = approval_service.bulk_update_status(request.student_ids, "approve", officer)
    return BulkActionResponse(message=f"{len(succeeded)} students approved", succeeded=succeeded)


@router.post("/students/bulk-reject", response_model=BulkActionResponse)
async def bulk_reject(request: BulkActionRequest, officer: dict = Depends(get_current_officer)):
    succeeded = approval_service.bulk_update_status(request.student_ids, "reject", officer, request.reason)
    return BulkActionResponse(message=f"{len(succeeded)} students rejected", succeeded=succeeded)


@router.post("/students/{student_id}/approve", response_model=MessageResponse)
async def approve(student_id: int, officer: dict = Depends(get_current_officer)):
    student = approval_service.approve_student(student_id, officer)
    return MessageResponse(message=f"Student {student['prn']} approved")


@router.post("/students/{student_id}/reject", response_model=MessageResponse)
async def reject(student_id: int, request: ReasonRequest, officer: dict = Depends(get_current_officer)):
    student = approval_service.reject_student(student_id, request.reason, officer)
    return MessageResponse(message=f"Student {student['prn']} rejected")


@router.post("/students/{student_id}/blacklist", response_model=MessageResponse)
async def blacklist(student_id: int, request: ReasonRequest, officer: dict = Depends(get_current_officer)):
    student = approval_service.blacklist_student(student_id, request.reason, officer)
    return MessageResponse(message=f"Student {student['prn']} blacklisted")


@router.post("/students/{student_id}/whitelist-request", response_model=MessageResponse, status_code=201)
async def whitelist_request(student_id: int, request: ReasonRequest, officer: dict = Depends(get_current_officer)):
    """Blacklisted students can only be whitelisted by a super admin; this files the request."""
    request_id = approval_service.request_whitelist(student_id, request.reason, officer)
    return MessageResponse(message=f"Whitelist request {request_id} submitted")


@router.get("/whitelist-requests", response_model=List[WhitelistRequestResponse])
async def college_whitelist_requests(
    status: Optional[RequestStatus] = Query(None),
    officer: dict = Depends(get_current_officer)
):
    return approval_service.list_whitelist_requests(status.value if status else None,
                                                    college_scope=officer["college_id"])


@router.get("/branches", response_model=List[str])
async def college_branches(officer: dict = Depends(get_current_officer)):
    return list_branches(college_scope=officer["college_id"])


@router.get("/districts", response_model=List[str])
async def college_districts(officer: dict = Depends(get_current_officer)):
    return list_districts(college_scope=officer["college_id"])


@router.post("/job-requests", response_model=JobRequestResponse, status_code=201)
async def create_job_request(request: JobRequestCreate, officer: dict = Depends(get_current_officer)):
    """Request a job. Requests for the officer's own college only are approved immediately."""
    return job_service.create_job_request(request, officer)


@router.get("/job-requests", response_model=List[JobRequestResponse])
async def college_job_requests(
    status: Optional[RequestStatus] = Query(None),
    officer: dict = Depends(get_current_officer)
):
    return job_service.list_job_requests(status.value if status else None, college_scope=officer["college_id"])


@router.get("/jobs/{job_id}/applicants", response_model=List[ApplicantResponse])
async def college_job_applicants(job_id: int, officer: dict = Depends(get_current_officer)):
    return job_service.list_job_applicants(job_id, college_scope=officer["college_id"])


@router.get("/dashboard", response_model=DashboardStats)
async def dashboard(officer: dict = Depends(get_current_officer)):
    """Student counts for the college, bucketed like the status filter."""
    return DashboardStats(**student_status_counts(college_scope=officer["college_id"]))
