"""
Student Routes

GET /students/profile - Get own profile (including rejection / blacklist reason)
PUT /students/profile - Update profile; CGPA and backlog totals are recomputed
GET /students/jobs - Jobs aimed at the student, with eligibility
POST /students/jobs/{job_id}/apply - Apply to an eligible job
GET /students/applications - Own job applications
"""

from typing import List

from fastapi import APIRouter, Depends

from placement_portal.core.auth import get_current_student
from placement_portal.services import job_service, student_service
from placement_portal.schemas.schemas import (
    JobApplicationResponse, MessageResponse, StudentJobResponse, StudentProfileResponse, StudentUpdate
)

router = APIRouter(prefix="/students", tags=["Students"])


@router.get("/profile", response_model=StudentProfileResponse)
async def get_profile(student: dict = Depends(get_current_student)):
    """Get current student's profile."""
    return student_service.get_profile(student["student_id"])


@router.put("/profile", response_model=StudentProfileResponse)
async def update_profile(data: StudentUpdate, student: dict = Depends(get_current_student)):
    """Update profile. Only provided fields are updated; PRN cannot be changed."""
    return student_service.update_profile(student["student_id"], data)


@router.get("/jobs", response_model=List[StudentJobResponse])
async def my_jobs(student: dict = Depends(get_current_student)):
    """Active jobs for the student's college or region, flagged with can_apply."""
    return job_service.jobs_for_student(student["student_id"])


@router.post("/jobs/{job_id}/apply", response_model=MessageResponse, status_code=201)
async def apply(job_id: int, student: dict = Depends(get_current_student)):
    """Apply to a job. Blacklisted, unapproved or ineligible students are refused."""
    application = job_service.apply_to_job(job_id, student)
    return MessageResponse(message=f"Application {application['application_id']} submitted")


@router.get("/applications", response_model=List[JobApplicationResponse])
async def my_applications(student: dict = Depends(get_current_student)):
    return job_service.list_student_applications(student["student_id"])
