"""
Pydantic Schemas - Request/Response Validation

All API request and response schemas in one file for simplicity.
"""

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from typing import Optional, List, Any
from datetime import date, datetime
from enum import Enum


# ============================================================
# ENUMS
# ============================================================

class UserRole(str, Enum):
    student = "student"
    placement_officer = "placement_officer"
    super_admin = "super_admin"


class RegistrationStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


class StudentStatusFilter(str, Enum):
    all = "all"
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    blacklisted = "blacklisted"


class DocumentFlag(str, Enum):
    yes = "yes"
    no = "no"


class ExportFormat(str, Enum):
    csv = "csv"
    excel = "excel"
    pdf = "pdf"


class TargetType(str, Enum):
    all = "all"
    region = "region"
    college = "college"


class RequestStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"


# ============================================================
# AUTH SCHEMAS
# ============================================================

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: int
    role: str

class UserResponse(BaseModel):
    user_id: int
    email: str
    role: UserRole
    is_active: bool
    created_at: datetime


# ============================================================
# STUDENT FILTER SCHEMAS
# ============================================================

DOCUMENT_FLAG_FIELDS = ("has_driving_license", "has_pan_card", "has_aadhar_card", "has_passport")


class FilterCriteria(BaseModel):
    """
    Optional, independently applied student filters.

    A missing or empty value never constrains the result. Present values
    are combined with AND. Pagination is carried separately.
    """
    model_config = ConfigDict(extra="forbid")

    status: Optional[StudentStatusFilter] = None
    search: Optional[str] = None
    cgpa_min: Optional[float] = Field(None, ge=0, le=10)
    cgpa_max: Optional[float] = Field(None, ge=0, le=10)
    backlog_count: Optional[int] = Field(None, ge=0)
    branch: Optional[str] = None
    branches: Optional[List[str]] = None
    dob_from: Optional[date] = None
    dob_to: Optional[date] = None
    height_min: Optional[float] = Field(None, ge=0)
    height_max: Optional[float] = Field(None, ge=0)
    weight_min: Optional[float] = Field(None, ge=0)
    weight_max: Optional[float] = Field(None, ge=0)
    has_driving_license: Optional[DocumentFlag] = None
    has_pan_card: Optional[DocumentFlag] = None
    has_aadhar_card: Optional[DocumentFlag] = None
    has_passport: Optional[DocumentFlag] = None
    districts: Optional[List[str]] = None
    college_id: Optional[int] = None
    region_id: Optional[int] = None

    @field_validator("*", mode="before")
    @classmethod
    def blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("districts", "branches", mode="before")
    @classmethod
    def split_list(cls, value: Any) -> Any:
        # Accept "a,b" as well as ["a", "b"] or ["a,b"]
        if value is None:
            return None
        items = [value] if isinstance(value, str) else list(value)
        cleaned = []
        for item in items:
            cleaned.extend(part.strip() for part in str(item).split(",") if part.strip())
        return cleaned or None

    @field_validator("search", "branch")
    @classmethod
    def strip_text(cls, value: Optional[str]) -> Optional[str]:
        return value.strip() if value else value

    @model_validator(mode="after")
    def check_ranges(self):
        for low, high in (("cgpa_min", "cgpa_max"), ("height_min", "height_max"),
                          ("weight_min", "weight_max"), ("dob_from", "dob_to")):
            low_value, high_value = getattr(self, low), getattr(self, high)
            if low_value is not None and high_value is not None and low_value > high_value:
                raise ValueError(f"{low} must not be greater than {high}")
        return self


class StudentSummary(BaseModel):
    student_id: int
    prn: str
    student_name: str
    email: str
    mobile_number: Optional[str] = None
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    branch: Optional[str] = None
    district: Optional[str] = None
    college_id: int
    college_name: str
    region_id: int
    region_name: str
    programme_cgpa: Optional[float] = None
    backlog_count: int = 0
    registration_status: RegistrationStatus
    is_blacklisted: bool
    created_at: datetime

class StudentListResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    data: List[StudentSummary]
    total: int
    page: int
    limit: int
    total_pages: int = Field(..., serialization_alias="totalPages")
    count: int


# ============================================================
# EXPORT SCHEMAS
# ============================================================

class ExportRequest(BaseModel):
    filters: FilterCriteria = Field(default_factory=FilterCriteria)
    fields: List[str]
    format: ExportFormat = ExportFormat.excel
    use_short_names: bool = False
    separate_colleges: bool = False
    company_name: Optional[str] = None
    drive_date: Optional[date] = None
    include_signature: bool = False


# ============================================================
# STUDENT SCHEMAS
# ============================================================

class StudentRegister(BaseModel):
    prn: str = Field(..., min_length=3, max_length=30)
    student_name: str = Field(..., min_length=2, max_length=150)
    email: EmailStr
    password: str = Field(..., min_length=8)
    mobile_number: Optional[str] = Field(None, max_length=20)
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    height: Optional[float] = Field(None, gt=0)
    weight: Optional[float] = Field(None, gt=0)
    branch: str
    college_id: int
    district: Optional[str] = None
    has_driving_license: Optional[bool] = None
    has_pan_card: Optional[bool] = None
    has_aadhar_card: Optional[bool] = None
    has_passport: Optional[bool] = None


class StudentUpdate(BaseModel):
    # PRN and status fields are not editable
    model_config = ConfigDict(extra="forbid")

    student_name: Optional[str] = Field(None, min_length=2, max_length=150)
    mobile_number: Optional[str] = Field(None, max_length=20)
    date_of_birth: Optional[date] = None
    gender: Optional[str] = None
    height: Optional[float] = Field(None, gt=0)
    weight: Optional[float] = Field(None, gt=0)
    branch: Optional[str] = None
    district: Optional[str] = None
    cgpa_sem1: Optional[float] = Field(None, ge=0, le=10)
    cgpa_sem2: Optional[float] = Field(None, ge=0, le=10)
    cgpa_sem3: Optional[float] = Field(None, ge=0, le=10)
    cgpa_sem4: Optional[float] = Field(None, ge=0, le=10)
    cgpa_sem5: Optional[float] = Field(None, ge=0, le=10)
    cgpa_sem6: Optional[float] = Field(None, ge=0, le=10)
    backlogs_sem1: Optional[int] = Field(None, ge=0)
    backlogs_sem2: Optional[int] = Field(None, ge=0)
    backlogs_sem3: Optional[int] = Field(None, ge=0)
    backlogs_sem4: Optional[int] = Field(None, ge=0)
    backlogs_sem5: Optional[int] = Field(None, ge=0)
    backlogs_sem6: Optional[int] = Field(None, ge=0)
    has_driving_license: Optional[bool] = None
    has_pan_card: Optional[bool] = None
    has_aadhar_card: Optional[bool] = None
    has_passport: Optional[bool] = None

    @field_validator("student_name")
    @classmethod
    def name_not_null(cls, value: Optional[str]) -> str:
        if value is None:
            raise ValueError("student_name cannot be null")
        return value


class StudentProfileResponse(StudentSummary):
    user_id: int
    height: Optional[float] = None
    weight: Optional[float] = None
    cgpa_sem1: Optional[float] = None
    cgpa_sem2: Optional[float] = None
    cgpa_sem3: Optional[float] = None
    cgpa_sem4: Optional[float] = None
    cgpa_sem5: Optional[float] = None
    cgpa_sem6: Optional[float] = None
    backlogs_sem1: Optional[int] = None
    backlogs_sem2: Optional[int] = None
    backlogs_sem3: Optional[int] = None
    backlogs_sem4: Optional[int] = None
    backlogs_sem5: Optional[int] = None
    backlogs_sem6: Optional[int] = None
    has_driving_license: Optional[bool] = None
    has_pan_card: Optional[bool] = None
    has_aadhar_card: Optional[bool] = None
    has_passport: Optional[bool] = None
    rejection_reason: Optional[str] = None
    blacklist_reason: Optional[str] = None


# ============================================================
# APPROVAL SCHEMAS
# ============================================================

class ReasonRequest(BaseModel):
    reason: str

class ReviewRequest(BaseModel):
    comment: Optional[str] = None

class BulkActionRequest(BaseModel):
    student_ids: List[int] = Field(..., min_length=1)
    reason: Optional[str] = None

class BulkActionResponse(BaseModel):
    success: bool = True
    message: str
    succeeded: List[int]

class WhitelistRequestResponse(BaseModel):
    request_id: int
    student_id: int
    prn: str
    student_name: str
    college_name: str
    requested_by: int
    request_reason: str
    status: str
    reviewed_by: Optional[int] = None
    review_comment: Optional[str] = None
    reviewed_date: Optional[datetime] = None
    created_at: datetime


# ============================================================
# JOB SCHEMAS
# ============================================================

class JobCreate(BaseModel):
    company_name: str = Field(..., min_length=2, max_length=200)
    job_title: str = Field(..., min_length=2, max_length=200)
    job_description: Optional[str] = None
    location: Optional[str] = None
    salary_package: Optional[str] = None
    application_deadline: Optional[date] = None
    min_cgpa: Optional[float] = Field(None, ge=0, le=10)
    max_backlogs: Optional[int] = Field(None, ge=0)
    target_type: TargetType = TargetType.all
    target_region_ids: List[int] = []
    target_college_ids: List[int] = []

    @model_validator(mode="after")
    def check_targets(self):
        if self.target_type == TargetType.region and not self.target_region_ids:
            raise ValueError("target_region_ids is required for region targeted jobs")
        if self.target_type == TargetType.college and not self.target_college_ids:
            raise ValueError("target_college_ids is required for college targeted jobs")
        return self

class JobRequestCreate(JobCreate):
    target_type: TargetType = TargetType.college

class JobResponse(BaseModel):
    job_id: int
    company_name: str
    job_title: str
    job_description: Optional[str] = None
    location: Optional[str] = None
    salary_package: Optional[str] = None
    application_deadline: Optional[date] = None
    min_cgpa: Optional[float] = None
    max_backlogs: Optional[int] = None
    target_type: str
    target_region_ids: List[int] = []
    target_college_ids: List[int] = []
    is_active: bool
    created_at: datetime

class StudentJobResponse(JobResponse):
    can_apply: bool
    ineligibility_reason: Optional[str] = None

class JobRequestResponse(BaseModel):
    request_id: int
    requested_by: int
    college_id: int
    college_name: str
    company_name: str
    job_title: str
    job_description: Optional[str] = None
    location: Optional[str] = None
    salary_package: Optional[str] = None
    application_deadline: Optional[date] = None
    min_cgpa: Optional[float] = None
    max_backlogs: Optional[int] = None
    target_type: str
    target_region_ids: List[int] = []
    target_college_ids: List[int] = []
    status: str
    review_comment: Optional[str] = None
    reviewed_date: Optional[datetime] = None
    job_id: Optional[int] = None
    created_at: datetime


class JobApplicationResponse(BaseModel):
    application_id: int
    job_id: int
    company_name: str
    job_title: str
    location: Optional[str] = None
    application_deadline: Optional[date] = None
    status: str
    applied_at: datetime


class ApplicantResponse(BaseModel):
    application_id: int
    student_id: int
    prn: str
    student_name: str
    email: str
    mobile_number: Optional[str] = None
    branch: Optional[str] = None
    college_name: str
    programme_cgpa: Optional[float] = None
    backlog_count: int = 0
    status: str
    applied_at: datetime


# ============================================================
# DASHBOARD SCHEMAS
# ============================================================

class DashboardStats(BaseModel):
    success: bool = True
    total_students: int
    pending: int
    approved: int
    rejected: int
    blacklisted: int


# ============================================================
# ACTIVITY LOG SCHEMAS
# ============================================================

class ActivityLogResponse(BaseModel):
    log_id: int
    user_id: Optional[int] = None
    action_type: str
    action_description: Optional[str] = None
    entity_type: Optional[str] = None
    entity_id: Optional[int] = None
    details: Optional[dict] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime

class ActivityLogListResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    data: List[ActivityLogResponse]
    total: int
    page: int
    limit: int
    total_pages: int = Field(..., serialization_alias="totalPages")


# ============================================================
# GENERIC SCHEMAS
# ============================================================

class MessageResponse(BaseModel):
    message: str
    success: bool = True
