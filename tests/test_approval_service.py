import pytest

from placement_portal.core.exceptions import (
    AuthorizationError, NotFoundError, PartialBatchFailure, ValidationError
)
from placement_portal.services import approval_service
from placement_portal.services.activity_service import list_activity_logs


@pytest.fixture
def pending(factory, campus):
    return factory.student(campus["college_a"], campus["north"], prn="PEND")


@pytest.fixture
def approved(factory, campus):
    return factory.student(campus["college_a"], campus["north"], prn="APPR", registration_status="approved")


def action_types():
    return [log["action_type"] for log in list_activity_logs(1, 100)["data"]]


# ============================================================
# Approve / reject
# ============================================================

def test_officer_approves_pending_student(factory, campus, pending):
    approval_service.approve_student(pending, campus["officer"])

    student = factory.get_student(pending)
    assert student["registration_status"] == "approved"
    assert student["approved_by"] == campus["officer"]["user_id"]
    assert action_types() == ["APPROVE_STUDENT"]


def test_reject_records_reason(factory, campus, pending):
    approval_service.reject_student(pending, "  Incomplete documents ", campus["officer"])

    student = factory.get_student(pending)
    assert student["registration_status"] == "rejected"
    assert student["rejection_reason"] == "Incomplete documents"


@pytest.mark.parametrize("reason", [None, "", "   "])
def test_reject_requires_reason(campus, pending, reason):
    with pytest.raises(ValidationError, match="reason is required"):
        approval_service.reject_student(pending, reason, campus["officer"])


def test_only_pending_students_can_be_approved(campus, approved):
    with pytest.raises(ValidationError, match="Only pending"):
        approval_service.approve_student(approved, campus["officer"])


def test_unknown_student_is_not_found(campus):
    with pytest.raises(NotFoundError):
        approval_service.approve_student(999999, campus["admin"])


def test_officer_cannot_act_on_other_college(factory, campus):
    other = factory.student(campus["college_b"], campus["south"])

    with pytest.raises(AuthorizationError):
        approval_service.approve_student(other, campus["officer"])
    assert factory.get_student(other)["registration_status"] == "pending"


def test_super_admin_is_not_college_scoped(factory, campus):
    other = factory.student(campus["college_b"], campus["south"])
    approval_service.approve_student(other, campus["admin"])
    assert factory.get_student(other)["registration_status"] == "approved"


# ============================================================
# Bulk
# ============================================================

def test_bulk_approve_all_succeed(factory, campus):
    ids = [factory.student(campus["college_a"], campus["north"]) for _ in range(3)]

    assert approval_service.bulk_update_status(ids, "approve", campus["officer"]) == ids
    assert action_types() == ["BULK_APPROVE_STUDENTS"]


def test_bulk_approve_reports_partial_failure(factory, campus, pending, approved):
    other_college = factory.student(campus["college_b"], campus["south"])

    with pytest.raises(PartialBatchFailure) as exc_info:
        approval_service.bulk_update_status([pending, approved, other_college, 424242], "approve",
                                            campus["officer"])

    error = exc_info.value
    assert error.succeeded == [pending]
    assert [f["student_id"] for f in error.failed] == [approved, other_college, 424242]
    # Successful items stay applied
    assert factory.get_student(pending)["registration_status"] == "approved"


def test_bulk_reject_requires_reason(campus, pending):
    with pytest.raises(ValidationError):
        approval_service.bulk_update_status([pending], "reject", campus["officer"])
    with pytest.raises(ValidationError):
        approval_service.bulk_update_status([pending], "archive", campus["officer"], "x")


# ============================================================
# Blacklist / whitelist
# ============================================================

def test_blacklist_requires_approved_student(campus, pending):
    with pytest.raises(ValidationError, match="Only approved"):
        approval_service.blacklist_student(pending, "Misconduct", campus["officer"])


def test_blacklist_twice_is_rejected(campus, approved):
    approval_service.blacklist_student(approved, "Misconduct", campus["officer"])
    with pytest.raises(ValidationError, match="already blacklisted"):
        approval_service.blacklist_student(approved, "Again", campus["officer"])


def test_whitelist_request_review_clears_blacklist(factory, campus, approved):
    approval_service.blacklist_student(approved, "Skipped drive", campus["officer"])
    request_id = approval_service.request_whitelist(approved, "Medical reasons", campus["officer"])

    with pytest.raises(ValidationError, match="already pending"):
        approval_service.request_whitelist(approved, "Again", campus["officer"])

    pending_requests = approval_service.list_whitelist_requests("pending", college_scope=campus["college_a"])
    assert [r["request_id"] for r in pending_requests] == [request_id]

    result = approval_service.review_whitelist_request(request_id, True, campus["admin"])
    assert result["status"] == "approved"

    student = factory.get_student(approved)
    assert not student["is_blacklisted"]
    assert student["blacklist_reason"] is None
    assert student["registration_status"] == "approved"

    with pytest.raises(ValidationError, match="already approved"):
        approval_service.review_whitelist_request(request_id, False, campus["admin"], "Too late")


def test_rejecting_whitelist_request_needs_comment_and_keeps_blacklist(factory, campus, approved):
    approval_service.blacklist_student(approved, "Skipped drive", campus["officer"])
    request_id = approval_service.request_whitelist(approved, "Please reconsider", campus["officer"])

    with pytest.raises(ValidationError):
        approval_service.review_whitelist_request(request_id, False, campus["admin"])

    approval_service.review_whitelist_request(request_id, False, campus["admin"], "Repeated offence")
    assert factory.get_student(approved)["is_blacklisted"]


def test_whitelist_request_only_for_blacklisted(campus, approved):
    with pytest.raises(ValidationError, match="not blacklisted"):
        approval_service.request_whitelist(approved, "Reason", campus["officer"])


def test_direct_whitelist_closes_open_requests(factory, campus, approved):
    approval_service.blacklist_student(approved, "Skipped drive", campus["admin"])
    approval_service.request_whitelist(approved, "Medical reasons", campus["officer"])

    approval_service.whitelist_student(approved, campus["admin"])

    assert not factory.get_student(approved)["is_blacklisted"]
    assert approval_service.list_whitelist_requests("pending") == []
    assert action_types()[0] == "WHITELIST_STUDENT"


def test_blacklist_update_is_guarded_against_stale_reads(factory, campus, approved, monkeypatch):
    snapshot = approval_service._load_student
    factory.set_student(approved, is_blacklisted=True, blacklist_reason="Earlier")

    def stale_load(db, student_id):
        student = snapshot(db, student_id)
        student["is_blacklisted"] = False
        return student

    monkeypatch.setattr(approval_service, "_load_student", stale_load)

    with pytest.raises(ValidationError, match="changed by another request"):
        approval_service.blacklist_student(approved, "Misconduct", campus["admin"])
    assert factory.get_student(approved)["blacklist_reason"] == "Earlier"
