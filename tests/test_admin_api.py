import io

import pytest
from openpyxl import load_workbook

from placement_portal.schemas.schemas import JobCreate
from placement_portal.services.job_service import apply_to_job, create_job

BASE = "/api/super-admin"


@pytest.fixture
def students(factory, campus):
    return {
        "A": factory.student(campus["college_a"], campus["north"], prn="A", registration_status="approved"),
        "X": factory.student(campus["college_b"], campus["south"], prn="X", registration_status="approved"),
    }


def test_admin_lists_every_college(client, campus, students):
    body = client.get(f"{BASE}/students", headers=campus["admin"]["headers"]).json()
    assert {s["prn"] for s in body["data"]} == {"A", "X"}

    by_college = client.get(f"{BASE}/students", params={"college_id": campus["college_b"]},
                            headers=campus["admin"]["headers"]).json()
    assert [s["prn"] for s in by_college["data"]] == ["X"]


def test_admin_excel_export(client, campus, students):
    response = client.get(f"{BASE}/students/export?fields=prn,college_name", headers=campus["admin"]["headers"])

    assert response.status_code == 200
    assert response.headers["content-disposition"].endswith('.xlsx"')
    sheet = load_workbook(io.BytesIO(response.content)).active
    assert [[c.value for c in row] for row in sheet.iter_rows()] == [
        ["PRN", "College"], ["A", "Alpha Polytechnic"], ["X", "Beta Polytechnic"]
    ]


def test_blacklist_then_whitelist(client, factory, campus, students):
    headers = campus["admin"]["headers"]
    client.post(f"{BASE}/students/{students['X']}/blacklist", json={"reason": "No show"}, headers=headers)
    assert factory.get_student(students["X"])["is_blacklisted"]

    blacklisted = client.get(f"{BASE}/students?status=blacklisted", headers=headers).json()
    assert [s["prn"] for s in blacklisted["data"]] == ["X"]

    response = client.post(f"{BASE}/students/{students['X']}/whitelist", headers=headers)
    assert response.status_code == 200
    assert not factory.get_student(students["X"])["is_blacklisted"]


def test_review_whitelist_requests(client, campus, students):
    officer_headers = campus["officer"]["headers"]
    headers = campus["admin"]["headers"]
    client.post(f"/api/placement-officer/students/{students['A']}/blacklist", json={"reason": "No show"},
                headers=officer_headers)
    client.post(f"/api/placement-officer/students/{students['A']}/whitelist-request",
                json={"reason": "Medical"}, headers=officer_headers)

    [request] = client.get(f"{BASE}/whitelist-requests?status=pending", headers=headers).json()

    missing_comment = client.post(f"{BASE}/whitelist-requests/{request['request_id']}/reject", json={},
                                  headers=headers)
    assert missing_comment.status_code == 400

    approved = client.post(f"{BASE}/whitelist-requests/{request['request_id']}/approve", headers=headers)
    assert approved.status_code == 200
    assert client.get(f"{BASE}/whitelist-requests?status=pending", headers=headers).json() == []


def test_job_request_review_flow(client, campus):
    payload = {"company_name": "Acme Corp", "job_title": "Trainee", "target_type": "all"}
    created = client.post("/api/placement-officer/job-requests", json=payload,
                          headers=campus["officer"]["headers"]).json()
    assert created["status"] == "pending"

    headers = campus["admin"]["headers"]
    [pending] = client.get(f"{BASE}/job-requests?status=pending", headers=headers).json()
    approved = client.post(f"{BASE}/job-requests/{pending['request_id']}/approve", headers=headers).json()

    jobs = client.get(f"{BASE}/jobs", headers=headers).json()
    assert [j["job_id"] for j in jobs] == [approved["job_id"]]

    again = client.post(f"{BASE}/job-requests/{pending['request_id']}/reject", json={"comment": "x"},
                        headers=headers)
    assert again.status_code == 404


def test_create_and_toggle_job(client, campus):
    headers = campus["admin"]["headers"]
    payload = {"company_name": "North Ltd", "job_title": "Trainee", "target_type": "region",
               "target_region_ids": [campus["north"]]}
    job = client.post(f"{BASE}/jobs", json=payload, headers=headers)
    assert job.status_code == 201
    assert job.json()["target_region_ids"] == [campus["north"]]

    toggled = client.post(f"{BASE}/jobs/{job.json()['job_id']}/toggle", headers=headers).json()
    assert toggled["is_active"] is False


def test_job_without_targets_is_400(client, campus):
    payload = {"company_name": "North Ltd", "job_title": "Trainee", "target_type": "college"}
    response = client.post(f"{BASE}/jobs", json=payload, headers=campus["admin"]["headers"])
    assert response.status_code == 400


def test_activity_logs_endpoint(client, campus, students):
    headers = campus["admin"]["headers"]
    client.post(f"{BASE}/students/{students['A']}/blacklist", json={"reason": "No show"}, headers=headers)
    client.get(f"{BASE}/students/export?format=csv", headers=headers)

    body = client.get(f"{BASE}/activity-logs", params={"limit": 1}, headers=headers).json()
    assert body["total"] == 2
    assert body["totalPages"] == 2
    assert body["data"][0]["action_type"] == "EXPORT_STUDENTS"
    assert body["data"][0]["user_id"] == campus["admin"]["user_id"]

    filtered = client.get(f"{BASE}/activity-logs", params={"action_type": "BLACKLIST_STUDENT"},
                          headers=headers).json()
    assert filtered["data"][0]["details"] == {"reason": "No show"}


def test_officer_cannot_use_admin_routes(client, campus):
    assert client.get(f"{BASE}/activity-logs", headers=campus["officer"]["headers"]).status_code == 403


def test_admin_sees_applicants_from_every_college(client, campus, students):
    job = create_job(JobCreate(company_name="Open Ltd", job_title="Trainee"), campus["admin"])
    for student_id in students.values():
        apply_to_job(job["job_id"], {"student_id": student_id, "user_id": None})

    response = client.get(f"{BASE}/jobs/{job['job_id']}/applicants", headers=campus["admin"]["headers"])

    assert response.status_code == 200
    assert [(a["college_name"], a["prn"]) for a in response.json()] == [
        ("Alpha Polytechnic", "A"), ("Beta Polytechnic", "X")
    ]


def test_admin_dashboard_counts_every_college(client, factory, campus, students):
    factory.student(campus["college_b"], campus["south"], prn="R", registration_status="rejected")
    factory.set_student(students["X"], is_blacklisted=True, blacklist_reason="No show")

    body = client.get(f"{BASE}/dashboard", headers=campus["admin"]["headers"]).json()

    assert body["total_students"] == 3
    assert (body["pending"], body["approved"], body["rejected"], body["blacklisted"]) == (0, 1, 1, 1)
