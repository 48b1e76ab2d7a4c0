import pytest

from conftest import PASSWORD
from placement_portal.core.auth import create_access_token


@pytest.fixture
def registration(campus):
    return {
        "prn": "TVM2026001",
        "student_name": "Anu Joseph",
        "email": "anu@example.com",
        "password": "s3cret-pass",
        "branch": "Computer Engineering",
        "college_id": campus["college_a"],
        "date_of_birth": "2004-05-17",
        "district": "Kollam",
    }


def test_register_creates_pending_student(client, campus, registration):
    response = client.post("/api/auth/register", json=registration)
    assert response.status_code == 201

    pending = client.get("/api/placement-officer/students", params={"status": "pending"},
                         headers=campus["officer"]["headers"]).json()
    [student] = pending["data"]
    assert student["prn"] == "TVM2026001"
    assert student["region_name"] == "North"


def test_register_duplicate_email_is_400(client, registration):
    client.post("/api/auth/register", json=registration)
    duplicate = client.post("/api/auth/register", json={**registration, "prn": "OTHER001"})

    assert duplicate.status_code == 400
    assert duplicate.json()["message"] == "Email already registered"


def test_register_unknown_college_is_400(client, registration):
    response = client.post("/api/auth/register", json={**registration, "college_id": 424242})
    assert response.status_code == 400


def test_login_and_me(client, registration):
    client.post("/api/auth/register", json=registration)

    login = client.post("/api/auth/login", json={"email": "anu@example.com", "password": "s3cret-pass"})
    assert login.status_code == 200
    token = login.json()["access_token"]
    assert login.json()["role"] == "student"

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["email"] == "anu@example.com"


def test_login_wrong_password_is_401(client, campus):
    user_id = campus["admin"]["user_id"]
    me = client.get("/api/auth/me", headers=campus["admin"]["headers"]).json()
    assert me["user_id"] == user_id

    assert client.post("/api/auth/login", json={"email": me["email"], "password": PASSWORD}).status_code == 200
    assert client.post("/api/auth/login", json={"email": me["email"], "password": "wrong"}).status_code == 401


def test_invalid_token_is_401(client):
    response = client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


@pytest.mark.parametrize("claims", [{"sub": "abc", "role": "student"}, {"role": "student"}])
def test_token_without_numeric_subject_is_401(client, claims):
    token = create_access_token(claims)
    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_deactivated_account_is_403(client, factory, campus):
    student_id = factory.student(campus["college_a"], campus["north"], is_active=False)
    response = client.get("/api/students/profile", headers=factory.student_headers(student_id))
    assert response.status_code == 403
