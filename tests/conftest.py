# tests/conftest.py
import os

# Point the app at an in-memory database before anything reads the settings
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("JWT_SECRET_KEY", "test-secret")

from datetime import date, datetime, timedelta
from itertools import count

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import insert, update

from placement_portal.core.auth import create_access_token, hash_password
from placement_portal.db import tables
from placement_portal.db.postgres import engine
from placement_portal.main import app

PASSWORD = "password123"
PASSWORD_HASH = hash_password(PASSWORD)


@pytest.fixture(scope="session", autouse=True)
def _schema():
    tables.metadata.create_all(engine)
    yield
    tables.metadata.drop_all(engine)


@pytest.fixture(autouse=True)
def _clean_tables():
    yield
    with engine.begin() as conn:
        for table in reversed(tables.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture
def client():
    return TestClient(app)


class Factory:
    """Inserts rows straight through the table metadata."""

    def __init__(self):
        self._seq = count(1)
        self._base_time = datetime(2026, 1, 1, 9, 0, 0)

    def _insert(self, table, **values) -> int:
        with engine.begin() as conn:
            return conn.execute(insert(table).values(**values)).inserted_primary_key[0]

    def region(self, name: str = None) -> int:
        return self._insert(tables.regions, region_name=name or f"Region {next(self._seq)}")

    def college(self, region_id: int, name: str = None) -> int:
        n = next(self._seq)
        return self._insert(tables.colleges, college_name=name or f"College {n}",
                            college_code=f"C{n:03d}", region_id=region_id)

    def user(self, role: str, email: str = None, is_active: bool = True) -> int:
        n = next(self._seq)
        return self._insert(tables.users, email=email or f"{role}{n}@example.com",
                            password_hash=PASSWORD_HASH, role=role, is_active=is_active)

    def token(self, user_id: int, role: str) -> dict:
        token = create_access_token({"sub": str(user_id), "role": role})
        return {"Authorization": f"Bearer {token}"}

    def officer(self, college_id: int) -> dict:
        user_id = self.user("placement_officer")
        officer_id = self._insert(tables.placement_officers, user_id=user_id, college_id=college_id,
                                  officer_name="Officer")
        return {"user_id": user_id, "officer_id": officer_id, "college_id": college_id,
                "role": "placement_officer", "headers": self.token(user_id, "placement_officer")}

    def admin(self) -> dict:
        user_id = self.user("super_admin")
        return {"user_id": user_id, "role": "super_admin", "headers": self.token(user_id, "super_admin")}

    def student(self, college_id: int, region_id: int, is_active: bool = True, **overrides) -> int:
        n = next(self._seq)
        user_id = self.user("student", email=f"student{n}@example.com", is_active=is_active)
        values = {
            "user_id": user_id,
            "prn": f"PRN{n:04d}",
            "student_name": f"Student {n}",
            "email": f"student{n}@example.com",
            "mobile_number": f"98470{n:05d}",
            "date_of_birth": date(2003, 1, 1),
            "gender": "Female",
            "height": 165.0,
            "weight": 55.0,
            "branch": "Computer Engineering",
            "college_id": college_id,
            "region_id": region_id,
            "district": "Ernakulam",
            "programme_cgpa": 7.5,
            "backlog_count": 0,
            "registration_status": "pending",
            "is_blacklisted": False,
            # Strictly increasing so newest-first ordering is predictable
            "created_at": self._base_time + timedelta(minutes=n),
            "updated_at": self._base_time + timedelta(minutes=n),
        }
        values.update(overrides)
        return self._insert(tables.students, **values)

    def student_headers(self, student_id: int) -> dict:
        with engine.connect() as conn:
            user_id = conn.execute(
                tables.students.select().with_only_columns(tables.students.c.user_id)
                .where(tables.students.c.student_id == student_id)
            ).scalar()
        return self.token(user_id, "student")

    def set_student(self, student_id: int, **values) -> None:
        with engine.begin() as conn:
            conn.execute(update(tables.students).where(tables.students.c.student_id == student_id).values(**values))

    def get_student(self, student_id: int) -> dict:
        with engine.connect() as conn:
            row = conn.execute(
                tables.students.select().where(tables.students.c.student_id == student_id)
            ).mappings().fetchone()
        return dict(row)


@pytest.fixture
def factory():
    return Factory()


@pytest.fixture
def campus(factory):
    """Two regions with one college each, an officer for the first college and a super admin."""
    north = factory.region("North")
    south = factory.region("South")
    college_a = factory.college(north, "Alpha Polytechnic")
    college_b = factory.college(south, "Beta Polytechnic")
    return {
        "north": north,
        "south": south,
        "college_a": college_a,
        "college_b": college_b,
        "officer": factory.officer(college_a),
        "admin": factory.admin(),
    }
