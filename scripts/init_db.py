#!/usr/bin/env python3
"""
Database Init Script

Creates missing tables and seeds regions, a college, a super admin and a
placement officer so the API can be tried locally.
Usage: python scripts/init_db.py
"""
import os
import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import text

from placement_portal.core.auth import hash_password
from placement_portal.db.postgres import get_db_session, init_schema

REGIONS = ["Thiruvananthapuram", "Ernakulam", "Kozhikode"]

COLLEGES = [
    {"college_code": "GPTC-TVM", "college_name": "Government Polytechnic College Thiruvananthapuram",
     "region_name": "Thiruvananthapuram"},
    {"college_code": "GPTC-EKM", "college_name": "Government Polytechnic College Kalamassery",
     "region_name": "Ernakulam"},
]

ADMIN_EMAIL = os.getenv("SEED_ADMIN_EMAIL", "admin@placement.local")
OFFICER_EMAIL = os.getenv("SEED_OFFICER_EMAIL", "officer@placement.local")
SEED_PASSWORD = os.getenv("SEED_PASSWORD", "changeme123")


def seed_regions(db):
    for name in REGIONS:
        existing = db.execute(text("SELECT region_id FROM regions WHERE region_name = :name"),
                              {"name": name}).fetchone()
        if not existing:
            db.execute(text("INSERT INTO regions (region_name) VALUES (:name)"), {"name": name})
    print("✅ Regions seeded")


def seed_colleges(db):
    for c in COLLEGES:
        existing = db.execute(text("SELECT college_id FROM colleges WHERE college_code = :code"),
                              {"code": c["college_code"]}).fetchone()
        if not existing:
            db.execute(
                text("""
                    INSERT INTO colleges (college_name, college_code, region_id)
                    SELECT :name, :code, region_id FROM regions WHERE region_name = :region
                """),
                {"name": c["college_name"], "code": c["college_code"], "region": c["region_name"]}
            )
    print("✅ Colleges seeded")


def seed_user(db, email: str, role: str) -> int:
    row = db.execute(text("SELECT user_id FROM users WHERE email = :email"), {"email": email}).fetchone()
    if row:
        return row[0]
    return db.execute(
        text("""
            INSERT INTO users (email, password_hash, role, is_active)
            VALUES (:email, :hash, :role, TRUE) RETURNING user_id
        """),
        {"email": email, "hash": hash_password(SEED_PASSWORD), "role": role}
    ).scalar()


def seed_accounts(db):
    seed_user(db, ADMIN_EMAIL, "super_admin")
    officer_user = seed_user(db, OFFICER_EMAIL, "placement_officer")
    existing = db.execute(text("SELECT officer_id FROM placement_officers WHERE user_id = :id"),
                          {"id": officer_user}).fetchone()
    if not existing:
        db.execute(
            text("""
                INSERT INTO placement_officers (user_id, college_id, officer_name)
                SELECT :uid, college_id, 'Placement Officer' FROM colleges WHERE college_code = :code
            """),
            {"uid": officer_user, "code": COLLEGES[0]["college_code"]}
        )
    print(f"✅ Accounts seeded ({ADMIN_EMAIL}, {OFFICER_EMAIL})")


def main():
    init_schema()
    print("✅ Tables verified")
    with get_db_session() as db:
        seed_regions(db)
        seed_colleges(db)
        seed_accounts(db)


if __name__ == "__main__":
    main()
