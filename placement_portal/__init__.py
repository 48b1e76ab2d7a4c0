"""
Campus Placement Portal
Role-based placement backend for students, placement officers and super admins.

Architecture:
- PostgreSQL: students, colleges, regions, jobs, requests, activity logs
- FastAPI routers per role, services for filtering, exports and workflows
"""

__version__ = "1.0.0"
