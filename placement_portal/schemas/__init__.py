"""
Schemas module - Request/Response schemas for API endpoints.

All schemas live in placement_portal.schemas.schemas.
"""
