"""
Campus Placement Portal - Main Application

FastAPI backend with:
- PostgreSQL for students, colleges, jobs and the audit trail
- JWT authentication for students, placement officers and super admins
- Student filtering shared by listings and CSV / Excel / PDF exports

Run: uvicorn placement_portal.main:app --reload
"""

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from placement_portal.api.routes import api_router
from placement_portal.core.config import get_settings
from placement_portal.core.exceptions import register_exception_handlers
from placement_portal.db.postgres import check_database_connection

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Campus Placement Portal",
    description="""
    Role-based backend for campus placements.

    ## Features
    - **Students**: Registration, profile with derived CGPA / backlogs, eligible jobs
    - **Placement Officers**: Filter, export, approve, reject and blacklist their college's students;
      request jobs and whitelisting
    - **Super Admins**: Cross-college listing and exports, whitelisting, job request review,
      activity logs
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Total-Count", "X-Exported-Count", "X-Export-Truncated"],
)

register_exception_handlers(app)

# Include API routes
app.include_router(api_router, prefix="/api")


@app.on_event("startup")
async def startup_event():
    if check_database_connection():
        logger.info("Database connection established")
    else:
        logger.warning("Database is not reachable; requests will fail until it is")


@app.get("/health", tags=["Health"])
async def health_check():
    """Detailed health check."""
    return {
        "status": "healthy",
        "database": "connected" if check_database_connection() else "disconnected",
    }
