import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from placement_portal.core.config import get_settings
from placement_portal.core.exceptions import InfrastructureError

logger = logging.getLogger(__name__)

settings = get_settings()


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        # Single shared connection so an in-memory database survives across sessions
        return {"poolclass": StaticPool, "connect_args": {"check_same_thread": False}}
    # pool_size=5: maintain 5 connections ready
    # max_overflow=10: allow 10 extra connections under load
    return {"pool_size": 5, "max_overflow": 10, "pool_pre_ping": True}


engine = create_engine(
    settings.sqlalchemy_url,
    echo=settings.debug,  # Log SQL queries in debug mode
    **_engine_kwargs(settings.sqlalchemy_url)
)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def get_db_session():
    """
    Context manager for database sessions.
    Usage:
        with get_db_session() as db:
            db.execute(text("SELECT * FROM users"))

    Database failures are rolled back and re-raised as InfrastructureError.
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except SQLAlchemyError as e:
        session.rollback()
        logger.exception("Database operation failed")
        raise InfrastructureError("Database operation failed") from e
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def check_database_connection() -> bool:
    """
    Check if the database is reachable.
    Returns True if connection successful, False otherwise.
    """
    try:
        with get_db_session() as db:
            result = db.execute(text("SELECT 1 as ok"))
            row = result.fetchone()
            return row[0] == 1
    except InfrastructureError:
        return False


def execute_raw_sql(sql, params: dict = None) -> list:
    """
    Execute raw SQL and return results as list of dicts.
    Accepts a SQL string or a prepared text() clause (with typed bind params).
    """
    statement = text(sql) if isinstance(sql, str) else sql
    with get_db_session() as db:
        result = db.execute(statement, params or {})
        return [dict(row) for row in result.mappings().fetchall()]


def init_schema() -> None:
    """Create any missing tables from the table metadata."""
    from placement_portal.db.tables import metadata
    try:
        metadata.create_all(engine)
    except SQLAlchemyError as e:
        logger.exception("Schema creation failed")
        raise InfrastructureError("Schema creation failed") from e
