"""
Database module - SQLAlchemy engine, sessions and table metadata.
"""
from placement_portal.db.postgres import get_db_session, execute_raw_sql, check_database_connection

__all__ = [
    "get_db_session",
    "execute_raw_sql",
    "check_database_connection",
]
