"""Database connection and session management."""

from devops_insight.db.session import (
    close_db,
    create_tables,
    get_db,
    get_session_factory,
    init_db,
)

__all__ = ["get_db", "init_db", "close_db", "create_tables", "get_session_factory"]
