"""Database module for calendar mirror.

This module provides:
- SQLAlchemy async database connection
- User and Webhook models
- Encrypted storage for OAuth tokens
"""

from calendar_mirror.database.connection import (
    close_db,
    create_tables,
    get_db,
    get_db_session,
    init_db,
)
from calendar_mirror.database.models import Base, User, Webhook

__all__ = [
    # Connection
    "get_db",
    "get_db_session",
    "init_db",
    "close_db",
    "create_tables",
    # Models
    "Base",
    "User",
    "Webhook",
]
