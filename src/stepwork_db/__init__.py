"""stepwork_db: PostgreSQL persistence layer for walk sessions.

This package provides the ORM model, async engine factory, and repository
for creating, updating, and querying walk sessions.  It is consumed by the
step-work engine and the FastAPI server.
"""

from stepwork_db.models.session import WalkSession
from stepwork_db.models.enums import SessionStatus
from stepwork_db.engine import get_engine, get_session_factory
from stepwork_db.repository import SessionRepository

__all__ = [
    "WalkSession",
    "SessionStatus",
    "get_engine",
    "get_session_factory",
    "SessionRepository",
]
