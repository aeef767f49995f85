"""ORM models for stepwork_db."""

from stepwork_db.models.base import Base
from stepwork_db.models.enums import SessionStatus
from stepwork_db.models.session import WalkSession

__all__ = ["Base", "SessionStatus", "WalkSession"]
