"""WalkSession ORM model: single row per guided walk.

The whole conversation lives in the ``step_responses`` JSONB column as an
ordered list of turns, so the engine can fetch one row and rebuild the
walker without touching other tables.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID
from sqlalchemy.orm import Mapped, mapped_column

from stepwork_db.models.base import Base
from stepwork_db.models.enums import SessionStatus


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WalkSession(Base):
    """One row per walk session.

    A user may walk many times; each walk works exactly one step.
    """

    __tablename__ = "walk_sessions"

    # --- Primary key ---
    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )

    # --- Identity ---
    # Opaque user id asserted by the upstream gateway
    user_id: Mapped[str] = mapped_column(Text, nullable=False, index=True)

    # --- Lifecycle ---
    current_step: Mapped[str] = mapped_column(String(10), nullable=False)
    status: Mapped[SessionStatus] = mapped_column(
        # Store as the lowercase string value, not the Python name
        String(20),
        nullable=False,
        default=SessionStatus.IN_PROGRESS,
        index=True,
    )

    # --- Pre-walk check-in ---
    pre_walk_mood: Mapped[str | None] = mapped_column(Text, nullable=True)
    pre_walk_intention: Mapped[str | None] = mapped_column(Text, nullable=True)
    location: Mapped[str | None] = mapped_column(Text, nullable=True)
    body_need: Mapped[str | None] = mapped_column(Text, nullable=True)

    # --- Conversation ---
    # Ordered list of turns:
    # [{"question_id", "question_text", "answer_text", "timestamp",
    #   "classification": {...}, "is_follow_up"}, ...]
    step_responses: Mapped[list] = mapped_column(
        JSONB,
        nullable=False,
        default=list,
        server_default=text("'[]'::jsonb"),
    )

    # --- Completion output ---
    final_reflection: Mapped[str | None] = mapped_column(Text, nullable=True)
    encouragement_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    insights: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    # Snapshot of walker analytics taken at completion
    analytics: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    walk_duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    coins_earned: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0"),
    )

    # --- Optimistic concurrency ---
    # Bumped by SQLAlchemy on every UPDATE; a stale writer gets StaleDataError
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    # --- Timestamps ---
    started_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow,
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow,
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=False,
        default=_utcnow,
        onupdate=_utcnow,
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )

    __mapper_args__ = {"version_id_col": version}

    # --- Table-level constraints ---
    __table_args__ = (
        CheckConstraint(
            "current_step IN ('step1', 'step2', 'step3')",
            name="ck_current_step",
        ),
        CheckConstraint(
            "status IN ('in_progress', 'step_complete', 'completed')",
            name="ck_status",
        ),
        # Completed sessions must carry a completion timestamp
        CheckConstraint(
            "status != 'completed' OR completed_at IS NOT NULL",
            name="ck_completed_has_timestamp",
        ),
        CheckConstraint("coins_earned >= 0", name="ck_coins_non_negative"),
        # --- Indexes ---
        # Hot path: "most recent incomplete walk for this user"
        Index(
            "ix_incomplete_user_session",
            "user_id",
            "started_at",
            postgresql_where=text("completed_at IS NULL"),
        ),
        Index("ix_user_created", "user_id", "created_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<WalkSession(id={self.id!s}, user={self.user_id!r}, "
            f"step={self.current_step!r}, status={self.status!r}, "
            f"turns={len(self.step_responses or [])})>"
        )
