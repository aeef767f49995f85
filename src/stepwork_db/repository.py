"""Async CRUD repository for WalkSession.

All public methods accept an ``AsyncSession`` so the caller controls
transaction boundaries.  Methods flush but never commit; the server's
``get_db`` dependency commits on success and rolls back on error.

The repository avoids business-logic validation: that belongs in the
engine.  Concurrent writers are detected through the row's ``version``
column: flushing an update against a row another transaction already
changed raises ``sqlalchemy.orm.exc.StaleDataError``.
"""

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stepwork_db.models.enums import SessionStatus
from stepwork_db.models.session import WalkSession


class SessionRepository:
    """Async read/write operations on the ``walk_sessions`` table."""

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    async def create_session(
        self,
        db: AsyncSession,
        *,
        user_id: str,
        current_step: str,
        pre_walk_mood: str | None = None,
        pre_walk_intention: str | None = None,
        location: str | None = None,
        body_need: str | None = None,
    ) -> WalkSession:
        """Insert a new in-progress session row and return it."""
        session = WalkSession(
            user_id=user_id,
            current_step=current_step,
            status=SessionStatus.IN_PROGRESS,
            step_responses=[],
            pre_walk_mood=pre_walk_mood,
            pre_walk_intention=pre_walk_intention,
            location=location,
            body_need=body_need,
        )
        db.add(session)
        await db.flush()  # Populate defaults (id, timestamps, version)
        return session

    # ------------------------------------------------------------------
    # Read: single row
    # ------------------------------------------------------------------

    async def get_by_id(
        self, db: AsyncSession, session_pk: uuid.UUID
    ) -> WalkSession | None:
        """Fetch a session by its primary-key UUID."""
        return await db.get(WalkSession, session_pk)

    async def get_incomplete_session(
        self, db: AsyncSession, user_id: str
    ) -> WalkSession | None:
        """Return the user's most recently started walk that has not been
        completed, if any.
        """
        stmt = (
            select(WalkSession)
            .where(
                WalkSession.user_id == user_id,
                WalkSession.completed_at.is_(None),
            )
            .order_by(WalkSession.started_at.desc())
            .limit(1)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    # ------------------------------------------------------------------
    # Read: multiple rows / aggregates
    # ------------------------------------------------------------------

    async def list_by_user(
        self,
        db: AsyncSession,
        user_id: str,
        *,
        limit: int = 20,
        offset: int = 0,
    ) -> list[WalkSession]:
        """List sessions for a user, most recent first."""
        stmt = (
            select(WalkSession)
            .where(WalkSession.user_id == user_id)
            .order_by(WalkSession.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def total_coins(self, db: AsyncSession, user_id: str) -> int:
        """Sum of coins earned across all of a user's walks."""
        stmt = select(func.coalesce(func.sum(WalkSession.coins_earned), 0)).where(
            WalkSession.user_id == user_id,
        )
        result = await db.execute(stmt)
        return int(result.scalar_one())

    # ------------------------------------------------------------------
    # Update
    # ------------------------------------------------------------------

    async def save_responses(
        self,
        db: AsyncSession,
        session: WalkSession,
        step_responses: list[dict[str, Any]],
    ) -> WalkSession:
        """Replace the stored conversation with ``step_responses``.

        A fresh list is assigned so SQLAlchemy detects the JSONB change.
        """
        session.step_responses = list(step_responses)
        session.updated_at = datetime.now(timezone.utc)
        await db.flush()
        return session

    async def mark_step_complete(
        self, db: AsyncSession, session: WalkSession
    ) -> WalkSession:
        """Record that the walker reached the end of the step."""
        session.status = SessionStatus.STEP_COMPLETE
        session.updated_at = datetime.now(timezone.utc)
        await db.flush()
        return session

    async def complete_session(
        self,
        db: AsyncSession,
        session: WalkSession,
        *,
        final_reflection: str,
        encouragement_message: str,
        insights: list[str],
        analytics: dict[str, Any],
        walk_duration: int | None,
        coins_earned: int,
    ) -> WalkSession:
        """Mark a session as completed with its generated texts and reward.

        The CHECK constraint ``ck_completed_has_timestamp`` enforces that
        ``completed_at`` is set whenever status is completed.
        """
        now = datetime.now(timezone.utc)
        session.status = SessionStatus.COMPLETED
        session.final_reflection = final_reflection
        session.encouragement_message = encouragement_message
        session.insights = list(insights)
        session.analytics = analytics
        session.walk_duration = walk_duration
        session.coins_earned = coins_earned
        session.completed_at = now
        session.updated_at = now
        await db.flush()
        return session

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    async def delete(self, db: AsyncSession, session: WalkSession) -> None:
        """Permanently remove a session row."""
        await db.delete(session)
        await db.flush()
