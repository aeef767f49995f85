"""Session management endpoints: start/resume, get, list, delete walks.

All endpoints require the ``X-User-ID`` header for user identification.
A session is addressed by its UUID; sessions owned by another user are
rejected with 403.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from stepwork.engine import StepWorkEngine
from stepwork.models.base import CamelModel
from stepwork.models.session import (
    IncompleteSessionCheck,
    SessionDetail,
    SessionInfo,
    StartSessionResult,
)

from stepwork_server.config import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from stepwork_server.dependencies import get_db, get_user_id, get_walk_engine

router = APIRouter(tags=["sessions"])


# ------------------------------------------------------------------
# Request models
# ------------------------------------------------------------------

class StartSessionRequest(CamelModel):
    """Body for POST /sessions/start.

    ``step`` is validated by the engine so an unsupported value maps to
    the same 400 as any other invalid step.
    """
    step: str
    pre_walk_mood: str | None = None
    pre_walk_intention: str | None = None
    location: str | None = None
    body_need: str | None = None
    resume_session: bool = False


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

@router.post("/sessions/start")
async def start_session(
    body: StartSessionRequest,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    engine: StepWorkEngine = Depends(get_walk_engine),
) -> StartSessionResult:
    """Start a new walk, or resume the latest incomplete one.

    Raises 400 for an unsupported step.
    """
    return await engine.start_session(
        db,
        user_id=user_id,
        step=body.step,
        pre_walk_mood=body.pre_walk_mood,
        pre_walk_intention=body.pre_walk_intention,
        location=body.location,
        body_need=body.body_need,
        resume_session=body.resume_session,
    )


@router.get("/sessions/start")
async def check_incomplete_session(
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    engine: StepWorkEngine = Depends(get_walk_engine),
) -> IncompleteSessionCheck:
    """Report whether the caller has a walk that can be resumed."""
    return await engine.check_incomplete_session(db, user_id=user_id)


@router.get("/sessions/{session_id}")
async def get_session(
    session_id: str,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    engine: StepWorkEngine = Depends(get_walk_engine),
) -> SessionDetail:
    """Get a session with its full conversation history.

    Raises 404 if the session does not exist, 403 if it is not the caller's.
    """
    return await engine.get_session(db, user_id=user_id, session_id=session_id)


@router.delete("/sessions/{session_id}", status_code=204)
async def delete_session(
    session_id: str,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    engine: StepWorkEngine = Depends(get_walk_engine),
) -> None:
    """Permanently delete a session from the caller's history."""
    await engine.delete_session(db, user_id=user_id, session_id=session_id)


@router.get("/sessions")
async def list_sessions(
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    engine: StepWorkEngine = Depends(get_walk_engine),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    offset: int = Query(0, ge=0),
) -> list[SessionInfo]:
    """List sessions for the current user, most recent first."""
    return await engine.list_sessions(
        db, user_id=user_id, limit=limit, offset=offset,
    )
