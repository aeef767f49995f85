"""Walk endpoints: submit answers and complete the walk.

``POST /sessions/answer`` advances the Session Walker by one answer.
``POST /sessions/{session_id}/complete`` closes the walk with a reflection,
encouragement, insights and coins; it may be called before the walker
reaches the end of the step and is idempotent once completed.
"""

from fastapi import APIRouter, Depends
from pydantic import Field
from sqlalchemy.ext.asyncio import AsyncSession

from stepwork.engine import StepWorkEngine
from stepwork.models.base import CamelModel
from stepwork.models.session import AnswerResult, CompletionResult

from stepwork_server.dependencies import get_db, get_user_id, get_walk_engine

router = APIRouter(tags=["steps"])


# ------------------------------------------------------------------
# Request models
# ------------------------------------------------------------------

class SubmitAnswerRequest(CamelModel):
    """Body for POST /sessions/answer."""
    session_id: str
    answer: str


class CompleteSessionRequest(CamelModel):
    """Body for POST /sessions/{session_id}/complete.

    ``walk_duration`` is in whole minutes.
    """
    walk_duration: int | None = Field(None, ge=0)


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

@router.post("/sessions/answer")
async def submit_answer(
    body: SubmitAnswerRequest,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    engine: StepWorkEngine = Depends(get_walk_engine),
) -> AnswerResult:
    """Submit the answer to the current question.

    Raises 400 for a blank answer, 404/403 for an unknown or foreign
    session, and 409 when the step is already complete or a concurrent
    answer to the same session won the race.
    """
    return await engine.submit_answer(
        db, user_id=user_id, session_id=body.session_id, answer=body.answer,
    )


@router.post("/sessions/{session_id}/complete")
async def complete_session(
    session_id: str,
    body: CompleteSessionRequest | None = None,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    engine: StepWorkEngine = Depends(get_walk_engine),
) -> CompletionResult:
    """Complete the walk and award coins for its duration."""
    walk_duration = body.walk_duration if body is not None else None
    return await engine.complete_session(
        db, user_id=user_id, session_id=session_id, walk_duration=walk_duration,
    )
