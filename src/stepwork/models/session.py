"""Session and turn models: the contract between the walker, the engine and API callers.

These models are intentionally decoupled from the ORM models in
``stepwork_db`` so that API consumers never see database internals.

  - ``Classification`` / ``ConversationTurn``: one answered question, as
    persisted in the session's ``step_responses`` JSON list
  - ``TurnResult``: what ``SessionWalker.process_answer`` returns
  - ``Analytics``: running counts derived from the history
  - ``StartSessionResult`` / ``AnswerResult`` / ``CompletionResult``: engine
    outputs returned by the HTTP layer as-is
"""

from datetime import datetime, timezone
from typing import Optional

from pydantic import Field

from stepwork.models.base import CamelModel
from stepwork.models.question import PresentedQuestion


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Classification(CamelModel):
    """Heuristic signals attached to one answer.

    ``is_vague`` (the "red flag") and ``safety_concern`` are kept separate:
    the former prompts a follow-up in the UI, the latter marks crisis
    language on a safety-flagged question.
    """

    is_vague: bool = False
    is_breakthrough: bool = False
    safety_concern: bool = False


class ConversationTurn(CamelModel):
    """One answered question.  Appended to history, never edited."""

    question_id: str
    question_text: str
    answer_text: str
    timestamp: datetime = Field(default_factory=_utcnow)
    classification: Classification = Field(default_factory=Classification)
    is_follow_up: bool = False


class Analytics(CamelModel):
    """Running session statistics, derived purely from the history."""

    questions_completed: int
    breakthrough_moments: int
    red_flags_encountered: int
    current_phase: str | None = None
    step_worked: str


class TurnResult(CamelModel):
    """Outcome of processing one answer."""

    next_question: Optional[PresentedQuestion] = None
    has_red_flags: bool
    is_breakthrough: bool
    should_complete: bool
    safety_concern: bool = False
    # Plain follow-up prompt for the answered question, only after a vague answer
    follow_up_prompt: str | None = None


class AnswerResult(TurnResult):
    """Engine response for an answer submission: the turn plus analytics."""

    analytics: Analytics


class SessionInfo(CamelModel):
    """Public view of a walk session for listings."""

    session_id: str
    user_id: str
    step: str
    status: str
    questions_completed: int
    started_at: datetime
    updated_at: datetime
    completed_at: datetime | None = None


class SessionDetail(SessionInfo):
    """Full session view including the conversation history."""

    pre_walk_mood: str | None = None
    pre_walk_intention: str | None = None
    location: str | None = None
    body_need: str | None = None
    conversation_history: list[ConversationTurn] = Field(default_factory=list)
    final_reflection: str | None = None
    encouragement_message: str | None = None
    insights: list[str] | None = None
    coins_earned: int = 0


class StartSessionResult(CamelModel):
    """Response for starting (or resuming) a walk session."""

    session_id: str
    step: str
    initial_question: Optional[PresentedQuestion] = None
    conversation_history: list[ConversationTurn] = Field(default_factory=list)
    is_resumed: bool = False


class IncompleteSessionCheck(CamelModel):
    """Response for checking whether a resumable session exists."""

    has_incomplete_session: bool
    session: SessionDetail | None = None


class CompletionResult(CamelModel):
    """Response for completing a walk session."""

    reflection: str
    encouragement: str
    insights: list[str] = Field(default_factory=list)
    coins_earned: int = 0
    total_coins: int = 0
    analytics: Analytics
    location: str | None = None
    body_need: str | None = None
    already_completed: bool = False
