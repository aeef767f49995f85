"""StepWorkEngine: async orchestration of walk sessions over the database.

The engine is **stateless**: every public method loads the session row,
rebuilds a :class:`SessionWalker` from its stored history, performs one
operation, flushes, and returns.  No walker is kept in memory between
requests, so any server replica can serve any request.

Transaction boundaries belong to the caller.  The engine flushes through
``SessionRepository`` but never commits; the server's ``get_db``
dependency commits on success and rolls back on any exception.

Session lifecycle::

    start_session ──► submit_answer* ──► (step_complete) ──► complete_session
                            │                                      ▲
                            └────────── user ends early ───────────┘

Usage::

    store = QuestionScriptStore()
    store.load()
    engine = StepWorkEngine(store, reflector=OpenAIReflectionGenerator("gpt-4o-mini"))

    started = await engine.start_session(db, user_id="u1", step="step1")
    result = await engine.submit_answer(
        db, user_id="u1", session_id=started.session_id,
        answer="I realize I've been hiding this for years",
    )
    done = await engine.complete_session(
        db, user_id="u1", session_id=started.session_id, walk_duration=25,
    )
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Awaitable, Callable, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from stepwork_db.models.enums import SessionStatus
from stepwork_db.models.session import WalkSession
from stepwork_db.repository import SessionRepository

from stepwork.classifier import AnswerClassifier
from stepwork.constants import (
    COINS_PER_MINUTE,
    FALLBACK_ENCOURAGEMENT,
    FALLBACK_REFLECTION,
    MIN_COINS_PER_WALK,
)
from stepwork.exceptions import SessionForbidden, SessionNotFound, StepAlreadyComplete
from stepwork.interfaces import ReflectionGenerator
from stepwork.models.question import Step
from stepwork.models.session import (
    Analytics,
    AnswerResult,
    CompletionResult,
    ConversationTurn,
    IncompleteSessionCheck,
    SessionDetail,
    SessionInfo,
    StartSessionResult,
)
from stepwork.script import QuestionScriptStore
from stepwork.walker import SessionWalker

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Fallback insights quote at most this many breakthrough answers
_MAX_FALLBACK_INSIGHTS = 3


class StepWorkEngine:
    """Runs walk sessions: start, answer, inspect, complete, delete.

    Args:
        store: a loaded :class:`QuestionScriptStore`
        classifier: answer classifier handed to every walker; ``None`` uses
            the walker's default heuristic classifier
        reflector: text-generation collaborator used at completion; ``None``
            means completion always uses the pre-written fallback texts
        generation_timeout: seconds allowed for each text-generation call
            before it is abandoned in favour of the fallback
    """

    def __init__(
        self,
        store: QuestionScriptStore,
        classifier: AnswerClassifier | None = None,
        reflector: ReflectionGenerator | None = None,
        *,
        generation_timeout: float | None = None,
    ) -> None:
        self._store = store
        self._classifier = classifier
        self._reflector = reflector
        self._generation_timeout = generation_timeout
        self._repo = SessionRepository()

    # ==================================================================
    # Session lifecycle
    # ==================================================================

    async def start_session(
        self,
        db: AsyncSession,
        *,
        user_id: str,
        step: Step | str | int,
        pre_walk_mood: str | None = None,
        pre_walk_intention: str | None = None,
        location: str | None = None,
        body_need: str | None = None,
        resume_session: bool = False,
    ) -> StartSessionResult:
        """Start a new walk, or resume the user's latest incomplete one.

        With ``resume_session`` the most recent incomplete session is
        returned as-is (its own step, not ``step``), with the question the
        walker is currently waiting on.  If there is none, a new session is
        created.

        Raises:
            InvalidStep: ``step`` is not a supported step.
        """
        step = Step.parse(step)

        if resume_session:
            row = await self._repo.get_incomplete_session(db, user_id)
            if row is not None:
                walker = self._rebuild_walker(row)
                logger.info(
                    "Resumed session %s for user %s at turn %d",
                    row.id, user_id, len(walker.history),
                )
                return StartSessionResult(
                    session_id=str(row.id),
                    step=row.current_step,
                    initial_question=walker.current_question,
                    conversation_history=walker.history,
                    is_resumed=True,
                )

        # Resolving the first question up front surfaces EmptyStep before
        # a row is written
        initial = self._store.first_question(step.number).to_presented()
        row = await self._repo.create_session(
            db,
            user_id=user_id,
            current_step=step.value,
            pre_walk_mood=pre_walk_mood,
            pre_walk_intention=pre_walk_intention,
            location=location,
            body_need=body_need,
        )
        logger.info("Created session %s for user %s (%s)", row.id, user_id, step.value)
        return StartSessionResult(
            session_id=str(row.id),
            step=step.value,
            initial_question=initial,
            conversation_history=[],
            is_resumed=False,
        )

    async def check_incomplete_session(
        self, db: AsyncSession, *, user_id: str
    ) -> IncompleteSessionCheck:
        """Report whether the user has a walk that can be resumed."""
        row = await self._repo.get_incomplete_session(db, user_id)
        if row is None:
            return IncompleteSessionCheck(has_incomplete_session=False)
        return IncompleteSessionCheck(
            has_incomplete_session=True,
            session=self._to_detail(row),
        )

    # ==================================================================
    # Answer submission
    # ==================================================================

    async def submit_answer(
        self,
        db: AsyncSession,
        *,
        user_id: str,
        session_id: str,
        answer: str,
    ) -> AnswerResult:
        """Process one answer and persist the extended history.

        Raises:
            SessionNotFound: no such session.
            SessionForbidden: the session belongs to another user.
            StepAlreadyComplete: the walker has already finished the step,
                or the walk was already completed.
            HistoryMismatch: the stored history no longer fits the script.
            ValueError / TypeError: blank or non-string answer.
        """
        row = await self._load_session(db, user_id, session_id)
        if row.completed_at is not None:
            raise StepAlreadyComplete(f"Session {row.id} is already completed")
        walker = self._rebuild_walker(row)

        result = walker.process_answer(answer)

        await self._repo.save_responses(db, row, walker.dump_history())
        if result.should_complete and row.status == SessionStatus.IN_PROGRESS:
            await self._repo.mark_step_complete(db, row)

        if result.safety_concern:
            # Answer text is never logged; only the fact and where
            logger.warning(
                "Safety concern flagged in session %s (turn %d)",
                row.id, len(walker.history),
            )
        logger.info(
            "Session %s: turn %d recorded (vague=%s, breakthrough=%s, complete=%s)",
            row.id, len(walker.history),
            result.has_red_flags, result.is_breakthrough, result.should_complete,
        )

        return AnswerResult(
            **result.model_dump(),
            analytics=walker.get_analytics(),
        )

    # ==================================================================
    # Query / delete
    # ==================================================================

    async def get_session(
        self, db: AsyncSession, *, user_id: str, session_id: str
    ) -> SessionDetail:
        """Return the full session, conversation history included."""
        row = await self._load_session(db, user_id, session_id)
        return self._to_detail(row)

    async def list_sessions(
        self,
        db: AsyncSession,
        *,
        user_id: str,
        limit: int = 20,
        offset: int = 0,
    ) -> list[SessionInfo]:
        """List the user's sessions, most recent first."""
        rows = await self._repo.list_by_user(db, user_id, limit=limit, offset=offset)
        return [self._to_session_info(r) for r in rows]

    async def delete_session(
        self, db: AsyncSession, *, user_id: str, session_id: str
    ) -> None:
        """Permanently delete one of the user's sessions."""
        row = await self._load_session(db, user_id, session_id)
        await self._repo.delete(db, row)
        logger.info("Deleted session %s for user %s", session_id, user_id)

    # ==================================================================
    # Completion
    # ==================================================================

    async def complete_session(
        self,
        db: AsyncSession,
        *,
        user_id: str,
        session_id: str,
        walk_duration: int | None = None,
    ) -> CompletionResult:
        """Finish the walk: generate closing texts, award coins, store results.

        Idempotent: completing an already completed session returns the
        stored texts with ``already_completed=True`` and awards nothing.
        A walk may be completed before the walker reaches the end of the
        step (the user ended the walk early).

        Each text-generation call that fails or times out falls back to a
        pre-written text, so completion itself never fails on the model.
        """
        row = await self._load_session(db, user_id, session_id)

        if row.completed_at is not None:
            logger.info("Session %s already completed; returning stored result", row.id)
            return CompletionResult(
                reflection=row.final_reflection or FALLBACK_REFLECTION,
                encouragement=row.encouragement_message or FALLBACK_ENCOURAGEMENT,
                insights=list(row.insights or []),
                coins_earned=row.coins_earned,
                total_coins=await self._repo.total_coins(db, user_id),
                analytics=self._stored_analytics(row),
                location=row.location,
                body_need=row.body_need,
                already_completed=True,
            )

        walker = self._rebuild_walker(row)
        turns = walker.history
        step = walker.step

        reflection = await self._generate(
            "reflection",
            lambda r: r.generate_reflection(
                turns, step,
                pre_walk_mood=row.pre_walk_mood,
                pre_walk_intention=row.pre_walk_intention,
            ),
            FALLBACK_REFLECTION,
        )
        encouragement = await self._generate(
            "encouragement",
            lambda r: r.generate_encouragement(reflection),
            FALLBACK_ENCOURAGEMENT,
        )
        insights = await self._generate(
            "insights",
            lambda r: r.extract_insights(turns),
            fallback_insights(turns),
        )

        analytics = walker.get_analytics()
        coins = coins_for_walk(walk_duration)

        await self._repo.complete_session(
            db, row,
            final_reflection=reflection,
            encouragement_message=encouragement,
            insights=insights,
            analytics=analytics.model_dump(mode="json"),
            walk_duration=walk_duration,
            coins_earned=coins,
        )
        total = await self._repo.total_coins(db, user_id)
        logger.info(
            "Completed session %s: %d turns, %d breakthroughs, %d coins",
            row.id, analytics.questions_completed, analytics.breakthrough_moments, coins,
        )

        return CompletionResult(
            reflection=reflection,
            encouragement=encouragement,
            insights=insights,
            coins_earned=coins,
            total_coins=total,
            analytics=analytics,
            location=row.location,
            body_need=row.body_need,
            already_completed=False,
        )

    async def _generate(
        self,
        label: str,
        call: Callable[[ReflectionGenerator], Awaitable[T]],
        fallback: T,
    ) -> T:
        """Run one text-generation call, substituting ``fallback`` on failure."""
        if self._reflector is None:
            return fallback
        try:
            result = await asyncio.wait_for(call(self._reflector), self._generation_timeout)
        except Exception as exc:
            logger.warning("Text generation for %s failed, using fallback: %s", label, exc)
            return fallback
        if not result:
            logger.warning("Text generation for %s returned nothing, using fallback", label)
            return fallback
        return result

    # ==================================================================
    # Internal helpers
    # ==================================================================

    async def _load_session(
        self, db: AsyncSession, user_id: str, session_id: str
    ) -> WalkSession:
        """Load a session row owned by ``user_id``.

        A malformed id is reported as not found.

        Raises:
            SessionNotFound: no row with that id.
            SessionForbidden: the row belongs to another user.
        """
        try:
            pk = uuid.UUID(str(session_id))
        except ValueError:
            raise SessionNotFound(f"Session not found: session_id={session_id}") from None
        row = await self._repo.get_by_id(db, pk)
        if row is None:
            raise SessionNotFound(f"Session not found: session_id={session_id}")
        if row.user_id != user_id:
            raise SessionForbidden(
                f"Session {session_id} does not belong to user {user_id}"
            )
        return row

    def _rebuild_walker(self, row: WalkSession) -> SessionWalker:
        return SessionWalker.from_history(
            self._store, row.current_step, row.step_responses,
            classifier=self._classifier,
        )

    def _stored_analytics(self, row: WalkSession) -> Analytics:
        """Analytics snapshot written at completion, or recomputed if absent."""
        if row.analytics:
            return Analytics.model_validate(row.analytics)
        return self._rebuild_walker(row).get_analytics()

    @staticmethod
    def _status_value(row: WalkSession) -> str:
        status = row.status
        return status.value if isinstance(status, SessionStatus) else str(status)

    @classmethod
    def _to_session_info(cls, row: WalkSession) -> SessionInfo:
        """Convert an ORM row to a public SessionInfo."""
        return SessionInfo(
            session_id=str(row.id),
            user_id=row.user_id,
            step=row.current_step,
            status=cls._status_value(row),
            questions_completed=len(row.step_responses or []),
            started_at=row.started_at,
            updated_at=row.updated_at,
            completed_at=row.completed_at,
        )

    @classmethod
    def _to_detail(cls, row: WalkSession) -> SessionDetail:
        """Convert an ORM row to a SessionDetail with the conversation."""
        info = cls._to_session_info(row)
        return SessionDetail(
            **info.model_dump(),
            pre_walk_mood=row.pre_walk_mood,
            pre_walk_intention=row.pre_walk_intention,
            location=row.location,
            body_need=row.body_need,
            conversation_history=[
                ConversationTurn.model_validate(t) for t in row.step_responses or []
            ],
            final_reflection=row.final_reflection,
            encouragement_message=row.encouragement_message,
            insights=row.insights,
            coins_earned=row.coins_earned or 0,
        )


# ----------------------------------------------------------------------
# Completion helpers
# ----------------------------------------------------------------------

def coins_for_walk(walk_duration: int | None) -> int:
    """Coins for a walk of ``walk_duration`` minutes; untimed walks earn none."""
    if not walk_duration or walk_duration <= 0:
        return 0
    return max(MIN_COINS_PER_WALK, walk_duration * COINS_PER_MINUTE)


def fallback_insights(turns: list[ConversationTurn]) -> list[str]:
    """Insights quoted from the user's own breakthrough answers."""
    return [
        f'You said: "{t.answer_text}"'
        for t in turns
        if t.classification.is_breakthrough
    ][:_MAX_FALLBACK_INSIGHTS]
