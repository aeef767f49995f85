"""SessionWalker: drives one user through one step's question sequence.

Stateless between requests: the only durable state is the ordered
``ConversationTurn`` history stored on the session row.  Each request
rebuilds a walker from that history, processes at most one answer, and
discards it.  Reconstruction replays the history through the same
transition logic used for live answers, so a rebuilt walker is
indistinguishable from one that never stopped.  Past answers are never
re-classified; counts come from the classifications stored in each turn.

States::

    AWAITING_ANSWER(q) ──answer──► AWAITING_ANSWER(next)
          │    │                         ▲
          │    └─ follow-up matches ─► BRANCHING(q, follow_up) ──answer──┘
          │
          └─ completion marker / last question ─► STEP_COMPLETE

Usage::

    walker = SessionWalker.from_history(store, "step1", row.step_responses)
    result = walker.process_answer("I realize I've been hiding this for years")
    row.step_responses = walker.dump_history()
"""

from __future__ import annotations

import enum
import logging
from typing import Any, Iterable

from stepwork.classifier import AnswerClassifier, HeuristicClassifier, QuestionContext
from stepwork.exceptions import HistoryMismatch, StepAlreadyComplete
from stepwork.models.question import ConditionalFollowUp, PresentedQuestion, Question, Step
from stepwork.models.session import Analytics, ConversationTurn, TurnResult
from stepwork.script import QuestionScriptStore

logger = logging.getLogger(__name__)


class WalkerState(str, enum.Enum):
    """Position of the walker within a step."""

    AWAITING_ANSWER = "awaiting_answer"
    BRANCHING = "branching"
    STEP_COMPLETE = "step_complete"


class SessionWalker:
    """Linear walker over a step's active questions.

    Args:
        store: a loaded :class:`QuestionScriptStore`
        step: step key (``"step1"``), number (``1``) or :class:`Step`
        classifier: answer classifier; defaults to :class:`HeuristicClassifier`
    """

    def __init__(
        self,
        store: QuestionScriptStore,
        step: Step | str | int,
        *,
        classifier: AnswerClassifier | None = None,
    ) -> None:
        self._store = store
        self._step = Step.parse(step)
        self._classifier = classifier or HeuristicClassifier()

        self._history: list[ConversationTurn] = []
        self._breakthroughs = 0
        self._red_flags = 0

        # Script question at the cursor.  While branching this is the parent
        # of the ad hoc follow-up; after completion it is the last question.
        self._question: Question = store.first_question(self._step.number)
        self._follow_up: ConditionalFollowUp | None = None
        self._state = WalkerState.AWAITING_ANSWER

    @classmethod
    def from_history(
        cls,
        store: QuestionScriptStore,
        step: Step | str | int,
        history: Iterable[ConversationTurn | dict[str, Any]] | None,
        *,
        classifier: AnswerClassifier | None = None,
    ) -> "SessionWalker":
        """Rebuild a walker from a persisted ``(current_step, history)`` pair.

        Raises:
            HistoryMismatch: a stored turn does not answer the question the
                script expects at that position.
        """
        walker = cls(store, step, classifier=classifier)
        for raw in history or []:
            turn = (
                raw if isinstance(raw, ConversationTurn)
                else ConversationTurn.model_validate(raw)
            )
            walker._replay(turn)
        return walker

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def step(self) -> Step:
        return self._step

    @property
    def state(self) -> WalkerState:
        return self._state

    @property
    def is_complete(self) -> bool:
        return self._state is WalkerState.STEP_COMPLETE

    @property
    def history(self) -> list[ConversationTurn]:
        return list(self._history)

    @property
    def current_question(self) -> PresentedQuestion | None:
        """The question awaiting an answer, or None once the step is complete."""
        if self._state is WalkerState.STEP_COMPLETE:
            return None
        if self._state is WalkerState.BRANCHING:
            return self._question.follow_up_question(self._follow_up)
        return self._question.to_presented()

    def initial_question(self) -> PresentedQuestion:
        """The first question of the step, regardless of progress."""
        return self._store.first_question(self._step.number).to_presented()

    def dump_history(self) -> list[dict[str, Any]]:
        """History serialised for the ``step_responses`` JSON column."""
        return [turn.model_dump(mode="json") for turn in self._history]

    def get_analytics(self) -> Analytics:
        return Analytics(
            questions_completed=len(self._history),
            breakthrough_moments=self._breakthroughs,
            red_flags_encountered=self._red_flags,
            current_phase=self._question.phase,
            step_worked=self._step.value,
        )

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def process_answer(self, answer: str) -> TurnResult:
        """Classify and record ``answer``, then move to the next question.

        Raises:
            StepAlreadyComplete: the step has already been completed.
            TypeError: ``answer`` is not a string.
            ValueError: ``answer`` is blank.
        """
        if self._state is WalkerState.STEP_COMPLETE:
            raise StepAlreadyComplete(
                f"Step {self._step.value} is already complete; no further answers accepted"
            )
        if not isinstance(answer, str):
            raise TypeError(f"answer must be a string, got {type(answer).__name__}")
        text = answer.strip()
        if not text:
            raise ValueError("answer must not be empty")

        presented = self.current_question
        branching = self._state is WalkerState.BRANCHING
        answered = self._question
        context = QuestionContext(
            question=presented if branching else answered,
            history=self.history,
            parent=answered if branching else None,
        )
        classification = self._classifier.classify(text, context)

        self._record(ConversationTurn(
            question_id=presented.id,
            question_text=presented.text,
            answer_text=text,
            classification=classification,
            is_follow_up=branching,
        ))
        self._advance(text)

        follow_up_prompt = None
        if classification.is_vague and not branching and answered.follow_up is not None:
            follow_up_prompt = answered.follow_up.text

        logger.debug(
            "Step %s answer to %s: vague=%s breakthrough=%s -> %s",
            self._step.value, presented.id,
            classification.is_vague, classification.is_breakthrough, self._state.value,
        )

        return TurnResult(
            next_question=self.current_question,
            has_red_flags=classification.is_vague,
            is_breakthrough=classification.is_breakthrough,
            should_complete=self.is_complete,
            safety_concern=classification.safety_concern,
            follow_up_prompt=follow_up_prompt,
        )

    def _replay(self, turn: ConversationTurn) -> None:
        """Re-apply a stored turn without classifying it again."""
        expected = self.current_question
        if expected is None:
            raise HistoryMismatch(
                f"History continues past completion of {self._step.value} "
                f"(turn for {turn.question_id})"
            )
        if turn.question_id != expected.id:
            raise HistoryMismatch(
                f"History out of sync with script: expected {expected.id}, "
                f"found {turn.question_id}"
            )
        self._record(turn)
        self._advance(turn.answer_text)

    def _record(self, turn: ConversationTurn) -> None:
        self._history.append(turn)
        if turn.classification.is_vague:
            self._red_flags += 1
        if turn.classification.is_breakthrough:
            self._breakthroughs += 1

    def _advance(self, answer: str) -> None:
        """Apply the transition for an answer to the current question."""
        question = self._question

        if self._state is WalkerState.BRANCHING:
            # Follow-ups never branch again; resume after the parent
            self._follow_up = None
            self._move_to(self._store.next_after(self._step.number, question.id))
            return

        if question.completion_marker:
            self._state = WalkerState.STEP_COMPLETE
            return

        follow_up = question.match_follow_up(answer)
        if follow_up is not None:
            self._follow_up = follow_up
            self._state = WalkerState.BRANCHING
            return

        self._move_to(self._store.next_after(self._step.number, question.id))

    def _move_to(self, nxt: Question | None) -> None:
        if nxt is None:
            self._state = WalkerState.STEP_COMPLETE
        else:
            self._question = nxt
            self._state = WalkerState.AWAITING_ANSWER


def walk(
    store: QuestionScriptStore,
    step: Step | str | int,
    history: Iterable[ConversationTurn | dict[str, Any]] | None,
    answer: str,
    *,
    classifier: AnswerClassifier | None = None,
) -> tuple[list[ConversationTurn], TurnResult]:
    """Pure form of the walker: ``(store, history, answer) -> (history', result)``.

    The input history is not modified.
    """
    walker = SessionWalker.from_history(store, step, history, classifier=classifier)
    result = walker.process_answer(answer)
    return walker.history, result
