"""Answer classification: vagueness, breakthrough and safety signals.

The walker depends only on the ``AnswerClassifier`` contract, so the
heuristic below can be swapped (e.g. for a model-backed classifier) without
touching the state machine.

``HeuristicClassifier`` is keyword/length matching, nothing more:

  - vague ("red flag"): too short for an open question, a generic
    non-answer, non-committal phrasing, or hypothetical "theory" with no
    concrete example
  - breakthrough: long enough and containing insight language, or a
    non-vague answer to a question this session previously answered vaguely
  - safety concern: crisis language on a ``safety_flag`` question, evaluated
    independently of vagueness
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from stepwork.constants import (
    BREAKTHROUGH_MIN_WORDS,
    BREAKTHROUGH_PATTERNS,
    CONCRETE_MARKER_PATTERN,
    GENERIC_NON_ANSWERS,
    MIN_ANSWER_WORDS,
    NON_COMMITTAL_PATTERNS,
    SAFETY_PATTERNS,
    THEORY_MIN_WORDS,
    THEORY_PATTERNS,
)
from stepwork.models.question import PresentedQuestion, Question
from stepwork.models.session import Classification, ConversationTurn

# Question types whose answers are naturally short.
_SHORT_ANSWER_TYPES = {"yes_no", "scaled"}


def _compile(patterns: list[str]) -> list[re.Pattern[str]]:
    return [re.compile(p, re.IGNORECASE) for p in patterns]


def word_count(text: str) -> int:
    return len(text.split())


def normalise(text: str) -> str:
    """Lower-case, trim and strip trailing punctuation."""
    return text.strip().lower().rstrip(".!?,;: ")


@dataclass(frozen=True)
class QuestionContext:
    """What the classifier may look at besides the answer itself."""

    question: Question | PresentedQuestion
    history: list[ConversationTurn] = field(default_factory=list)
    # Script question an ad hoc follow-up hangs off, if any
    parent: Question | None = None

    def prior_turns(self) -> list[ConversationTurn]:
        """Earlier turns that answered the same question (or its parent)."""
        ids = {self.question.id}
        if self.parent is not None:
            ids.add(self.parent.id)
        return [t for t in self.history if t.question_id in ids]


class AnswerClassifier(ABC):
    """Interface for answer classification strategies."""

    @abstractmethod
    def classify(self, answer: str, context: QuestionContext) -> Classification:
        """Classify ``answer`` given the question and prior history."""
        ...


class HeuristicClassifier(AnswerClassifier):
    """Keyword and length heuristics.

    Args:
        min_words: answers with fewer words are vague (open questions only)
        breakthrough_min_words: minimum length for insight language to count
    """

    def __init__(
        self,
        *,
        min_words: int = MIN_ANSWER_WORDS,
        breakthrough_min_words: int = BREAKTHROUGH_MIN_WORDS,
    ) -> None:
        self._min_words = min_words
        self._breakthrough_min_words = breakthrough_min_words
        self._non_committal = _compile(NON_COMMITTAL_PATTERNS)
        self._theory = _compile(THEORY_PATTERNS)
        self._concrete = re.compile(CONCRETE_MARKER_PATTERN, re.IGNORECASE)
        self._breakthrough = _compile(BREAKTHROUGH_PATTERNS)
        self._safety = _compile(SAFETY_PATTERNS)

    def classify(self, answer: str, context: QuestionContext) -> Classification:
        is_vague = self.is_vague(answer, context.question)
        return Classification(
            is_vague=is_vague,
            is_breakthrough=self.is_breakthrough(answer, context, is_vague=is_vague),
            safety_concern=self.has_safety_concern(
                answer, context.parent or context.question,
            ),
        )

    # --- Vagueness ---

    def is_vague(self, answer: str, question: Question | PresentedQuestion) -> bool:
        if normalise(answer) in GENERIC_NON_ANSWERS:
            return True
        if question.type not in _SHORT_ANSWER_TYPES and word_count(answer) < self._min_words:
            return True
        if any(p.search(answer) for p in self._non_committal):
            return True
        return self._is_theory(answer)

    def _is_theory(self, answer: str) -> bool:
        """Hypothetical phrasing with no concrete time/action marker."""
        if word_count(answer) <= THEORY_MIN_WORDS:
            return False
        has_theory = any(p.search(answer) for p in self._theory)
        return has_theory and not self._concrete.search(answer)

    # --- Breakthrough ---

    def is_breakthrough(
        self, answer: str, context: QuestionContext, *, is_vague: bool
    ) -> bool:
        # A vague answer is never a breakthrough
        if is_vague:
            return False
        if word_count(answer) >= self._breakthrough_min_words and any(
            p.search(answer) for p in self._breakthrough
        ):
            return True
        # Improvement over an earlier vague answer to the same question
        return any(t.classification.is_vague for t in context.prior_turns())

    # --- Safety ---

    def has_safety_concern(
        self, answer: str, question: Question | PresentedQuestion
    ) -> bool:
        if not getattr(question, "safety_flag", False):
            return False
        return any(p.search(answer) for p in self._safety)
