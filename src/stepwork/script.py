"""QuestionScriptStore: loads the step question scripts into typed models.

This is the single source of truth for question data at runtime.  The store
is loaded once at startup and provides ordered lookup by step and question id.

Usage::

    store = QuestionScriptStore()   # defaults to the packaged data/ directory
    store.load()                    # parse and validate step1..step3 YAML

    first = store.first_question(1)
    nxt = store.next_after(1, first.id)
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from stepwork.constants import STEP_NUMBERS
from stepwork.exceptions import EmptyStep, InvalidStep, ScriptConfigError
from stepwork.models.question import Question

logger = logging.getLogger(__name__)


def load_yaml(path: Path | str) -> Any:
    """Load a single YAML file and return the parsed contents."""
    if isinstance(path, str):
        path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing YAML file: {path}")
    with path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f)


class QuestionScriptStore:
    """Loads ``step{N}.yaml`` files and provides ordered, read-only lookup.

    Attributes populated after :meth:`load`:

        questions: dict[question_id, Question], all questions incl. inactive
        _ordered : dict[step_number, list[Question]], active only, by order
    """

    def __init__(self, script_dir: str | Path | None = None) -> None:
        if script_dir is None:
            script_dir = Path(__file__).parent / "data"
        self._base = Path(script_dir)

        # Populated by load()
        self.questions: dict[str, Question] = {}
        self._ordered: dict[int, list[Question]] = {}

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def load(self) -> None:
        """Parse every step file under the script directory.

        Call this once at startup.  Raises ``FileNotFoundError`` if a step
        file is missing and ``ScriptConfigError`` if a structural invariant
        is violated (duplicate ids/orders, several completion markers, a
        required question unreachable behind the completion marker, or a
        step with no active questions).
        """
        questions: dict[str, Question] = {}
        ordered: dict[int, list[Question]] = {}

        for step_number in STEP_NUMBERS:
            raw_list = load_yaml(self._base / f"step{step_number}.yaml") or []
            parsed: list[Question] = []
            for raw in raw_list:
                raw = {"step_number": step_number, **raw}
                try:
                    q = Question(**raw)
                except ValidationError as exc:
                    raise ScriptConfigError(
                        f"Invalid question in step{step_number}.yaml: {exc}"
                    ) from exc
                if q.step_number != step_number:
                    raise ScriptConfigError(
                        f"Question {q.id} declares step_number={q.step_number} "
                        f"but lives in step{step_number}.yaml"
                    )
                if q.id in questions:
                    raise ScriptConfigError(f"Duplicate question id: {q.id}")
                questions[q.id] = q
                parsed.append(q)

            active = sorted((q for q in parsed if q.is_active), key=lambda q: q.order)
            self._validate_step(step_number, active)
            ordered[step_number] = active

        self.questions = questions
        self._ordered = ordered
        logger.info(
            "QuestionScriptStore loaded: %d questions (%s active)",
            len(questions),
            ", ".join(f"step{n}={len(qs)}" for n, qs in ordered.items()),
        )

    @staticmethod
    def _validate_step(step_number: int, active: list[Question]) -> None:
        """Enforce ordering and completion-marker invariants for one step."""
        if not active:
            raise EmptyStep(f"Step {step_number} has no active questions")

        orders = [q.order for q in active]
        if len(orders) != len(set(orders)):
            raise ScriptConfigError(f"Step {step_number} has duplicate question orders")

        markers = [q for q in active if q.completion_marker]
        if len(markers) > 1:
            raise ScriptConfigError(
                f"Step {step_number} has {len(markers)} completion markers, at most one allowed"
            )
        if markers:
            marker = markers[0]
            unreachable = [
                q.id for q in active if q.order > marker.order and q.is_required
            ]
            if unreachable:
                raise ScriptConfigError(
                    f"Step {step_number}: required questions {unreachable} come after "
                    f"completion marker {marker.id}"
                )

    # ------------------------------------------------------------------
    # Lookup helpers
    # ------------------------------------------------------------------

    def questions_for_step(self, step_number: int) -> list[Question]:
        """Return the active questions of a step, sorted by ``order``.

        Raises:
            InvalidStep: if ``step_number`` is not a supported step.
        """
        if step_number not in STEP_NUMBERS:
            raise InvalidStep(f"Unsupported step number: {step_number!r}")
        return list(self._ordered.get(step_number, []))

    def first_question(self, step_number: int) -> Question:
        """Return the minimum-order active question of a step.

        Raises:
            InvalidStep: unsupported step.
            EmptyStep: the step has no active questions (configuration error).
        """
        questions = self.questions_for_step(step_number)
        if not questions:
            raise EmptyStep(f"Step {step_number} has no active questions")
        return questions[0]

    def next_after(self, step_number: int, question_id: str) -> Question | None:
        """Return the active question after ``question_id``, or None.

        ``None`` means the given question was the last one, or it carries
        ``completion_marker``.

        Raises:
            InvalidStep: unsupported step.
            KeyError: ``question_id`` is not an active question of the step.
        """
        questions = self.questions_for_step(step_number)
        for index, q in enumerate(questions):
            if q.id != question_id:
                continue
            if q.completion_marker or index + 1 >= len(questions):
                return None
            return questions[index + 1]
        raise KeyError(f"Question {question_id!r} is not active in step {step_number}")

    def get_question(self, question_id: str) -> Question:
        """Look up a single question by id (active or not).

        Raises:
            KeyError: if the id is unknown.
        """
        return self.questions[question_id]
