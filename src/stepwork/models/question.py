"""Question models for the step-work question script.

A ``Question`` is one scripted prompt within a step.  Questions are
immutable once loaded; the walker never mutates them.

Follow-ups come in two flavours:

  - ``follow_up``: a plain prompt the UI may show after a vague answer.
    It never changes the walker's position.
  - ``conditional_follow_up``: tagged data ``{trigger_pattern, text}``
    evaluated against the answer.  The first entry whose pattern matches
    becomes the next presented question (an ad hoc question outside the
    script's ordering).
"""

from __future__ import annotations

import enum
import re
from typing import Literal, Optional

from pydantic import ConfigDict, Field, field_validator

from stepwork.constants import FOLLOW_UP_SUFFIX, STEP_NUMBERS
from stepwork.exceptions import InvalidStep
from stepwork.models.base import CamelModel


class Step(str, enum.Enum):
    """Step identifiers as exposed over the API."""

    STEP1 = "step1"
    STEP2 = "step2"
    STEP3 = "step3"

    @property
    def number(self) -> int:
        return int(self.value.removeprefix("step"))

    @classmethod
    def from_number(cls, number: int) -> "Step":
        if number not in STEP_NUMBERS:
            raise InvalidStep(f"Unsupported step number: {number!r}")
        return cls(f"step{number}")

    @classmethod
    def parse(cls, value: "Step | str | int") -> "Step":
        """Accept a ``Step``, a key like ``"step1"`` or a bare number."""
        if isinstance(value, Step):
            return value
        if isinstance(value, bool):
            raise InvalidStep(f"Unsupported step: {value!r}")
        if isinstance(value, int):
            return cls.from_number(value)
        if isinstance(value, str):
            try:
                return cls(value)
            except ValueError:
                raise InvalidStep(f"Unsupported step: {value!r}") from None
        raise InvalidStep(f"Unsupported step: {value!r}")


class FollowUp(CamelModel):
    """Plain follow-up prompt shown after an answer."""

    model_config = ConfigDict(frozen=True)

    type: str = "clarify"
    text: str


class ConditionalFollowUp(CamelModel):
    """Follow-up presented only when ``trigger_pattern`` matches the answer."""

    model_config = ConfigDict(frozen=True)

    trigger_pattern: str
    type: str = "probe"
    text: str

    @field_validator("trigger_pattern")
    @classmethod
    def _pattern_compiles(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as exc:
            raise ValueError(f"invalid trigger_pattern {value!r}: {exc}") from exc
        return value

    def matches(self, answer: str) -> bool:
        return re.search(self.trigger_pattern, answer, re.IGNORECASE) is not None


class Question(CamelModel):
    """One scripted question in a step."""

    model_config = ConfigDict(frozen=True)

    id: str
    step_number: int
    phase: str
    phase_title: str
    order: int
    text: str
    type: Literal["open_ended", "scaled", "yes_no", "reflection"] = "open_ended"
    is_required: bool = True
    follow_up: Optional[FollowUp] = None
    conditional_follow_up: list[ConditionalFollowUp] = Field(default_factory=list)
    safety_flag: bool = False
    completion_marker: bool = False
    is_active: bool = True

    @field_validator("step_number")
    @classmethod
    def _supported_step(cls, value: int) -> int:
        if value not in STEP_NUMBERS:
            raise ValueError(f"step_number must be one of {STEP_NUMBERS}, got {value}")
        return value

    def match_follow_up(self, answer: str) -> ConditionalFollowUp | None:
        """Return the first conditional follow-up triggered by ``answer``."""
        for candidate in self.conditional_follow_up:
            if candidate.matches(answer):
                return candidate
        return None

    def follow_up_question(self, follow_up: ConditionalFollowUp) -> "PresentedQuestion":
        """Build the ad hoc question presented for a triggered follow-up."""
        return PresentedQuestion(
            id=f"{self.id}{FOLLOW_UP_SUFFIX}",
            step_number=self.step_number,
            phase=self.phase,
            phase_title=self.phase_title,
            text=follow_up.text,
            type="open_ended",
            is_required=False,
            is_follow_up=True,
            follow_up_type=follow_up.type,
        )

    def to_presented(self) -> "PresentedQuestion":
        return PresentedQuestion(
            id=self.id,
            step_number=self.step_number,
            phase=self.phase,
            phase_title=self.phase_title,
            order=self.order,
            text=self.text,
            type=self.type,
            is_required=self.is_required,
            is_final=self.completion_marker,
        )


class PresentedQuestion(CamelModel):
    """Flattened question for API consumers.

    Strips follow-up patterns and safety metadata and presents only what the
    UI needs to render the prompt.  Ad hoc follow-ups carry ``is_follow_up``
    and no ``order``.
    """

    id: str
    step_number: int
    phase: str
    phase_title: str
    order: int | None = None
    text: str
    type: str
    is_required: bool
    is_final: bool = False
    is_follow_up: bool = False
    follow_up_type: str | None = None
