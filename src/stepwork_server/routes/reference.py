"""Reference endpoints: the question script of each step.

Read-only and unauthenticated: the questions are the same for every user.
Trigger patterns and safety metadata are not exposed.
"""

from fastapi import APIRouter, Depends

from stepwork.constants import STEP_TITLES
from stepwork.models.question import PresentedQuestion, Step
from stepwork.script import QuestionScriptStore

from stepwork_server.dependencies import get_store

router = APIRouter(prefix="/steps", tags=["reference"])


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

@router.get("")
def list_steps() -> list[dict]:
    """Return the supported steps and their titles."""
    return [
        {"step": step.value, "number": step.number, "title": STEP_TITLES[step.number]}
        for step in Step
    ]


@router.get("/{step}/questions")
def list_step_questions(
    step: str,
    store: QuestionScriptStore = Depends(get_store),
) -> list[PresentedQuestion]:
    """Return the active questions of a step in walk order.

    ``step`` may be a key (``step1``) or a bare number (``1``).
    """
    parsed = Step.parse(int(step) if step.isdigit() else step)
    return [q.to_presented() for q in store.questions_for_step(parsed.number)]
