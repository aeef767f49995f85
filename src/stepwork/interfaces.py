"""Abstract interface for the text-generation collaborator.

Session completion asks an external language model for a reflection, a
short encouragement and a few insights.  The engine depends only on this
contract; ``stepwork.llm`` ships an OpenAI-backed implementation.

Typical integration flow::

    reflector: ReflectionGenerator = OpenAIReflectionGenerator(...)
    engine = StepWorkEngine(store, reflector=reflector)
    result = await engine.complete_session(db, user_id=..., session_id=...)

Implementations may raise freely; the engine catches failures of each call
and substitutes a fixed, pre-written text so that completing a walk never
fails because the model is unavailable.
"""

from abc import ABC, abstractmethod

from stepwork.models.question import Step
from stepwork.models.session import ConversationTurn


class ReflectionGenerator(ABC):
    """Interface for end-of-walk reflective text generation."""

    @abstractmethod
    async def generate_reflection(
        self,
        turns: list[ConversationTurn],
        step: Step,
        *,
        pre_walk_mood: str | None = None,
        pre_walk_intention: str | None = None,
    ) -> str:
        """Write a short personalised reflection on the conversation.

        Parameters
        ----------
        turns:
            The full ordered conversation history of the walk.
        step:
            The step that was worked.
        pre_walk_mood, pre_walk_intention:
            Optional check-in answers given before the walk started.
        """
        ...

    @abstractmethod
    async def generate_encouragement(self, reflection: str) -> str:
        """Write a two or three sentence encouragement based on ``reflection``."""
        ...

    @abstractmethod
    async def extract_insights(self, turns: list[ConversationTurn]) -> list[str]:
        """Return two to four one-sentence insights, second person."""
        ...
