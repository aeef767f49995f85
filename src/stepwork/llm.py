"""OpenAI-backed ``ReflectionGenerator``.

Prompts are rendered by :class:`PromptManager`; each call is a single
Responses API request with the Elder Tree system prompt as instructions.
Errors are not handled here: the engine owns the fallback policy.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from openai import AsyncOpenAI

from stepwork.interfaces import ReflectionGenerator
from stepwork.models.question import Step
from stepwork.models.session import ConversationTurn
from stepwork.prompt import PromptManager

logger = logging.getLogger(__name__)

# Per-prompt sampling settings: (max_output_tokens, temperature)
_REFLECTION_PARAMS = (400, 0.7)
_ENCOURAGEMENT_PARAMS = (150, 0.7)
_INSIGHTS_PARAMS = (300, 0.5)


class OpenAIReflectionGenerator(ReflectionGenerator):
    """Reflection generator using the OpenAI Responses API.

    Args:
        model: model name, e.g. ``"gpt-4o-mini"``
        api_key: API key; ``None`` lets the SDK read ``OPENAI_API_KEY``
        timeout: per-request timeout in seconds
        prompts: optional :class:`PromptManager` override
    """

    def __init__(
        self,
        model: str,
        *,
        api_key: str | None = None,
        timeout: float | None = None,
        prompts: PromptManager | None = None,
    ) -> None:
        client_kwargs: dict[str, Any] = {"max_retries": 0}
        if api_key is not None:
            client_kwargs["api_key"] = api_key
        if timeout is not None:
            client_kwargs["timeout"] = timeout
        self._client = AsyncOpenAI(**client_kwargs)
        self._model = model
        self._prompts = prompts or PromptManager()

    async def _complete(self, prompt: str, params: tuple[int, float]) -> str:
        max_tokens, temperature = params
        resp = await self._client.responses.create(
            model=self._model,
            instructions=self._prompts.render_system(),
            input=prompt,
            max_output_tokens=max_tokens,
            temperature=temperature,
        )
        text = getattr(resp, "output_text", "") or ""
        return text.strip()

    async def generate_reflection(
        self,
        turns: list[ConversationTurn],
        step: Step,
        *,
        pre_walk_mood: str | None = None,
        pre_walk_intention: str | None = None,
    ) -> str:
        prompt = self._prompts.render_reflection(
            turns, step,
            pre_walk_mood=pre_walk_mood,
            pre_walk_intention=pre_walk_intention,
        )
        text = await self._complete(prompt, _REFLECTION_PARAMS)
        if not text:
            raise ValueError("Empty reflection from model")
        return text

    async def generate_encouragement(self, reflection: str) -> str:
        text = await self._complete(
            self._prompts.render_encouragement(reflection), _ENCOURAGEMENT_PARAMS,
        )
        if not text:
            raise ValueError("Empty encouragement from model")
        return text

    async def extract_insights(self, turns: list[ConversationTurn]) -> list[str]:
        raw = await self._complete(self._prompts.render_insights(turns), _INSIGHTS_PARAMS)
        insights = json.loads(raw)
        if not isinstance(insights, list):
            raise ValueError(f"Expected a JSON array of insights, got {type(insights).__name__}")
        return [str(i) for i in insights if str(i).strip()]
