"""PromptManager: Jinja2-based prompt renderer for the text-generation collaborator.

Loads templates from the ``template/`` directory and renders the walk's
conversation history into prompt strings for reflection, encouragement and
insight extraction.
"""

from __future__ import annotations

import json
from pathlib import Path

import jinja2

from stepwork.constants import STEP_TITLES
from stepwork.models.question import Step
from stepwork.models.session import ConversationTurn

# --- Prompt kind to template mapping ---
_TEMPLATES: dict[str, str] = {
    "system": "system.jinja2",
    "reflection": "reflection.jinja2",
    "encouragement": "encouragement.jinja2",
    "insights": "insights.jinja2",
}


class PromptManager:
    """Jinja2-based prompt renderer.

    Args:
        template_dir: optional override for the template directory.
            Defaults to ``template/`` sibling of this module.
    """

    def __init__(self, template_dir: Path | None = None) -> None:
        if template_dir is None:
            template_dir = Path(__file__).parent / "template"
        self._env = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(template_dir)),
            # Keep whitespace control simple: templates use explicit trim
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=jinja2.StrictUndefined,
        )
        self._env.filters["tojson"] = lambda v: json.dumps(v, ensure_ascii=False)

    def render(self, template_name: str, **context) -> str:
        """Render a named template with arbitrary context."""
        template = self._env.get_template(template_name)
        return template.render(**context).strip()

    def render_system(self) -> str:
        """The sponsor-voice system prompt shared by all completions."""
        return self.render(_TEMPLATES["system"])

    def render_reflection(
        self,
        turns: list[ConversationTurn],
        step: Step,
        *,
        pre_walk_mood: str | None = None,
        pre_walk_intention: str | None = None,
    ) -> str:
        return self.render(
            _TEMPLATES["reflection"],
            turns=turns,
            step=step.value.upper(),
            step_title=STEP_TITLES[step.number],
            pre_walk_mood=pre_walk_mood,
            pre_walk_intention=pre_walk_intention,
        )

    def render_encouragement(self, reflection: str) -> str:
        return self.render(_TEMPLATES["encouragement"], reflection=reflection)

    def render_insights(self, turns: list[ConversationTurn]) -> str:
        return self.render(_TEMPLATES["insights"], turns=turns)
