"""Prompt rendering for the text-generation collaborator.

Provides ``PromptManager``, a Jinja2-based template engine that renders a
walk's conversation history into reflection, encouragement and insight
prompts.
"""

from stepwork.prompt.manager import PromptManager

__all__ = ["PromptManager"]
