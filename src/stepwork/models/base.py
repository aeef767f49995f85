"""Shared pydantic base for models that cross the HTTP boundary.

API payloads use camelCase keys while Python code, YAML scripts and the
persisted ``step_responses`` JSON use snake_case.  ``populate_by_name``
lets both spellings validate; ``model_dump()`` emits snake_case and
FastAPI serialises responses by alias (camelCase).
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model with camelCase aliases."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
