"""Pydantic schemas for person records."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Person(BaseModel):
    """A person record. Serialized with camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: int = Field(..., description="Unique integer identifier.")
    name: str = Field(..., description="Display name.")
    has_a_pet_unicorn: bool = Field(
        False,
        description="Whether the person owns a pet unicorn.",
    )
