"""Schemas for the recipe object handed back to the frontend.

Field aliases are the JSON keys the frontend reads; they are kept as-is.
"""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class RecipeMeta(BaseModel):
    """Serving, timing and difficulty information."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    servings: str = Field(default="", alias="portioner")
    total_time: str = Field(default="", alias="totaltid")
    difficulty: str = Field(default="", alias="svarighetsgrad")


class Ingredient(BaseModel):
    """One ingredient line, optionally under a group heading."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    group: str = Field(default="", alias="grupp")
    amount: str = Field(default="", alias="mangd")
    name: str = Field(default="", alias="ingrediens")


class ValidatedRecipe(BaseModel):
    """A recipe that passed validation; every string and list is bounded."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    title: str = Field(alias="titel")
    description: str = Field(default="", alias="beskrivning")
    meta: RecipeMeta = Field(default_factory=RecipeMeta)
    ingredients: list[Ingredient] = Field(alias="ingredienser")
    steps: list[str] = Field(alias="steg")
    notes: str = Field(default="", alias="noteringar")

    def to_wire(self) -> dict[str, object]:
        """Return the JSON object sent to the frontend."""
        return self.model_dump(by_alias=True)
