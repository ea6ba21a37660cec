from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from branchtale.modules.mechanics.state import VariableType, value_matches_type


class StoryVariableIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1, max_length=100)
    type: Literal["integer", "boolean", "string", "float"]
    default_value: Any = None

    @model_validator(mode="after")
    def validate_default(self):
        if self.default_value is not None and not value_matches_type(VariableType(self.type), self.default_value):
            raise ValueError(f"default_value for '{self.name}' does not match type {self.type}")
        return self


class StoryItemIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=100)
    description: str = ""


class StoryNodeIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(min_length=1, max_length=64)
    title: str = ""
    content: str = ""
    type: Literal["story", "choice", "condition", "ending"] = "story"


class StoryChoiceIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str = Field(min_length=1, max_length=64)
    from_node_id: str
    to_node_id: str
    text: str = ""
    condition: dict | None = None
    effects: list = Field(default_factory=list)


class StoryPack(BaseModel):
    """A whole story as authored: declarations, node graph, choices."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(min_length=1, max_length=64)
    title: str = Field(min_length=1, max_length=255)
    description: str = ""
    author_id: str = Field(min_length=1, max_length=128)
    is_published: bool = True
    start_node_id: str | None = None
    variables: list[StoryVariableIn] = Field(default_factory=list)
    items: list[StoryItemIn] = Field(default_factory=list)
    nodes: list[StoryNodeIn] = Field(default_factory=list)
    choices: list[StoryChoiceIn] = Field(default_factory=list)


class ValidateMechanicsRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    condition: dict | None = None
    effects: list = Field(default_factory=list)


class ValidateMechanicsResponse(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)
