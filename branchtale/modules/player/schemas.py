import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class StartSessionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    story_id: str = Field(min_length=1)
    starting_node_id: str | None = None


class MakeChoiceRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    choice_id: str = Field(min_length=1)
    game_state_update: dict[str, Any] | None = None


class UpdateGameStateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    current_node_id: str | None = None
    game_state: dict[str, Any] | None = None
    is_completed: bool | None = None


class SaveGameRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    save_name: str | None = Field(default=None, max_length=255)


class LoadGameRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    saved_game_id: uuid.UUID


class NodeOut(BaseModel):
    id: str
    title: str
    content: str
    node_type: str


class ChoiceOut(BaseModel):
    id: str
    text: str
    to_node_id: str
    is_available: bool | None = None
    unavailable_reason: dict | None = None


class SessionOut(BaseModel):
    id: uuid.UUID
    story_id: str
    user_id: str
    current_node_id: str | None = None
    game_state: dict = Field(default_factory=dict)
    is_completed: bool
    started_at: datetime
    last_played_at: datetime
    completed_at: datetime | None = None


class SessionViewOut(BaseModel):
    session: SessionOut
    node: NodeOut | None = None
    choices: list[ChoiceOut] = Field(default_factory=list)


class ChoiceResultOut(BaseModel):
    session: SessionOut
    next_node: NodeOut
    choices: list[ChoiceOut] = Field(default_factory=list)
    completed: bool = False


class SavedGameOut(BaseModel):
    id: uuid.UUID
    session_id: uuid.UUID | None = None
    story_id: str
    save_name: str
    current_node_id: str | None = None
    game_state: dict = Field(default_factory=dict)
    is_completed: bool
    created_at: datetime


class LoadGameOut(BaseModel):
    session: SessionOut
    saved_game: SavedGameOut


class DeleteSavedGameOut(BaseModel):
    deleted: bool
    saved_game_id: uuid.UUID
