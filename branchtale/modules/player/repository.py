from __future__ import annotations

import copy
import uuid
from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from branchtale.db.models import (
    PlaySession,
    SavedGame,
    Story,
    StoryChoice,
    StoryItem,
    StoryNode,
    StoryVariable,
)
from branchtale.modules.mechanics.conditions import parse_condition
from branchtale.modules.mechanics.effects import parse_effects
from branchtale.modules.mechanics.state import (
    ChoiceDecl,
    ItemDecl,
    NodeDecl,
    NodeType,
    StorySchema,
    VariableDecl,
    VariableType,
)


@dataclass(frozen=True, slots=True)
class PlaySessionRecord:
    id: uuid.UUID
    story_id: str
    user_id: str
    current_node_id: str | None
    game_state: dict
    is_completed: bool
    started_at: datetime
    last_played_at: datetime
    completed_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class SavedGameRecord:
    id: uuid.UUID
    user_id: str
    session_id: uuid.UUID | None
    story_id: str
    save_name: str
    current_node_id: str | None
    game_state: dict
    is_completed: bool
    created_at: datetime


class StoryRepository(Protocol):
    def get_schema(self, story_id: str) -> StorySchema | None:
        ...


class SessionRepository(Protocol):
    def transaction(self) -> AbstractContextManager[Any]:
        ...

    def get_session(self, session_id: uuid.UUID, *, for_update: bool = False) -> PlaySessionRecord | None:
        ...

    def create_session(
        self,
        *,
        story_id: str,
        user_id: str,
        current_node_id: str | None,
        game_state: dict,
        is_completed: bool,
        now: datetime,
    ) -> PlaySessionRecord:
        ...

    def update_session(self, session_id: uuid.UUID, **changes: Any) -> PlaySessionRecord:
        ...

    def list_sessions(self, user_id: str, story_id: str | None = None) -> list[PlaySessionRecord]:
        ...

    def create_saved_game(
        self,
        *,
        user_id: str,
        session_id: uuid.UUID,
        story_id: str,
        save_name: str,
        current_node_id: str | None,
        game_state: dict,
        is_completed: bool,
        now: datetime,
    ) -> SavedGameRecord:
        ...

    def get_saved_game(self, saved_game_id: uuid.UUID) -> SavedGameRecord | None:
        ...

    def list_saved_games(self, user_id: str, story_id: str | None = None) -> list[SavedGameRecord]:
        ...

    def delete_saved_game(self, saved_game_id: uuid.UUID) -> None:
        ...


def _variable_type(raw: str | None) -> VariableType:
    try:
        return VariableType(str(raw or "").strip().lower())
    except ValueError:
        return VariableType.STRING


def _node_type(raw: str | None) -> NodeType:
    try:
        return NodeType(str(raw or "").strip().lower())
    except ValueError:
        return NodeType.STORY


class SqlStoryRepository:
    """Read-only view of authored stories."""

    def __init__(self, db: Session) -> None:
        self._db = db

    def get_schema(self, story_id: str) -> StorySchema | None:
        story = self._db.get(Story, story_id)
        if story is None:
            return None

        variables = self._db.execute(
            select(StoryVariable).where(StoryVariable.story_id == story.id).order_by(StoryVariable.position, StoryVariable.name)
        ).scalars().all()
        items = self._db.execute(
            select(StoryItem).where(StoryItem.story_id == story.id).order_by(StoryItem.item_id)
        ).scalars().all()
        nodes = self._db.execute(
            select(StoryNode).where(StoryNode.story_id == story.id).order_by(StoryNode.position, StoryNode.id)
        ).scalars().all()
        choices = self._db.execute(
            select(StoryChoice).where(StoryChoice.story_id == story.id).order_by(StoryChoice.position, StoryChoice.id)
        ).scalars().all()

        return StorySchema(
            story_id=story.id,
            author_id=story.author_id,
            title=story.title,
            is_published=bool(story.is_published),
            start_node_id=story.start_node_id,
            variables=tuple(
                VariableDecl(name=v.name, var_type=_variable_type(v.var_type), default_value=copy.deepcopy(v.default_value))
                for v in variables
            ),
            items=tuple(ItemDecl(id=i.item_id, name=i.name, description=i.description or "") for i in items),
            nodes=tuple(
                NodeDecl(id=n.id, title=n.title or "", content=n.content or "", node_type=_node_type(n.node_type))
                for n in nodes
            ),
            choices=tuple(
                ChoiceDecl(
                    id=c.id,
                    from_node_id=c.from_node_id,
                    to_node_id=c.to_node_id,
                    text=c.text or "",
                    condition=parse_condition(c.condition),
                    effects=parse_effects(c.effects),
                )
                for c in choices
            ),
        )


def _session_record(row: PlaySession) -> PlaySessionRecord:
    return PlaySessionRecord(
        id=row.id,
        story_id=row.story_id,
        user_id=row.user_id,
        current_node_id=row.current_node_id,
        game_state=copy.deepcopy(row.game_state or {}),
        is_completed=bool(row.is_completed),
        started_at=row.started_at,
        last_played_at=row.last_played_at,
        completed_at=row.completed_at,
    )


def _saved_game_record(row: SavedGame) -> SavedGameRecord:
    return SavedGameRecord(
        id=row.id,
        user_id=row.user_id,
        session_id=row.session_id,
        story_id=row.story_id,
        save_name=row.save_name,
        current_node_id=row.current_node_id,
        game_state=copy.deepcopy(row.game_state or {}),
        is_completed=bool(row.is_completed),
        created_at=row.created_at,
    )


class SqlSessionRepository:
    _UPDATABLE = frozenset({"current_node_id", "game_state", "is_completed", "last_played_at", "completed_at"})

    def __init__(self, db: Session) -> None:
        self._db = db

    def transaction(self) -> AbstractContextManager[Any]:
        return self._db.begin()

    def _session_row(self, session_id: uuid.UUID, *, for_update: bool = False) -> PlaySession | None:
        stmt = select(PlaySession).where(PlaySession.id == session_id)
        if for_update:
            stmt = stmt.with_for_update()
        return self._db.execute(stmt).scalar_one_or_none()

    def get_session(self, session_id: uuid.UUID, *, for_update: bool = False) -> PlaySessionRecord | None:
        row = self._session_row(session_id, for_update=for_update)
        return _session_record(row) if row is not None else None

    def create_session(
        self,
        *,
        story_id: str,
        user_id: str,
        current_node_id: str | None,
        game_state: dict,
        is_completed: bool,
        now: datetime,
    ) -> PlaySessionRecord:
        row = PlaySession(
            story_id=story_id,
            user_id=user_id,
            current_node_id=current_node_id,
            game_state=copy.deepcopy(game_state),
            is_completed=is_completed,
            started_at=now,
            last_played_at=now,
            completed_at=now if is_completed else None,
        )
        self._db.add(row)
        self._db.flush()
        return _session_record(row)

    def update_session(self, session_id: uuid.UUID, **changes: Any) -> PlaySessionRecord:
        unknown = set(changes) - self._UPDATABLE
        if unknown:
            raise ValueError(f"cannot update play session fields: {', '.join(sorted(unknown))}")
        row = self._session_row(session_id)
        if row is None:
            raise LookupError(f"play session {session_id} vanished mid-transaction")
        for key, value in changes.items():
            setattr(row, key, copy.deepcopy(value) if key == "game_state" else value)
        self._db.flush()
        return _session_record(row)

    def list_sessions(self, user_id: str, story_id: str | None = None) -> list[PlaySessionRecord]:
        stmt = select(PlaySession).where(PlaySession.user_id == user_id)
        if story_id:
            stmt = stmt.where(PlaySession.story_id == story_id)
        rows = self._db.execute(stmt.order_by(PlaySession.last_played_at.desc())).scalars().all()
        return [_session_record(row) for row in rows]

    def create_saved_game(
        self,
        *,
        user_id: str,
        session_id: uuid.UUID,
        story_id: str,
        save_name: str,
        current_node_id: str | None,
        game_state: dict,
        is_completed: bool,
        now: datetime,
    ) -> SavedGameRecord:
        row = SavedGame(
            user_id=user_id,
            session_id=session_id,
            story_id=story_id,
            save_name=save_name,
            current_node_id=current_node_id,
            game_state=copy.deepcopy(game_state),
            is_completed=is_completed,
            created_at=now,
        )
        self._db.add(row)
        self._db.flush()
        return _saved_game_record(row)

    def get_saved_game(self, saved_game_id: uuid.UUID) -> SavedGameRecord | None:
        row = self._db.get(SavedGame, saved_game_id)
        return _saved_game_record(row) if row is not None else None

    def list_saved_games(self, user_id: str, story_id: str | None = None) -> list[SavedGameRecord]:
        stmt = select(SavedGame).where(SavedGame.user_id == user_id)
        if story_id:
            stmt = stmt.where(SavedGame.story_id == story_id)
        rows = self._db.execute(stmt.order_by(SavedGame.created_at.desc())).scalars().all()
        return [_saved_game_record(row) for row in rows]

    def delete_saved_game(self, saved_game_id: uuid.UUID) -> None:
        row = self._db.get(SavedGame, saved_game_id)
        if row is not None:
            self._db.delete(row)
            self._db.flush()
