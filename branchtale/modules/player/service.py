from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from datetime import datetime
from typing import Any

from branchtale.modules.mechanics.choices import available_choices, explain_choices
from branchtale.modules.mechanics.conditions import evaluate_condition_trace
from branchtale.modules.mechanics.effects import apply_effects
from branchtale.modules.mechanics.errors import (
    ChoiceUnavailableError,
    ForbiddenError,
    NotFoundError,
    SessionCompletedError,
)
from branchtale.modules.mechanics.state import (
    ChoiceDecl,
    NodeDecl,
    PlayerState,
    StorySchema,
    initial_player_state,
    merge_game_state,
)
from branchtale.modules.player.locks import SessionLockRegistry
from branchtale.modules.player.repository import (
    PlaySessionRecord,
    SavedGameRecord,
    SessionRepository,
    StoryRepository,
)
from branchtale.modules.player.schemas import (
    ChoiceOut,
    ChoiceResultOut,
    DeleteSavedGameOut,
    LoadGameOut,
    NodeOut,
    SavedGameOut,
    SessionOut,
    SessionViewOut,
    UpdateGameStateRequest,
)
from branchtale.utils.time import utc_now_naive

logger = logging.getLogger(__name__)


def _node_out(node: NodeDecl) -> NodeOut:
    return NodeOut(id=node.id, title=node.title, content=node.content, node_type=node.node_type.value)


def _choice_out(choice: ChoiceDecl) -> ChoiceOut:
    return ChoiceOut(id=choice.id, text=choice.text, to_node_id=choice.to_node_id)


def _session_out(record: PlaySessionRecord) -> SessionOut:
    return SessionOut(
        id=record.id,
        story_id=record.story_id,
        user_id=record.user_id,
        current_node_id=record.current_node_id,
        game_state=record.game_state,
        is_completed=record.is_completed,
        started_at=record.started_at,
        last_played_at=record.last_played_at,
        completed_at=record.completed_at,
    )


def _saved_game_out(record: SavedGameRecord) -> SavedGameOut:
    return SavedGameOut(
        id=record.id,
        session_id=record.session_id,
        story_id=record.story_id,
        save_name=record.save_name,
        current_node_id=record.current_node_id,
        game_state=record.game_state,
        is_completed=record.is_completed,
        created_at=record.created_at,
    )


def _player_state(record: PlaySessionRecord) -> PlayerState:
    return PlayerState.from_game_state(record.game_state, record.current_node_id)


class PlayerService:
    """Play session lifecycle: start, choose, patch, save, load.

    Every operation runs in one repository transaction, and every
    operation that mutates a live session also holds that session's lock,
    so two turns against the same session never interleave.
    """

    def __init__(
        self,
        stories: StoryRepository,
        sessions: SessionRepository,
        locks: SessionLockRegistry,
        *,
        require_published_story: bool = True,
        clock: Callable[[], datetime] = utc_now_naive,
    ) -> None:
        self._stories = stories
        self._sessions = sessions
        self._locks = locks
        self._require_published_story = require_published_story
        self._clock = clock

    def _require_schema(self, story_id: str) -> StorySchema:
        schema = self._stories.get_schema(story_id)
        if schema is None:
            raise NotFoundError("Story not found", code="STORY_NOT_FOUND", details={"story_id": story_id})
        return schema

    def _require_owned_session(self, user_id: str, session_id: uuid.UUID, *, for_update: bool = False) -> PlaySessionRecord:
        record = self._sessions.get_session(session_id, for_update=for_update)
        if record is None:
            raise NotFoundError("Play session not found", code="SESSION_NOT_FOUND")
        if record.user_id != user_id:
            raise ForbiddenError("Play session belongs to another player")
        return record

    def _require_owned_saved_game(self, user_id: str, saved_game_id: uuid.UUID) -> SavedGameRecord:
        record = self._sessions.get_saved_game(saved_game_id)
        if record is None:
            raise NotFoundError("Saved game not found", code="SAVED_GAME_NOT_FOUND")
        if record.user_id != user_id:
            raise ForbiddenError("Saved game belongs to another player")
        return record

    def _require_node(self, schema: StorySchema, node_id: str | None) -> NodeDecl:
        node = schema.node(node_id)
        if node is None:
            raise NotFoundError(
                "Node not found in story",
                code="NODE_NOT_FOUND",
                details={"story_id": schema.story_id, "node_id": node_id},
            )
        return node

    def _visible_choices(self, schema: StorySchema, record: PlaySessionRecord) -> list[ChoiceOut]:
        if record.is_completed or not record.current_node_id:
            return []
        state = _player_state(record)
        return [_choice_out(choice) for choice in available_choices(schema, record.current_node_id, state)]

    def start_session(self, user_id: str, story_id: str, starting_node_id: str | None = None) -> SessionViewOut:
        with self._sessions.transaction():
            schema = self._require_schema(story_id)
            if self._require_published_story and not schema.is_published and schema.author_id != user_id:
                raise ForbiddenError("Story is not published", code="STORY_NOT_PUBLISHED")

            if starting_node_id:
                start = self._require_node(schema, starting_node_id)
            else:
                start = schema.default_start_node()
                if start is None:
                    raise NotFoundError("No starting node available for this story", code="START_NODE_NOT_FOUND")

            state = initial_player_state(schema, current_node_id=start.id)
            record = self._sessions.create_session(
                story_id=schema.story_id,
                user_id=user_id,
                current_node_id=start.id,
                game_state=state.to_game_state(),
                is_completed=start.is_ending,
                now=self._clock(),
            )
            logger.info("play session %s started story=%s node=%s user=%s", record.id, schema.story_id, start.id, user_id)
            return SessionViewOut(
                session=_session_out(record),
                node=_node_out(start),
                choices=self._visible_choices(schema, record),
            )

    def get_current_node(self, user_id: str, session_id: uuid.UUID) -> SessionViewOut:
        with self._sessions.transaction():
            record = self._require_owned_session(user_id, session_id)
            schema = self._require_schema(record.story_id)
            node = self._require_node(schema, record.current_node_id)
            return SessionViewOut(
                session=_session_out(record),
                node=_node_out(node),
                choices=self._visible_choices(schema, record),
            )

    def get_session(self, user_id: str, session_id: uuid.UUID) -> SessionOut:
        with self._sessions.transaction():
            return _session_out(self._require_owned_session(user_id, session_id))

    def list_sessions(self, user_id: str, story_id: str | None = None) -> list[SessionOut]:
        with self._sessions.transaction():
            return [_session_out(record) for record in self._sessions.list_sessions(user_id, story_id)]

    def get_available_choices(
        self,
        user_id: str,
        session_id: uuid.UUID,
        *,
        include_unavailable: bool = False,
    ) -> list[ChoiceOut]:
        with self._sessions.transaction():
            record = self._require_owned_session(user_id, session_id)
            schema = self._require_schema(record.story_id)
            if not include_unavailable:
                return self._visible_choices(schema, record)
            if record.is_completed or not record.current_node_id:
                return []
            return [
                ChoiceOut(
                    id=entry.choice.id,
                    text=entry.choice.text,
                    to_node_id=entry.choice.to_node_id,
                    is_available=entry.available,
                    unavailable_reason=None if entry.available else entry.trace,
                )
                for entry in explain_choices(schema, record.current_node_id, _player_state(record))
            ]

    def make_choice(
        self,
        user_id: str,
        session_id: uuid.UUID,
        choice_id: str,
        game_state_update: dict[str, Any] | None = None,
    ) -> ChoiceResultOut:
        with self._locks.hold(session_id), self._sessions.transaction():
            record = self._require_owned_session(user_id, session_id, for_update=True)
            if record.is_completed:
                raise SessionCompletedError("Play session is already completed")
            schema = self._require_schema(record.story_id)

            choice = schema.choice(choice_id)
            if choice is None or choice.from_node_id != record.current_node_id:
                raise NotFoundError("Choice not found", code="CHOICE_NOT_FOUND", details={"choice_id": choice_id})

            state = _player_state(record)
            allowed, trace = evaluate_condition_trace(choice.condition, state)
            if not allowed:
                logger.info("session %s: choice %s rejected, condition does not hold", session_id, choice_id)
                raise ChoiceUnavailableError(
                    "Choice is not available in the current game state",
                    details={"choice_id": choice_id, "trace": trace},
                )

            next_node = self._require_node(schema, choice.to_node_id)
            next_state, skipped = apply_effects(choice.effects, state, schema.item_catalog())
            for entry in skipped:
                logger.warning(
                    "session %s: choice %s effect #%s (%s) skipped: %s",
                    session_id,
                    choice_id,
                    entry["index"],
                    entry["type"],
                    entry["reason"],
                )
            if game_state_update:
                next_state = merge_game_state(next_state, game_state_update)
            next_state.current_node_id = next_node.id

            now = self._clock()
            completed = next_node.is_ending
            updated = self._sessions.update_session(
                session_id,
                current_node_id=next_node.id,
                game_state=next_state.to_game_state(),
                is_completed=completed,
                completed_at=now if completed else None,
                last_played_at=now,
            )
            if completed:
                logger.info("play session %s completed at node %s", session_id, next_node.id)
            return ChoiceResultOut(
                session=_session_out(updated),
                next_node=_node_out(next_node),
                choices=self._visible_choices(schema, updated),
                completed=completed,
            )

    def update_game_state(self, user_id: str, session_id: uuid.UUID, patch: UpdateGameStateRequest) -> SessionOut:
        """Direct overwrite for authoring and debugging; skips conditions and effects."""
        with self._locks.hold(session_id), self._sessions.transaction():
            record = self._require_owned_session(user_id, session_id, for_update=True)
            now = self._clock()
            changes: dict[str, Any] = {"last_played_at": now}

            is_completed = patch.is_completed
            if patch.current_node_id is not None:
                schema = self._require_schema(record.story_id)
                node = self._require_node(schema, patch.current_node_id)
                changes["current_node_id"] = node.id
                if is_completed is None and node.is_ending and not record.is_completed:
                    is_completed = True

            if patch.game_state is not None:
                merged = merge_game_state(_player_state(record), patch.game_state)
                changes["game_state"] = merged.to_game_state()

            if is_completed is not None:
                changes["is_completed"] = is_completed
                changes["completed_at"] = now if is_completed else None

            return _session_out(self._sessions.update_session(session_id, **changes))

    def save_game(self, user_id: str, session_id: uuid.UUID, save_name: str | None = None) -> SavedGameOut:
        with self._locks.hold(session_id), self._sessions.transaction():
            record = self._require_owned_session(user_id, session_id)
            now = self._clock()
            name = (save_name or "").strip() or f"Save at {now:%Y-%m-%d %H:%M:%S}"
            saved = self._sessions.create_saved_game(
                user_id=user_id,
                session_id=record.id,
                story_id=record.story_id,
                save_name=name,
                current_node_id=record.current_node_id,
                game_state=record.game_state,
                is_completed=record.is_completed,
                now=now,
            )
            logger.info("session %s saved as %s (%r)", session_id, saved.id, name)
            return _saved_game_out(saved)

    def list_saved_games(self, user_id: str, story_id: str | None = None) -> list[SavedGameOut]:
        with self._sessions.transaction():
            return [_saved_game_out(record) for record in self._sessions.list_saved_games(user_id, story_id)]

    def load_saved_game(self, user_id: str, saved_game_id: uuid.UUID) -> LoadGameOut:
        with self._sessions.transaction():
            saved = self._require_owned_saved_game(user_id, saved_game_id)
            target_id = saved.session_id

        # The snapshot's own session, when it still exists, is overwritten
        # under its lock; otherwise a fresh session is created.
        if target_id is not None:
            with self._locks.hold(target_id), self._sessions.transaction():
                saved = self._require_owned_saved_game(user_id, saved_game_id)
                live = self._sessions.get_session(target_id, for_update=True)
                if live is not None and live.user_id == user_id:
                    self._require_schema(saved.story_id)
                    now = self._clock()
                    restored = self._sessions.update_session(
                        live.id,
                        current_node_id=saved.current_node_id,
                        game_state=saved.game_state,
                        is_completed=saved.is_completed,
                        completed_at=now if saved.is_completed else None,
                        last_played_at=now,
                    )
                    logger.info("saved game %s loaded into session %s", saved.id, live.id)
                    return LoadGameOut(session=_session_out(restored), saved_game=_saved_game_out(saved))

        with self._sessions.transaction():
            saved = self._require_owned_saved_game(user_id, saved_game_id)
            self._require_schema(saved.story_id)
            created = self._sessions.create_session(
                story_id=saved.story_id,
                user_id=user_id,
                current_node_id=saved.current_node_id,
                game_state=saved.game_state,
                is_completed=saved.is_completed,
                now=self._clock(),
            )
            logger.info("saved game %s loaded into new session %s", saved.id, created.id)
            return LoadGameOut(session=_session_out(created), saved_game=_saved_game_out(saved))

    def delete_saved_game(self, user_id: str, saved_game_id: uuid.UUID) -> DeleteSavedGameOut:
        with self._sessions.transaction():
            self._require_owned_saved_game(user_id, saved_game_id)
            self._sessions.delete_saved_game(saved_game_id)
            logger.info("saved game %s deleted", saved_game_id)
            return DeleteSavedGameOut(deleted=True, saved_game_id=saved_game_id)
