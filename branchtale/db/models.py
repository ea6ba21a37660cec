import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from branchtale.db.base import Base
from branchtale.db.types import GUID, JSONType
from branchtale.utils.time import utc_now_naive


def _new_id() -> str:
    return str(uuid.uuid4())


class Story(Base):
    __tablename__ = "stories"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    author_id: Mapped[str] = mapped_column(String(128), index=True)
    title: Mapped[str] = mapped_column(String(255), default="")
    description: Mapped[str] = mapped_column(Text, default="")
    start_node_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    is_published: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now_naive, index=True)


class StoryVariable(Base):
    __tablename__ = "story_variables"
    __table_args__ = (
        UniqueConstraint("story_id", "name", name="uq_story_variables_story_name"),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    story_id: Mapped[str] = mapped_column(String(64), ForeignKey("stories.id", ondelete="CASCADE"), index=True)
    name: Mapped[str] = mapped_column(String(100))
    var_type: Mapped[str] = mapped_column(String(16), default="string")
    default_value: Mapped[Any] = mapped_column(JSONType, nullable=True)
    position: Mapped[int] = mapped_column(Integer, default=0)


class StoryItem(Base):
    __tablename__ = "story_items"
    __table_args__ = (
        UniqueConstraint("story_id", "item_id", name="uq_story_items_story_item"),
    )

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    story_id: Mapped[str] = mapped_column(String(64), ForeignKey("stories.id", ondelete="CASCADE"), index=True)
    item_id: Mapped[str] = mapped_column(String(64))
    name: Mapped[str] = mapped_column(String(100), default="")
    description: Mapped[str] = mapped_column(Text, default="")


class StoryNode(Base):
    __tablename__ = "story_nodes"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    story_id: Mapped[str] = mapped_column(String(64), ForeignKey("stories.id", ondelete="CASCADE"), index=True)
    title: Mapped[str] = mapped_column(String(255), default="")
    content: Mapped[str] = mapped_column(Text, default="")
    node_type: Mapped[str] = mapped_column(String(16), default="story")
    position: Mapped[int] = mapped_column(Integer, default=0)


class StoryChoice(Base):
    __tablename__ = "story_choices"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=_new_id)
    story_id: Mapped[str] = mapped_column(String(64), ForeignKey("stories.id", ondelete="CASCADE"), index=True)
    from_node_id: Mapped[str] = mapped_column(String(64), ForeignKey("story_nodes.id", ondelete="CASCADE"), index=True)
    to_node_id: Mapped[str] = mapped_column(String(64), ForeignKey("story_nodes.id", ondelete="CASCADE"), index=True)
    text: Mapped[str] = mapped_column(Text, default="")
    position: Mapped[int] = mapped_column(Integer, default=0)
    condition: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    effects: Mapped[list] = mapped_column(JSONType, default=list)


class PlaySession(Base):
    __tablename__ = "play_sessions"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    story_id: Mapped[str] = mapped_column(String(64), ForeignKey("stories.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[str] = mapped_column(String(128), index=True)
    current_node_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    game_state: Mapped[dict] = mapped_column(JSONType, default=dict)
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    started_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now_naive, index=True)
    last_played_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now_naive, index=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class SavedGame(Base):
    __tablename__ = "saved_games"

    id: Mapped[uuid.UUID] = mapped_column(GUID(), primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String(128), index=True)
    session_id: Mapped[uuid.UUID | None] = mapped_column(
        GUID(), ForeignKey("play_sessions.id", ondelete="SET NULL"), nullable=True, index=True
    )
    story_id: Mapped[str] = mapped_column(String(64), ForeignKey("stories.id", ondelete="CASCADE"), index=True)
    save_name: Mapped[str] = mapped_column(String(255), default="")
    current_node_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    game_state: Mapped[dict] = mapped_column(JSONType, default=dict)
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now_naive, index=True)


Index("ix_story_choices_from_position", StoryChoice.from_node_id, StoryChoice.position)
Index("ix_play_sessions_user_story", PlaySession.user_id, PlaySession.story_id)
