from branchtale.db.base import Base
from branchtale.db.models import (  # noqa: F401
    PlaySession,
    SavedGame,
    Story,
    StoryChoice,
    StoryItem,
    StoryNode,
    StoryVariable,
)
from branchtale.db import session as db_session


def init_db() -> None:
    Base.metadata.create_all(bind=db_session.engine)
