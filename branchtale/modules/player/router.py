import uuid

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from branchtale.config import settings
from branchtale.db.session import get_db
from branchtale.modules.auth.deps import require_player_id
from branchtale.modules.player.locks import SessionLockRegistry
from branchtale.modules.player.repository import SqlSessionRepository, SqlStoryRepository
from branchtale.modules.player.schemas import (
    ChoiceOut,
    ChoiceResultOut,
    DeleteSavedGameOut,
    LoadGameOut,
    LoadGameRequest,
    MakeChoiceRequest,
    SavedGameOut,
    SaveGameRequest,
    SessionOut,
    SessionViewOut,
    StartSessionRequest,
    UpdateGameStateRequest,
)
from branchtale.modules.player.service import PlayerService

router = APIRouter(prefix="/player", tags=["player"])


def get_player_service(request: Request, db: Session = Depends(get_db)) -> PlayerService:
    locks = getattr(request.app.state, "session_locks", None)
    if locks is None:
        locks = SessionLockRegistry(timeout_s=settings.session_lock_timeout_s)
        request.app.state.session_locks = locks
    return PlayerService(
        SqlStoryRepository(db),
        SqlSessionRepository(db),
        locks,
        require_published_story=settings.require_published_story,
    )


@router.post("/sessions", response_model=SessionViewOut, status_code=201)
def start_session(
    payload: StartSessionRequest,
    player_id: str = Depends(require_player_id),
    service: PlayerService = Depends(get_player_service),
):
    return service.start_session(player_id, payload.story_id, payload.starting_node_id)


@router.get("/sessions", response_model=list[SessionOut])
def list_sessions(
    story_id: str | None = Query(default=None),
    player_id: str = Depends(require_player_id),
    service: PlayerService = Depends(get_player_service),
):
    return service.list_sessions(player_id, story_id)


@router.get("/sessions/{session_id}", response_model=SessionViewOut)
def get_current_node(
    session_id: uuid.UUID,
    player_id: str = Depends(require_player_id),
    service: PlayerService = Depends(get_player_service),
):
    return service.get_current_node(player_id, session_id)


@router.get("/sessions/{session_id}/details", response_model=SessionOut)
def get_session(
    session_id: uuid.UUID,
    player_id: str = Depends(require_player_id),
    service: PlayerService = Depends(get_player_service),
):
    return service.get_session(player_id, session_id)


@router.get("/sessions/{session_id}/choices", response_model=list[ChoiceOut])
def get_available_choices(
    session_id: uuid.UUID,
    include_unavailable: bool = Query(default=False),
    player_id: str = Depends(require_player_id),
    service: PlayerService = Depends(get_player_service),
):
    return service.get_available_choices(player_id, session_id, include_unavailable=include_unavailable)


@router.post("/sessions/{session_id}/choices", response_model=ChoiceResultOut)
def make_choice(
    session_id: uuid.UUID,
    payload: MakeChoiceRequest,
    player_id: str = Depends(require_player_id),
    service: PlayerService = Depends(get_player_service),
):
    return service.make_choice(player_id, session_id, payload.choice_id, payload.game_state_update)


@router.patch("/sessions/{session_id}", response_model=SessionOut)
def update_game_state(
    session_id: uuid.UUID,
    payload: UpdateGameStateRequest,
    player_id: str = Depends(require_player_id),
    service: PlayerService = Depends(get_player_service),
):
    return service.update_game_state(player_id, session_id, payload)


@router.post("/sessions/{session_id}/save", response_model=SavedGameOut, status_code=201)
def save_game(
    session_id: uuid.UUID,
    payload: SaveGameRequest | None = None,
    player_id: str = Depends(require_player_id),
    service: PlayerService = Depends(get_player_service),
):
    return service.save_game(player_id, session_id, payload.save_name if payload else None)


@router.get("/saved-games", response_model=list[SavedGameOut])
def list_saved_games(
    story_id: str | None = Query(default=None),
    player_id: str = Depends(require_player_id),
    service: PlayerService = Depends(get_player_service),
):
    return service.list_saved_games(player_id, story_id)


@router.post("/saved-games/load", response_model=LoadGameOut)
def load_saved_game(
    payload: LoadGameRequest,
    player_id: str = Depends(require_player_id),
    service: PlayerService = Depends(get_player_service),
):
    return service.load_saved_game(player_id, payload.saved_game_id)


@router.delete("/saved-games/{saved_game_id}", response_model=DeleteSavedGameOut)
def delete_saved_game(
    saved_game_id: uuid.UUID,
    player_id: str = Depends(require_player_id),
    service: PlayerService = Depends(get_player_service),
):
    return service.delete_saved_game(player_id, saved_game_id)
