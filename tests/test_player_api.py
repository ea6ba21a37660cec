from __future__ import annotations

import uuid

from fastapi.testclient import TestClient

import branchtale.main as main_module
from branchtale.config import settings
from branchtale.main import app
from branchtale.modules.auth.deps import create_access_token
from branchtale.modules.player.locks import SessionLockRegistry
from tests.support.story_seed import AUTHOR_ID, health_story_pack, seed_story_pack


def _auth(user_id: str = "player-1") -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


def _start(client: TestClient, user_id: str = "player-1") -> dict:
    res = client.post("/player/sessions", json={"story_id": "health_story"}, headers=_auth(user_id))
    assert res.status_code == 201, res.text
    return res.json()


def test_create_app_reads_settings_and_initialises_db(monkeypatch) -> None:
    calls = {"init_db": 0}

    def _fake_init_db() -> None:
        calls["init_db"] += 1

    monkeypatch.setattr(main_module, "init_db", _fake_init_db)
    monkeypatch.setattr(settings, "app_name", "Lost Temple Engine")
    monkeypatch.setattr(settings, "session_lock_timeout_s", 2.5)

    fresh = main_module.create_app()
    assert fresh.title == "Lost Temple Engine"
    assert isinstance(fresh.state.session_locks, SessionLockRegistry)
    assert fresh.state.session_locks.timeout_s == 2.5
    assert fresh.state.session_locks is not app.state.session_locks

    with TestClient(fresh) as client:
        res = client.get("/health")
    assert res.status_code == 200
    assert res.json() == {"status": "ok"}
    assert calls["init_db"] == 1


def test_player_routes_require_bearer_token() -> None:
    seed_story_pack(pack=health_story_pack())
    client = TestClient(app)

    res = client.post("/player/sessions", json={"story_id": "health_story"})
    assert res.status_code == 401
    assert res.json()["detail"]["code"] == "UNAUTHORIZED"

    res = client.get("/player/sessions", headers={"Authorization": "Bearer not-a-jwt"})
    assert res.status_code == 401

    expired = create_access_token("player-1", expires_minutes=-10)
    res = client.get("/player/sessions", headers={"Authorization": f"Bearer {expired}"})
    assert res.status_code == 401
    assert res.json()["detail"]["message"] == "Access token expired"


def test_play_save_and_load_over_http() -> None:
    seed_story_pack(pack=health_story_pack())
    client = TestClient(app)

    view = _start(client)
    session_id = view["session"]["id"]
    assert view["node"]["id"] == "start"
    assert [c["id"] for c in view["choices"]] == ["c_drink", "c_walk"]

    res = client.get(f"/player/sessions/{session_id}/choices", params={"include_unavailable": True}, headers=_auth())
    assert res.status_code == 200
    assert [(c["id"], c["is_available"]) for c in res.json()] == [
        ("c_drink", True),
        ("c_walk", True),
        ("c_locked", False),
    ]

    res = client.post(f"/player/sessions/{session_id}/choices", json={"choice_id": "c_drink"}, headers=_auth())
    assert res.status_code == 200
    body = res.json()
    assert body["next_node"]["id"] == "hall"
    assert body["session"]["game_state"]["variables"]["hp"] == 60

    res = client.post(f"/player/sessions/{session_id}/save", json={"save_name": "checkpoint"}, headers=_auth())
    assert res.status_code == 201
    saved = res.json()
    assert saved["save_name"] == "checkpoint"

    res = client.post(f"/player/sessions/{session_id}/choices", json={"choice_id": "c_vault"}, headers=_auth())
    assert res.status_code == 200
    assert res.json()["completed"] is True

    res = client.get("/player/saved-games", headers=_auth())
    assert [s["id"] for s in res.json()] == [saved["id"]]

    res = client.post("/player/saved-games/load", json={"saved_game_id": saved["id"]}, headers=_auth())
    assert res.status_code == 200
    restored = res.json()["session"]
    assert restored["id"] == session_id
    assert restored["current_node_id"] == "hall"
    assert restored["is_completed"] is False

    res = client.get(f"/player/sessions/{session_id}/details", headers=_auth())
    assert res.json()["game_state"]["inventory"] == ["potion"]

    res = client.delete(f"/player/saved-games/{saved['id']}", headers=_auth())
    assert res.json() == {"deleted": True, "saved_game_id": saved["id"]}
    assert client.get("/player/saved-games", headers=_auth()).json() == []


def test_engine_errors_share_one_detail_shape() -> None:
    seed_story_pack(pack=health_story_pack())
    client = TestClient(app)
    session_id = _start(client)["session"]["id"]

    res = client.post(f"/player/sessions/{session_id}/choices", json={"choice_id": "c_locked"}, headers=_auth())
    assert res.status_code == 403
    detail = res.json()["detail"]
    assert detail["code"] == "CHOICE_UNAVAILABLE"
    assert detail["choice_id"] == "c_locked"
    assert detail["trace"] == {"op": "item", "item_id": "key", "result": False}

    res = client.get(f"/player/sessions/{uuid.uuid4()}", headers=_auth())
    assert res.status_code == 404
    assert res.json()["detail"]["code"] == "SESSION_NOT_FOUND"

    res = client.get(f"/player/sessions/{session_id}", headers=_auth("player-2"))
    assert res.status_code == 403
    assert res.json()["detail"]["code"] == "FORBIDDEN"

    res = client.post("/player/sessions", json={"story_id": "missing"}, headers=_auth())
    assert res.status_code == 404
    assert res.json()["detail"]["code"] == "STORY_NOT_FOUND"


def test_patch_session_and_save_without_body() -> None:
    seed_story_pack(pack=health_story_pack())
    client = TestClient(app)
    session_id = _start(client)["session"]["id"]

    res = client.patch(
        f"/player/sessions/{session_id}",
        json={"current_node_id": "hall", "game_state": {"variables": {"has_map": True}}},
        headers=_auth(),
    )
    assert res.status_code == 200
    assert res.json()["current_node_id"] == "hall"
    assert res.json()["game_state"]["variables"] == {"hp": 50, "has_map": True, "title": "novice"}

    res = client.post(f"/player/sessions/{session_id}/save", headers=_auth())
    assert res.status_code == 201
    assert res.json()["save_name"].startswith("Save at ")

    res = client.get("/player/sessions", params={"story_id": "health_story"}, headers=_auth())
    assert [s["id"] for s in res.json()] == [session_id]


def test_validate_mechanics_endpoint_is_author_only() -> None:
    seed_story_pack(pack=health_story_pack())
    client = TestClient(app)
    payload = {
        "condition": {"type": "variable", "variable_name": "mana", "operator": "eq", "value": 1},
        "effects": [{"type": "add_item", "item_id": "potion"}],
    }

    res = client.post("/stories/health_story/mechanics/validate", json=payload, headers=_auth(AUTHOR_ID))
    assert res.status_code == 200
    assert res.json() == {"valid": False, "errors": ["condition: Variable 'mana' does not exist in story"]}

    res = client.post(
        "/stories/health_story/mechanics/validate",
        json={"condition": None, "effects": []},
        headers=_auth(AUTHOR_ID),
    )
    assert res.json() == {"valid": True, "errors": []}

    res = client.post("/stories/health_story/mechanics/validate", json=payload, headers=_auth("player-1"))
    assert res.status_code == 403

    res = client.post("/stories/missing/mechanics/validate", json=payload, headers=_auth(AUTHOR_ID))
    assert res.status_code == 404
