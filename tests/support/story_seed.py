from __future__ import annotations

import copy

from sqlalchemy import delete

from branchtale.db import session as db_session
from branchtale.db.models import Story
from branchtale.modules.story.packs import import_story_pack

AUTHOR_ID = "author-1"


def health_story_pack(story_id: str = "health_story", *, is_published: bool = True, id_prefix: str = "") -> dict:
    """Small dungeon: a potion raises hp, the vault needs hp > 55 and the potion.

    Node and choice ids are global, so a second copy of the story in one
    database needs ``id_prefix``.
    """
    pack = copy.deepcopy(
        {
            "id": story_id,
            "title": "Health Story",
            "description": "Drink, walk, open the vault.",
            "author_id": AUTHOR_ID,
            "is_published": is_published,
            "start_node_id": "start",
            "variables": [
                {"name": "hp", "type": "integer", "default_value": 50},
                {"name": "has_map", "type": "boolean", "default_value": False},
                {"name": "title", "type": "string", "default_value": "novice"},
            ],
            "items": [
                {"id": "potion", "name": "Potion", "description": "Restores ten hp"},
                {"id": "key", "name": "Key"},
            ],
            "nodes": [
                {"id": "start", "title": "Start", "content": "A dusty room.", "type": "story"},
                {"id": "hall", "title": "Hall", "content": "A long hall.", "type": "choice"},
                {"id": "vault", "title": "Vault", "content": "Treasure!", "type": "ending"},
                {"id": "graveyard", "title": "Graveyard", "content": "You collapse.", "type": "ending"},
            ],
            "choices": [
                {
                    "id": "c_drink",
                    "from_node_id": "start",
                    "to_node_id": "hall",
                    "text": "Drink from the fountain",
                    "effects": [
                        {"type": "add_item", "item_id": "potion"},
                        {"type": "modify_variable", "variable_name": "hp", "operator": "add", "amount": 10},
                    ],
                },
                {"id": "c_walk", "from_node_id": "start", "to_node_id": "hall", "text": "Walk on"},
                {
                    "id": "c_locked",
                    "from_node_id": "start",
                    "to_node_id": "vault",
                    "text": "Unlock the trapdoor",
                    "condition": {"type": "item", "item_id": "key"},
                },
                {
                    "id": "c_collapse",
                    "from_node_id": "hall",
                    "to_node_id": "graveyard",
                    "text": "Lie down",
                    "condition": {"type": "variable", "variable_name": "hp", "operator": "lt", "value": 30},
                },
                {
                    "id": "c_vault",
                    "from_node_id": "hall",
                    "to_node_id": "vault",
                    "text": "Open the vault",
                    "condition": {
                        "type": "and",
                        "conditions": [
                            {"type": "variable", "variable_name": "hp", "operator": "gt", "value": 55},
                            {"type": "item", "item_id": "potion"},
                        ],
                    },
                    "effects": [
                        {"type": "remove_item", "item_id": "potion"},
                        {"type": "set_variable", "variable_name": "title", "value": "hero"},
                    ],
                },
                {
                    "id": "c_back",
                    "from_node_id": "hall",
                    "to_node_id": "start",
                    "text": "Go back",
                    "effects": [
                        {"type": "modify_variable", "variable_name": "hp", "operator": "sub", "amount": 5},
                    ],
                },
            ],
        }
    )
    if id_prefix:
        _prefix_ids(pack, id_prefix)
    return pack


def _prefix_ids(pack: dict, prefix: str) -> None:
    pack["start_node_id"] = prefix + pack["start_node_id"]
    for node in pack["nodes"]:
        node["id"] = prefix + node["id"]
    for choice in pack["choices"]:
        choice["id"] = prefix + choice["id"]
        choice["from_node_id"] = prefix + choice["from_node_id"]
        choice["to_node_id"] = prefix + choice["to_node_id"]


def seed_story_pack(*, pack: dict) -> str:
    with db_session.SessionLocal() as db:
        return import_story_pack(db, pack)


def clear_story(story_id: str) -> None:
    with db_session.SessionLocal() as db:
        with db.begin():
            db.execute(delete(Story).where(Story.id == str(story_id)))
