from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from branchtale.db.models import Story, StoryChoice, StoryItem, StoryNode, StoryVariable
from branchtale.modules.mechanics.errors import MechanicsValidationError
from branchtale.modules.story.schemas import StoryPack
from branchtale.modules.story.validation import validate_story_pack

logger = logging.getLogger(__name__)


def load_pack_json(path: Path) -> dict:
    payload = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(payload, dict):
        raise ValueError(f"story file must contain a JSON object: {path}")
    return payload


def _ids_owned_elsewhere(db: Session, pack: StoryPack) -> list[str]:
    errors: list[str] = []
    for label, model, ids in (
        ("NODE_ID_TAKEN", StoryNode, [n.id for n in pack.nodes]),
        ("CHOICE_ID_TAKEN", StoryChoice, [c.id for c in pack.choices]),
    ):
        if not ids:
            continue
        rows = db.execute(
            select(model.id, model.story_id).where(model.id.in_(ids), model.story_id != pack.id)
        ).all()
        errors.extend(f"{label}:{row_id}->{owner}" for row_id, owner in rows)
    return errors


def import_story_pack(db: Session, payload: StoryPack | dict[str, Any]) -> str:
    """Write a validated story into the story tables, replacing any story
    with the same id. Nothing is written when validation fails."""
    pack = payload if isinstance(payload, StoryPack) else StoryPack.model_validate(payload)
    errors = validate_story_pack(pack)
    if errors:
        raise MechanicsValidationError(errors, message=f"Story pack '{pack.id}' failed validation")

    with db.begin():
        taken = _ids_owned_elsewhere(db, pack)
        if taken:
            raise MechanicsValidationError(taken, message=f"Story pack '{pack.id}' reuses ids of another story")

        story = db.get(Story, pack.id)
        if story is None:
            story = Story(id=pack.id, author_id=pack.author_id)
            db.add(story)
        else:
            for model in (StoryChoice, StoryNode, StoryItem, StoryVariable):
                db.execute(delete(model).where(model.story_id == pack.id))
        story.author_id = pack.author_id
        story.title = pack.title
        story.description = pack.description
        story.start_node_id = pack.start_node_id
        story.is_published = pack.is_published
        db.flush()

        for position, variable in enumerate(pack.variables):
            db.add(
                StoryVariable(
                    story_id=pack.id,
                    name=variable.name,
                    var_type=variable.type,
                    default_value=variable.default_value,
                    position=position,
                )
            )
        for item in pack.items:
            db.add(StoryItem(story_id=pack.id, item_id=item.id, name=item.name, description=item.description))
        for position, node in enumerate(pack.nodes):
            db.add(
                StoryNode(
                    id=node.id,
                    story_id=pack.id,
                    title=node.title,
                    content=node.content,
                    node_type=node.type,
                    position=position,
                )
            )
        db.flush()
        for position, choice in enumerate(pack.choices):
            db.add(
                StoryChoice(
                    id=choice.id,
                    story_id=pack.id,
                    from_node_id=choice.from_node_id,
                    to_node_id=choice.to_node_id,
                    text=choice.text,
                    position=position,
                    condition=choice.condition,
                    effects=list(choice.effects),
                )
            )

    logger.info(
        "imported story %s: %d nodes, %d choices, %d variables, %d items",
        pack.id,
        len(pack.nodes),
        len(pack.choices),
        len(pack.variables),
        len(pack.items),
    )
    return pack.id
