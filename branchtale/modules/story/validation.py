from __future__ import annotations

from branchtale.modules.mechanics.state import (
    ItemDecl,
    NodeDecl,
    NodeType,
    StorySchema,
    VariableDecl,
    VariableType,
)
from branchtale.modules.mechanics.validation import validate_conditions_and_effects
from branchtale.modules.story.schemas import StoryPack


def declarations_schema(pack: StoryPack) -> StorySchema:
    """Declarations of ``pack`` only; enough to validate choice mechanics."""
    return StorySchema(
        story_id=pack.id,
        author_id=pack.author_id,
        title=pack.title,
        is_published=pack.is_published,
        start_node_id=pack.start_node_id,
        variables=tuple(
            VariableDecl(name=v.name, var_type=VariableType(v.type), default_value=v.default_value)
            for v in pack.variables
        ),
        items=tuple(ItemDecl(id=i.id, name=i.name, description=i.description) for i in pack.items),
        nodes=tuple(NodeDecl(id=n.id, title=n.title, content=n.content, node_type=NodeType(n.type)) for n in pack.nodes),
    )


def validate_story_pack_structural(pack: StoryPack) -> list[str]:
    errors: list[str] = []
    node_ids = {n.id for n in pack.nodes}
    ending_ids = {n.id for n in pack.nodes if n.type == NodeType.ENDING.value}

    def _track_duplicates(label: str, values: list[str]) -> None:
        seen: set[str] = set()
        for value in values:
            if value in seen:
                errors.append(f"DUPLICATE_{label}:{value}")
            seen.add(value)

    _track_duplicates("VARIABLE_NAME", [v.name for v in pack.variables])
    _track_duplicates("ITEM_ID", [i.id for i in pack.items])
    _track_duplicates("NODE_ID", [n.id for n in pack.nodes])
    _track_duplicates("CHOICE_ID", [c.id for c in pack.choices])

    if not pack.nodes:
        errors.append("NO_NODES")
    if pack.start_node_id is not None and pack.start_node_id not in node_ids:
        errors.append(f"MISSING_START_NODE:{pack.start_node_id}")

    for choice in pack.choices:
        if choice.from_node_id not in node_ids:
            errors.append(f"DANGLING_CHOICE_FROM_NODE:{choice.id}->{choice.from_node_id}")
        if choice.to_node_id not in node_ids:
            errors.append(f"DANGLING_CHOICE_TO_NODE:{choice.id}->{choice.to_node_id}")
        if choice.from_node_id in ending_ids:
            errors.append(f"ENDING_NODE_HAS_CHOICE:{choice.from_node_id}:{choice.id}")
    return errors


def validate_story_pack(pack: StoryPack) -> list[str]:
    errors = validate_story_pack_structural(pack)
    schema = declarations_schema(pack)
    for choice in pack.choices:
        result = validate_conditions_and_effects(choice.condition, choice.effects, schema)
        errors.extend(f"choice {choice.id}: {message}" for message in result.errors)
    return errors
