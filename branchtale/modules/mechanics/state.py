from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from branchtale.modules.mechanics.conditions import Condition
    from branchtale.modules.mechanics.effects import Effect

GAME_STATE_VARIABLES_KEY = "variables"
GAME_STATE_INVENTORY_KEY = "inventory"


class VariableType(str, Enum):
    INTEGER = "integer"
    BOOLEAN = "boolean"
    STRING = "string"
    FLOAT = "float"


class NodeType(str, Enum):
    STORY = "story"
    CHOICE = "choice"
    CONDITION = "condition"
    ENDING = "ending"


_ZERO_VALUES: dict[VariableType, Any] = {
    VariableType.INTEGER: 0,
    VariableType.BOOLEAN: False,
    VariableType.STRING: "",
    VariableType.FLOAT: 0.0,
}


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def value_matches_type(var_type: VariableType, value: Any) -> bool:
    if var_type is VariableType.INTEGER:
        return isinstance(value, int) and not isinstance(value, bool)
    if var_type is VariableType.FLOAT:
        return is_number(value)
    if var_type is VariableType.BOOLEAN:
        return isinstance(value, bool)
    return isinstance(value, str)


@dataclass(frozen=True, slots=True)
class VariableDecl:
    name: str
    var_type: VariableType
    default_value: Any = None

    def initial_value(self) -> Any:
        if self.default_value is None:
            return _ZERO_VALUES[self.var_type]
        return copy.deepcopy(self.default_value)


@dataclass(frozen=True, slots=True)
class ItemDecl:
    id: str
    name: str
    description: str = ""


@dataclass(frozen=True, slots=True)
class NodeDecl:
    id: str
    title: str
    content: str
    node_type: NodeType

    @property
    def is_ending(self) -> bool:
        return self.node_type is NodeType.ENDING


@dataclass(frozen=True, slots=True)
class ChoiceDecl:
    id: str
    from_node_id: str
    to_node_id: str
    text: str
    condition: Condition | None = None
    effects: tuple[Effect, ...] = ()


@dataclass(frozen=True, slots=True)
class StorySchema:
    """Everything an author declared for one story, in declaration order."""

    story_id: str
    author_id: str
    title: str = ""
    is_published: bool = False
    start_node_id: str | None = None
    variables: tuple[VariableDecl, ...] = ()
    items: tuple[ItemDecl, ...] = ()
    nodes: tuple[NodeDecl, ...] = ()
    choices: tuple[ChoiceDecl, ...] = ()

    def variable(self, name: str) -> VariableDecl | None:
        for decl in self.variables:
            if decl.name == name:
                return decl
        return None

    def item_catalog(self) -> frozenset[str]:
        return frozenset(item.id for item in self.items)

    def node(self, node_id: str | None) -> NodeDecl | None:
        if not node_id:
            return None
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def choice(self, choice_id: str | None) -> ChoiceDecl | None:
        if not choice_id:
            return None
        for choice in self.choices:
            if choice.id == choice_id:
                return choice
        return None

    def choices_from(self, node_id: str) -> list[ChoiceDecl]:
        return [choice for choice in self.choices if choice.from_node_id == node_id]

    def default_start_node(self) -> NodeDecl | None:
        start = self.node(self.start_node_id)
        if start is not None:
            return start
        return self.nodes[0] if self.nodes else None


def _unique_item_ids(values: Any) -> list[str]:
    if not isinstance(values, (list, tuple, set, frozenset)):
        return []
    out: list[str] = []
    seen: set[str] = set()
    for value in values:
        if not isinstance(value, str):
            continue
        item_id = value.strip()
        if not item_id or item_id in seen:
            continue
        seen.add(item_id)
        out.append(item_id)
    return out


@dataclass
class PlayerState:
    """Mutable per-session game state.

    ``extras`` holds author-declared custom fields that arrive through
    client game-state updates; they ride along untouched by effects.
    """

    variables: dict[str, Any] = field(default_factory=dict)
    inventory: list[str] = field(default_factory=list)
    current_node_id: str | None = None
    extras: dict[str, Any] = field(default_factory=dict)

    def has_item(self, item_id: str) -> bool:
        return item_id in self.inventory

    def copy(self) -> PlayerState:
        return PlayerState(
            variables=copy.deepcopy(self.variables),
            inventory=list(self.inventory),
            current_node_id=self.current_node_id,
            extras=copy.deepcopy(self.extras),
        )

    def to_game_state(self) -> dict[str, Any]:
        payload = copy.deepcopy(self.extras)
        payload[GAME_STATE_VARIABLES_KEY] = copy.deepcopy(self.variables)
        payload[GAME_STATE_INVENTORY_KEY] = list(self.inventory)
        return payload

    @classmethod
    def from_game_state(cls, game_state: Any, current_node_id: str | None = None) -> PlayerState:
        raw = game_state if isinstance(game_state, dict) else {}
        variables = raw.get(GAME_STATE_VARIABLES_KEY)
        extras = {
            key: copy.deepcopy(value)
            for key, value in raw.items()
            if key not in {GAME_STATE_VARIABLES_KEY, GAME_STATE_INVENTORY_KEY}
        }
        return cls(
            variables=copy.deepcopy(variables) if isinstance(variables, dict) else {},
            inventory=_unique_item_ids(raw.get(GAME_STATE_INVENTORY_KEY)),
            current_node_id=current_node_id,
            extras=extras,
        )


def initial_player_state(schema: StorySchema, current_node_id: str | None = None) -> PlayerState:
    return PlayerState(
        variables={decl.name: decl.initial_value() for decl in schema.variables},
        inventory=[],
        current_node_id=current_node_id,
    )


def merge_game_state(state: PlayerState, patch: dict[str, Any] | None) -> PlayerState:
    """Overlay a client-supplied partial game state; the patch wins.

    ``variables`` merges key by key, every other top-level key replaces.
    """
    merged = state.copy()
    if not patch:
        return merged
    for key, value in patch.items():
        if key == GAME_STATE_VARIABLES_KEY:
            if isinstance(value, dict):
                merged.variables.update(copy.deepcopy(value))
        elif key == GAME_STATE_INVENTORY_KEY:
            merged.inventory = _unique_item_ids(value)
        else:
            merged.extras[key] = copy.deepcopy(value)
    return merged
