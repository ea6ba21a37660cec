from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from branchtale.modules.mechanics.payloads import (
    ARITHMETIC_OPERATOR_ALIASES,
    normalize_operator,
    payload_field,
    payload_kind,
    payload_text,
)
from branchtale.modules.mechanics.state import PlayerState, is_number


class EffectKind(str, Enum):
    SET_VARIABLE = "set_variable"
    MODIFY_VARIABLE = "modify_variable"
    ADD_ITEM = "add_item"
    REMOVE_ITEM = "remove_item"


class ArithmeticOperator(str, Enum):
    ADD = "add"
    SUB = "sub"
    MUL = "mul"
    DIV = "div"


ARITHMETIC_OPERATORS = frozenset(op.value for op in ArithmeticOperator)


@dataclass(frozen=True, slots=True)
class SetVariableEffect:
    name: str | None
    value: Any = None


@dataclass(frozen=True, slots=True)
class ModifyVariableEffect:
    name: str | None
    operator: str | None
    amount: Any = None


@dataclass(frozen=True, slots=True)
class AddItemEffect:
    item_id: str | None


@dataclass(frozen=True, slots=True)
class RemoveItemEffect:
    item_id: str | None


@dataclass(frozen=True, slots=True)
class UnknownEffect:
    kind: str


Effect = Union[SetVariableEffect, ModifyVariableEffect, AddItemEffect, RemoveItemEffect, UnknownEffect]


def parse_effect(raw: Any) -> Effect:
    if not isinstance(raw, dict):
        return UnknownEffect(kind=type(raw).__name__)
    kind = payload_kind(raw)
    if kind == EffectKind.SET_VARIABLE.value:
        return SetVariableEffect(name=payload_text(raw, "variable_name", "variableName"), value=raw.get("value"))
    if kind == EffectKind.MODIFY_VARIABLE.value:
        return ModifyVariableEffect(
            name=payload_text(raw, "variable_name", "variableName"),
            operator=normalize_operator(raw.get("operator"), ARITHMETIC_OPERATOR_ALIASES),
            amount=payload_field(raw, "amount"),
        )
    if kind == EffectKind.ADD_ITEM.value:
        return AddItemEffect(item_id=payload_text(raw, "item_id", "itemId"))
    if kind == EffectKind.REMOVE_ITEM.value:
        return RemoveItemEffect(item_id=payload_text(raw, "item_id", "itemId"))
    return UnknownEffect(kind=kind)


def parse_effects(raw: Any) -> tuple[Effect, ...]:
    if not isinstance(raw, list):
        return ()
    return tuple(parse_effect(item) for item in raw)


def _arithmetic(operator: str | None, current: int | float, amount: int | float) -> tuple[int | float | None, str | None]:
    if operator == ArithmeticOperator.ADD.value:
        return current + amount, None
    if operator == ArithmeticOperator.SUB.value:
        return current - amount, None
    if operator == ArithmeticOperator.MUL.value:
        return current * amount, None
    if operator == ArithmeticOperator.DIV.value:
        if amount == 0:
            return None, "division_by_zero"
        result = current / amount
        if isinstance(current, int) and isinstance(amount, int) and result.is_integer():
            return int(result), None
        return result, None
    return None, "unknown_operator"


def _apply_modify(effect: ModifyVariableEffect, state: PlayerState) -> str | None:
    if not effect.name:
        return "missing_variable_name"
    amount = effect.amount
    if not is_number(amount) or not math.isfinite(amount):
        return "amount_not_numeric"
    current = state.variables.get(effect.name)
    if current is None:
        current = 0
    if not is_number(current):
        return "variable_not_numeric"
    try:
        result, reason = _arithmetic(effect.operator, current, amount)
    except OverflowError:
        return "overflow"
    if reason:
        return reason
    # inf does not survive the JSON column
    if isinstance(result, float) and not math.isfinite(result):
        return "non_finite_result"
    state.variables[effect.name] = result
    return None


def _apply_one(effect: Effect, state: PlayerState, item_catalog: frozenset[str]) -> str | None:
    """Mutate ``state`` in place; return a skip reason for malformed effects."""
    if isinstance(effect, SetVariableEffect):
        if not effect.name:
            return "missing_variable_name"
        state.variables[effect.name] = effect.value
        return None

    if isinstance(effect, ModifyVariableEffect):
        return _apply_modify(effect, state)

    if isinstance(effect, AddItemEffect):
        if not effect.item_id:
            return "missing_item_id"
        if state.has_item(effect.item_id):
            return None
        if effect.item_id not in item_catalog:
            return "item_not_in_catalog"
        state.inventory.append(effect.item_id)
        return None

    if isinstance(effect, RemoveItemEffect):
        if not effect.item_id:
            return "missing_item_id"
        if state.has_item(effect.item_id):
            state.inventory = [item for item in state.inventory if item != effect.item_id]
        return None

    return "unknown_effect"


def _effect_kind(effect: Effect) -> str:
    if isinstance(effect, UnknownEffect):
        return effect.kind or "unknown"
    if isinstance(effect, SetVariableEffect):
        return EffectKind.SET_VARIABLE.value
    if isinstance(effect, ModifyVariableEffect):
        return EffectKind.MODIFY_VARIABLE.value
    if isinstance(effect, AddItemEffect):
        return EffectKind.ADD_ITEM.value
    return EffectKind.REMOVE_ITEM.value


def apply_effects(
    effects: Iterable[Effect],
    state: PlayerState,
    item_catalog: Iterable[str],
) -> tuple[PlayerState, list[dict]]:
    """Apply effects in declaration order to a copy of ``state``.

    The input state is never mutated. A malformed effect is skipped and
    reported in the second element; the effects after it still apply.
    """
    catalog = frozenset(item_catalog)
    next_state = state.copy()
    skipped: list[dict] = []
    for index, effect in enumerate(effects):
        reason = _apply_one(effect, next_state, catalog)
        if reason:
            skipped.append({"index": index, "type": _effect_kind(effect), "reason": reason})
    return next_state, skipped
