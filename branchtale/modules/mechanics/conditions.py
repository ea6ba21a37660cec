"""Condition trees that gate choice visibility.

Conditions arrive as loosely typed JSON authored in the editor. They are
parsed into a closed set of frozen variants and evaluated by a single
dispatch function. Evaluation is total: a mistyped comparison is ``False``
and an unrecognised node or operator is ``True``, so stale data can hide
or show a choice but never break a play session. The strict counterpart
lives in ``branchtale.modules.mechanics.validation``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from branchtale.modules.mechanics.payloads import (
    COMPARISON_OPERATOR_ALIASES,
    normalize_operator,
    payload_field,
    payload_kind,
    payload_text,
)
from branchtale.modules.mechanics.state import PlayerState, is_number


class ConditionKind(str, Enum):
    VARIABLE = "variable"
    ITEM = "item"
    AND = "and"
    OR = "or"
    NOT = "not"


class ComparisonOperator(str, Enum):
    EQ = "eq"
    NEQ = "neq"
    GT = "gt"
    LT = "lt"
    CONTAINS = "contains"


COMPARISON_OPERATORS = frozenset(op.value for op in ComparisonOperator)


@dataclass(frozen=True, slots=True)
class VariableCondition:
    name: str | None
    operator: str
    value: Any = None


@dataclass(frozen=True, slots=True)
class ItemCondition:
    item_id: str | None


@dataclass(frozen=True, slots=True)
class AndCondition:
    children: tuple[Condition, ...] = ()


@dataclass(frozen=True, slots=True)
class OrCondition:
    children: tuple[Condition, ...] = ()


@dataclass(frozen=True, slots=True)
class NotCondition:
    child: Condition | None = None


@dataclass(frozen=True, slots=True)
class UnknownCondition:
    kind: str


Condition = Union[VariableCondition, ItemCondition, AndCondition, OrCondition, NotCondition, UnknownCondition]


def _parse_children(raw: dict) -> tuple[Condition, ...]:
    children = raw.get("conditions")
    if not isinstance(children, list):
        return ()
    return tuple(parse_condition(child) or AndCondition() for child in children)


def parse_condition(raw: Any) -> Condition | None:
    """Parse a stored condition payload; ``None`` means always available."""
    if raw is None:
        return None
    if isinstance(raw, dict) and not raw:
        return None
    if not isinstance(raw, dict):
        return UnknownCondition(kind=type(raw).__name__)

    kind = payload_kind(raw)
    if kind == ConditionKind.VARIABLE.value:
        return VariableCondition(
            name=payload_text(raw, "variable_name", "variableName"),
            operator=normalize_operator(raw.get("operator"), COMPARISON_OPERATOR_ALIASES, default="eq") or "eq",
            value=raw.get("value"),
        )
    if kind == ConditionKind.ITEM.value:
        return ItemCondition(item_id=payload_text(raw, "item_id", "itemId"))
    if kind == ConditionKind.AND.value:
        return AndCondition(children=_parse_children(raw))
    if kind == ConditionKind.OR.value:
        return OrCondition(children=_parse_children(raw))
    if kind == ConditionKind.NOT.value:
        single = payload_field(raw, "condition")
        if isinstance(single, dict):
            return NotCondition(child=parse_condition(single))
        children = _parse_children(raw)
        return NotCondition(child=children[0] if children else None)
    return UnknownCondition(kind=kind)


def strict_equals(left: Any, right: Any) -> bool:
    """Type-and-value equality; ``True`` never equals ``1``."""
    if isinstance(left, bool) or isinstance(right, bool):
        return isinstance(left, bool) and isinstance(right, bool) and left == right
    if is_number(left) and is_number(right):
        return left == right
    if is_number(left) or is_number(right):
        return False
    return type(left) is type(right) and left == right


def _compare(operator: str, actual: Any, expected: Any) -> bool:
    if operator == ComparisonOperator.EQ.value:
        return strict_equals(actual, expected)
    if operator == ComparisonOperator.NEQ.value:
        return not strict_equals(actual, expected)
    if operator == ComparisonOperator.GT.value:
        return is_number(actual) and is_number(expected) and actual > expected
    if operator == ComparisonOperator.LT.value:
        return is_number(actual) and is_number(expected) and actual < expected
    if operator == ComparisonOperator.CONTAINS.value:
        if not isinstance(actual, (list, tuple)):
            return False
        return any(strict_equals(member, expected) for member in actual)
    return True


def _eval_leaf(condition: VariableCondition | ItemCondition, state: PlayerState) -> tuple[bool, dict]:
    if isinstance(condition, ItemCondition):
        if not condition.item_id:
            return True, {"op": "item", "item_id": None, "result": True}
        result = state.has_item(condition.item_id)
        return result, {"op": "item", "item_id": condition.item_id, "result": result}

    if not condition.name:
        return True, {"op": condition.operator, "variable": None, "result": True}
    actual = state.variables.get(condition.name)
    result = _compare(condition.operator, actual, condition.value)
    return result, {
        "op": condition.operator,
        "variable": condition.name,
        "expected": condition.value,
        "actual_value": actual,
        "result": result,
    }


def evaluate_condition_trace(condition: Condition | None, state: PlayerState) -> tuple[bool, dict]:
    if condition is None:
        return True, {"op": "always", "result": True}

    if isinstance(condition, (VariableCondition, ItemCondition)):
        return _eval_leaf(condition, state)

    if isinstance(condition, AndCondition):
        children = []
        for child in condition.children:
            child_result, child_trace = evaluate_condition_trace(child, state)
            children.append(child_trace)
            if not child_result:
                return False, {"op": "and", "children": children, "result": False}
        return True, {"op": "and", "children": children, "result": True}

    if isinstance(condition, OrCondition):
        children = []
        for child in condition.children:
            child_result, child_trace = evaluate_condition_trace(child, state)
            children.append(child_trace)
            if child_result:
                return True, {"op": "or", "children": children, "result": True}
        return False, {"op": "or", "children": children, "result": False}

    if isinstance(condition, NotCondition):
        # A bare "not" is vacuously true, as stories authored before
        # validation existed rely on it.
        if condition.child is None:
            return True, {"op": "not", "child": None, "result": True}
        child_result, child_trace = evaluate_condition_trace(condition.child, state)
        return not child_result, {"op": "not", "child": child_trace, "result": not child_result}

    return True, {"op": "unknown", "kind": getattr(condition, "kind", ""), "result": True}


def evaluate_condition(condition: Condition | None, state: PlayerState) -> bool:
    result, _ = evaluate_condition_trace(condition, state)
    return result
