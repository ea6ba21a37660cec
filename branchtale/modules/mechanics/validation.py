from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from branchtale.modules.mechanics.conditions import COMPARISON_OPERATORS, ComparisonOperator, ConditionKind
from branchtale.modules.mechanics.effects import ARITHMETIC_OPERATORS, ArithmeticOperator, EffectKind
from branchtale.modules.mechanics.payloads import (
    ARITHMETIC_OPERATOR_ALIASES,
    COMPARISON_OPERATOR_ALIASES,
    normalize_operator,
    payload_field,
    payload_kind,
    payload_text,
)
from branchtale.modules.mechanics.state import StorySchema, VariableType, is_number, value_matches_type

_NUMERIC_TYPES = {VariableType.INTEGER, VariableType.FLOAT}


@dataclass(frozen=True, slots=True)
class ValidationResult:
    valid: bool
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"valid": self.valid, "errors": list(self.errors)}


class _Checker:
    def __init__(self, schema: StorySchema) -> None:
        self.schema = schema
        self.item_ids = schema.item_catalog()
        self.errors: list[str] = []

    def _require_variable(self, path: str, raw: dict, label: str) -> str | None:
        name = payload_text(raw, "variable_name", "variableName")
        if not name:
            self.errors.append(f"{path}: {label} requires variable_name")
            return None
        if self.schema.variable(name) is None:
            self.errors.append(f"{path}: Variable '{name}' does not exist in story")
            return None
        return name

    def _require_item(self, path: str, raw: dict, label: str) -> None:
        item_id = payload_text(raw, "item_id", "itemId")
        if not item_id:
            self.errors.append(f"{path}: {label} requires item_id")
        elif item_id not in self.item_ids:
            self.errors.append(f"{path}: Item '{item_id}' does not exist in story")

    def condition(self, raw: Any, path: str) -> None:
        if not isinstance(raw, dict):
            self.errors.append(f"{path}: condition must be an object")
            return
        kind = payload_kind(raw)
        if kind == ConditionKind.VARIABLE.value:
            self._variable_condition(raw, path)
        elif kind == ConditionKind.ITEM.value:
            self._require_item(path, raw, "item condition")
        elif kind in {ConditionKind.AND.value, ConditionKind.OR.value}:
            children = raw.get("conditions", [])
            if not isinstance(children, list):
                self.errors.append(f"{path}: '{kind}' requires a list of conditions")
                return
            for index, child in enumerate(children):
                self.condition(child, f"{path}.conditions[{index}]")
        elif kind == ConditionKind.NOT.value:
            self._not_condition(raw, path)
        elif not kind:
            self.errors.append(f"{path}: condition is missing its type")
        else:
            self.errors.append(f"{path}: unknown condition type '{kind}'")

    def _variable_condition(self, raw: dict, path: str) -> None:
        name = self._require_variable(path, raw, "variable condition")
        operator = normalize_operator(raw.get("operator"), COMPARISON_OPERATOR_ALIASES, default="eq")
        if operator not in COMPARISON_OPERATORS:
            self.errors.append(f"{path}: unknown comparison operator '{operator}'")
            return
        if operator not in {ComparisonOperator.GT.value, ComparisonOperator.LT.value}:
            return
        if not is_number(raw.get("value")):
            self.errors.append(f"{path}: operator '{operator}' requires a numeric value")
        decl = self.schema.variable(name) if name else None
        if decl is not None and decl.var_type not in _NUMERIC_TYPES:
            self.errors.append(f"{path}: operator '{operator}' compares non-numeric variable '{name}' ({decl.var_type.value})")

    def _not_condition(self, raw: dict, path: str) -> None:
        # An empty "not" stays legal: it evaluates to true at play time.
        single = payload_field(raw, "condition")
        if single is not None:
            self.condition(single, f"{path}.condition")
            return
        children = raw.get("conditions", [])
        if not isinstance(children, list):
            self.errors.append(f"{path}: 'not' requires a condition")
            return
        if len(children) > 1:
            self.errors.append(f"{path}: 'not' accepts a single condition, got {len(children)}")
        if children:
            self.condition(children[0], f"{path}.conditions[0]")

    def effect(self, raw: Any, path: str) -> None:
        if not isinstance(raw, dict):
            self.errors.append(f"{path}: effect must be an object")
            return
        kind = payload_kind(raw)
        if kind == EffectKind.SET_VARIABLE.value:
            name = self._require_variable(path, raw, "set_variable")
            decl = self.schema.variable(name) if name else None
            if decl is not None and not value_matches_type(decl.var_type, raw.get("value")):
                self.errors.append(f"{path}: value for '{name}' does not match declared type {decl.var_type.value}")
        elif kind == EffectKind.MODIFY_VARIABLE.value:
            self._modify_effect(raw, path)
        elif kind == EffectKind.ADD_ITEM.value:
            self._require_item(path, raw, "add_item")
        elif kind == EffectKind.REMOVE_ITEM.value:
            self._require_item(path, raw, "remove_item")
        elif not kind:
            self.errors.append(f"{path}: effect is missing its type")
        else:
            self.errors.append(f"{path}: unknown effect type '{kind}'")

    def _modify_effect(self, raw: dict, path: str) -> None:
        name = self._require_variable(path, raw, "modify_variable")
        decl = self.schema.variable(name) if name else None
        if decl is not None and decl.var_type not in _NUMERIC_TYPES:
            self.errors.append(f"{path}: modify_variable targets non-numeric variable '{name}' ({decl.var_type.value})")
        operator = normalize_operator(raw.get("operator"), ARITHMETIC_OPERATOR_ALIASES)
        if operator not in ARITHMETIC_OPERATORS:
            self.errors.append(f"{path}: unknown arithmetic operator '{operator}'")
        amount = payload_field(raw, "amount")
        if not is_number(amount):
            self.errors.append(f"{path}: modify_variable requires a numeric amount")
        elif operator == ArithmeticOperator.DIV.value and amount == 0:
            self.errors.append(f"{path}: division by zero")


def validate_conditions_and_effects(condition: Any, effects: Any, schema: StorySchema) -> ValidationResult:
    """Check a choice's condition and effects against the story's declarations.

    Collects one message per problem instead of stopping at the first.
    Nothing is mutated.
    """
    checker = _Checker(schema)
    if condition is not None and condition != {}:
        checker.condition(condition, "condition")
    if effects is None:
        effects = []
    if not isinstance(effects, list):
        checker.errors.append("effects: must be a list")
    else:
        for index, effect in enumerate(effects):
            checker.effect(effect, f"effects[{index}]")
    return ValidationResult(valid=not checker.errors, errors=list(checker.errors))
