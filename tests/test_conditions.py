from __future__ import annotations

from branchtale.modules.mechanics.conditions import (
    AndCondition,
    ItemCondition,
    NotCondition,
    UnknownCondition,
    VariableCondition,
    evaluate_condition,
    evaluate_condition_trace,
    parse_condition,
    strict_equals,
)
from branchtale.modules.mechanics.state import PlayerState


def _state(**variables) -> PlayerState:
    return PlayerState(variables=dict(variables), inventory=["key"])


def _var(name: str, operator: str, value) -> dict:
    return {"type": "variable", "variable_name": name, "operator": operator, "value": value}


def test_missing_or_empty_condition_is_always_available() -> None:
    assert parse_condition(None) is None
    assert parse_condition({}) is None
    assert evaluate_condition(None, _state()) is True
    result, trace = evaluate_condition_trace(None, _state())
    assert result is True
    assert trace == {"op": "always", "result": True}


def test_parse_accepts_camel_case_and_legacy_operators() -> None:
    parsed = parse_condition({"type": "variable", "variableName": "hp", "operator": "greater_than", "value": 3})
    assert parsed == VariableCondition(name="hp", operator="gt", value=3)
    assert parse_condition({"type": "item", "itemId": "key"}) == ItemCondition(item_id="key")
    assert parse_condition({"type": "variable", "variable_name": "hp", "value": 1}).operator == "eq"


def test_equality_is_strict_about_types() -> None:
    state = _state(hp=50, brave=True, name="Ann")
    assert evaluate_condition(parse_condition(_var("hp", "eq", 50)), state) is True
    assert evaluate_condition(parse_condition(_var("hp", "eq", 50.0)), state) is True
    assert evaluate_condition(parse_condition(_var("hp", "eq", "50")), state) is False
    assert evaluate_condition(parse_condition(_var("brave", "eq", 1)), state) is False
    assert evaluate_condition(parse_condition(_var("brave", "neq", 1)), state) is True
    assert evaluate_condition(parse_condition(_var("name", "eq", "Ann")), state) is True
    assert strict_equals(True, True) is True
    assert strict_equals(0, False) is False


def test_ordering_operators_need_numbers_on_both_sides() -> None:
    state = _state(hp=50, name="Ann")
    assert evaluate_condition(parse_condition(_var("hp", "gt", 49)), state) is True
    assert evaluate_condition(parse_condition(_var("hp", "lt", 50)), state) is False
    assert evaluate_condition(parse_condition(_var("name", "gt", 1)), state) is False
    assert evaluate_condition(parse_condition(_var("hp", "gt", "10")), state) is False
    assert evaluate_condition(parse_condition(_var("missing", "lt", 10)), state) is False


def test_contains_checks_list_membership() -> None:
    state = _state(tags=["brave", "tired"], name="brave")
    assert evaluate_condition(parse_condition(_var("tags", "contains", "brave")), state) is True
    assert evaluate_condition(parse_condition(_var("tags", "contains", "calm")), state) is False
    assert evaluate_condition(parse_condition(_var("name", "contains", "brave")), state) is False


def test_item_condition_reads_inventory() -> None:
    state = _state()
    assert evaluate_condition(parse_condition({"type": "item", "item_id": "key"}), state) is True
    assert evaluate_condition(parse_condition({"type": "item", "item_id": "map"}), state) is False


def test_and_short_circuits_and_records_only_visited_children() -> None:
    condition = parse_condition(
        {
            "type": "and",
            "conditions": [_var("hp", "gt", 100), {"type": "item", "item_id": "key"}],
        }
    )
    result, trace = evaluate_condition_trace(condition, _state(hp=50))
    assert result is False
    assert trace["op"] == "and"
    assert len(trace["children"]) == 1
    assert trace["children"][0]["actual_value"] == 50


def test_or_stops_at_first_true_child() -> None:
    condition = parse_condition(
        {
            "type": "or",
            "conditions": [{"type": "item", "item_id": "key"}, _var("hp", "gt", 100)],
        }
    )
    result, trace = evaluate_condition_trace(condition, _state(hp=50))
    assert result is True
    assert len(trace["children"]) == 1
    assert evaluate_condition(parse_condition({"type": "or", "conditions": []}), _state()) is False
    assert evaluate_condition(parse_condition({"type": "and", "conditions": []}), _state()) is True


def test_not_accepts_single_condition_or_first_of_list() -> None:
    state = _state(hp=50)
    single = parse_condition({"type": "not", "condition": {"type": "item", "item_id": "map"}})
    listed = parse_condition({"type": "not", "conditions": [_var("hp", "eq", 50)]})
    assert isinstance(single, NotCondition)
    assert evaluate_condition(single, state) is True
    assert evaluate_condition(listed, state) is False


def test_empty_not_is_vacuously_true() -> None:
    condition = parse_condition({"type": "not", "conditions": []})
    assert condition == NotCondition(child=None)
    assert evaluate_condition(condition, _state()) is True


def test_lenient_evaluation_of_malformed_nodes() -> None:
    state = _state(hp=50)
    unknown = parse_condition({"type": "weather", "value": "rain"})
    assert unknown == UnknownCondition(kind="weather")
    assert evaluate_condition(unknown, state) is True
    assert evaluate_condition(parse_condition({"type": "variable", "operator": "eq", "value": 1}), state) is True
    assert evaluate_condition(parse_condition(_var("hp", "between", 1)), state) is True
    assert evaluate_condition(parse_condition(["not", "a", "dict"]), state) is True


def test_null_child_in_group_parses_as_empty_and() -> None:
    condition = parse_condition({"type": "and", "conditions": [None, {"type": "item", "item_id": "key"}]})
    assert condition.children[0] == AndCondition()
    assert evaluate_condition(condition, _state()) is True
