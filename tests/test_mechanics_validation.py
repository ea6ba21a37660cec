from __future__ import annotations

from branchtale.modules.mechanics.state import ItemDecl, StorySchema, VariableDecl, VariableType
from branchtale.modules.mechanics.validation import validate_conditions_and_effects

SCHEMA = StorySchema(
    story_id="s1",
    author_id="a1",
    variables=(
        VariableDecl(name="hp", var_type=VariableType.INTEGER, default_value=50),
        VariableDecl(name="speed", var_type=VariableType.FLOAT, default_value=1.5),
        VariableDecl(name="brave", var_type=VariableType.BOOLEAN, default_value=False),
        VariableDecl(name="title", var_type=VariableType.STRING, default_value="novice"),
    ),
    items=(ItemDecl(id="potion", name="Potion"),),
)


def test_valid_condition_and_effects() -> None:
    result = validate_conditions_and_effects(
        {
            "type": "and",
            "conditions": [
                {"type": "variable", "variable_name": "hp", "operator": "gt", "value": 10},
                {"type": "not", "condition": {"type": "item", "item_id": "potion"}},
                {"type": "variable", "variableName": "title", "operator": "equals", "value": "novice"},
            ],
        },
        [
            {"type": "set_variable", "variable_name": "brave", "value": True},
            {"type": "set_variable", "variable_name": "speed", "value": 2},
            {"type": "modify_variable", "variable_name": "speed", "operator": "divide", "amount": 2},
            {"type": "add_item", "item_id": "potion"},
        ],
        SCHEMA,
    )
    assert result.valid is True
    assert result.errors == []
    assert result.to_dict() == {"valid": True, "errors": []}


def test_empty_inputs_are_valid() -> None:
    assert validate_conditions_and_effects(None, [], SCHEMA).valid is True
    assert validate_conditions_and_effects({}, None, SCHEMA).valid is True
    assert validate_conditions_and_effects({"type": "not", "conditions": []}, [], SCHEMA).valid is True


def test_unknown_references_are_reported_with_paths() -> None:
    result = validate_conditions_and_effects(
        {
            "type": "or",
            "conditions": [
                {"type": "variable", "variable_name": "mana", "operator": "eq", "value": 1},
                {"type": "item", "item_id": "sword"},
            ],
        },
        [{"type": "remove_item", "item_id": "sword"}],
        SCHEMA,
    )
    assert result.valid is False
    assert result.errors == [
        "condition.conditions[0]: Variable 'mana' does not exist in story",
        "condition.conditions[1]: Item 'sword' does not exist in story",
        "effects[0]: Item 'sword' does not exist in story",
    ]


def test_operator_and_type_mismatches() -> None:
    result = validate_conditions_and_effects(
        {
            "type": "and",
            "conditions": [
                {"type": "variable", "variable_name": "hp", "operator": "between", "value": 1},
                {"type": "variable", "variable_name": "hp", "operator": "lt", "value": "10"},
                {"type": "variable", "variable_name": "title", "operator": "gt", "value": 3},
            ],
        },
        [
            {"type": "set_variable", "variable_name": "hp", "value": "lots"},
            {"type": "set_variable", "variable_name": "brave", "value": 1},
            {"type": "modify_variable", "variable_name": "title", "operator": "add", "amount": 1},
            {"type": "modify_variable", "variable_name": "hp", "operator": "pow", "amount": 2},
            {"type": "modify_variable", "variable_name": "hp", "operator": "add", "amount": "two"},
            {"type": "modify_variable", "variable_name": "hp", "operator": "div", "amount": 0},
        ],
        SCHEMA,
    )
    assert result.valid is False
    assert result.errors == [
        "condition.conditions[0]: unknown comparison operator 'between'",
        "condition.conditions[1]: operator 'lt' requires a numeric value",
        "condition.conditions[2]: operator 'gt' compares non-numeric variable 'title' (string)",
        "effects[0]: value for 'hp' does not match declared type integer",
        "effects[1]: value for 'brave' does not match declared type boolean",
        "effects[2]: modify_variable targets non-numeric variable 'title' (string)",
        "effects[3]: unknown arithmetic operator 'pow'",
        "effects[4]: modify_variable requires a numeric amount",
        "effects[5]: division by zero",
    ]


def test_structural_problems() -> None:
    result = validate_conditions_and_effects(
        {
            "type": "not",
            "conditions": [
                {"type": "item", "item_id": "potion"},
                {"type": "item", "item_id": "potion"},
            ],
        },
        "add potion",
        SCHEMA,
    )
    assert result.errors == [
        "condition: 'not' accepts a single condition, got 2",
        "effects: must be a list",
    ]

    result = validate_conditions_and_effects(
        {"type": "weather"},
        [{"variable_name": "hp"}, {"type": "teleport"}, "oops"],
        SCHEMA,
    )
    assert result.errors == [
        "condition: unknown condition type 'weather'",
        "effects[0]: effect is missing its type",
        "effects[1]: unknown effect type 'teleport'",
        "effects[2]: effect must be an object",
    ]
