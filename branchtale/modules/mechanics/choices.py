from __future__ import annotations

from dataclasses import dataclass

from branchtale.modules.mechanics.conditions import evaluate_condition, evaluate_condition_trace
from branchtale.modules.mechanics.state import ChoiceDecl, PlayerState, StorySchema


@dataclass(frozen=True, slots=True)
class ChoiceAvailability:
    choice: ChoiceDecl
    available: bool
    trace: dict


def available_choices(schema: StorySchema, node_id: str, state: PlayerState) -> list[ChoiceDecl]:
    """Outgoing choices of ``node_id`` whose condition holds, in story order.

    Computed fresh on every call; state changes every turn.
    """
    return [choice for choice in schema.choices_from(node_id) if evaluate_condition(choice.condition, state)]


def explain_choices(schema: StorySchema, node_id: str, state: PlayerState) -> list[ChoiceAvailability]:
    out: list[ChoiceAvailability] = []
    for choice in schema.choices_from(node_id):
        available, trace = evaluate_condition_trace(choice.condition, state)
        out.append(ChoiceAvailability(choice=choice, available=available, trace=trace))
    return out
