"""AI action selection for computer-controlled participants."""

from __future__ import annotations

import random
from enum import Enum

from pydantic import BaseModel

from engine.dice import pick
from models.battle import CombatParticipant

# Base thresholds for the uniform AI roll.
BASE_BEHAVIOR = {
    "aggressive": 0.7,
    "defensive": 0.3,
    "special": 0.2,
}


class AIChoice(str, Enum):
    """What the AI decided to do."""
    SPECIAL = "special"
    ATTACK = "attack"
    DEFEND = "defend"


class AIDecision(BaseModel):
    """An AI decision ready to be executed by the combat session."""
    choice: AIChoice
    target_id: str | None = None
    move_id: str | None = None


def behavior_weights(hp_fraction: float) -> dict[str, float]:
    """Behaviour profile shifted by health.

    Below 30% HP the actor turns defensive (+0.3); above 80% it turns
    aggressive (+0.2).
    """
    weights = dict(BASE_BEHAVIOR)
    if hp_fraction < 0.3:
        weights["defensive"] += 0.3
    elif hp_fraction > 0.8:
        weights["aggressive"] += 0.2
    return weights


def choose_target(targets: list[CombatParticipant]) -> CombatParticipant | None:
    """Lowest current HP wins; the earliest in turn order on ties."""
    if not targets:
        return None
    lowest = targets[0]
    for target in targets[1:]:
        if target.actor.current_hp < lowest.actor.current_hp:
            lowest = target
    return lowest


def choose_action(
    actor: CombatParticipant,
    targets: list[CombatParticipant],
    rng: random.Random | None = None,
) -> AIDecision:
    """Pick special, attack, or defend with one uniform roll.

    A roll under the special threshold casts a random known move (when the
    actor knows any), a roll under the aggressive threshold is a basic
    attack, and anything else defends.
    """
    rng = rng or random.Random()
    weights = behavior_weights(actor.actor.hp_fraction)
    target = choose_target(targets)
    target_id = target.id if target else None

    roll = rng.random()
    if roll < weights["special"] and actor.actor.learned_moves and target_id:
        return AIDecision(
            choice=AIChoice.SPECIAL,
            target_id=target_id,
            move_id=pick(actor.actor.learned_moves, rng),
        )
    if roll < weights["aggressive"] and target_id:
        return AIDecision(choice=AIChoice.ATTACK, target_id=target_id)
    return AIDecision(choice=AIChoice.DEFEND)
