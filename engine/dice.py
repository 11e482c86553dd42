"""Random draws used by the rules engine.

Every function takes an optional ``random.Random`` so callers can seed
the whole engine from a single generator.
"""

import random

from pydantic import BaseModel


class PercentRoll(BaseModel):
    """Result of a d100 check against a percentage chance."""
    roll: int
    chance: int
    success: bool


def roll_percent(chance: int, rng: random.Random | None = None) -> PercentRoll:
    """Roll a uniform integer in [1, 100] and succeed if it is <= chance.

    Args:
        chance: Success chance in percent.
        rng: Optional Random instance for seeded/testing rolls.

    Returns:
        PercentRoll with the roll, the chance, and the outcome.
    """
    rng = rng or random.Random()
    value = rng.randint(1, 100)
    return PercentRoll(roll=value, chance=chance, success=value <= chance)


def roll_between(low: int, high: int, rng: random.Random | None = None) -> int:
    """Uniform integer in [low, high], both ends inclusive."""
    rng = rng or random.Random()
    return rng.randint(low, high)


def chance(probability: float, rng: random.Random | None = None) -> bool:
    """Return True with the given probability (0.0-1.0)."""
    rng = rng or random.Random()
    return rng.random() < probability


def coin_flip(rng: random.Random | None = None) -> bool:
    """Fair coin."""
    rng = rng or random.Random()
    return rng.random() < 0.5


def variance(low: float = 0.9, high: float = 1.1, rng: random.Random | None = None) -> float:
    """Uniform multiplier in [low, high]."""
    rng = rng or random.Random()
    return low + rng.random() * (high - low)


def pick(options: list, rng: random.Random | None = None):
    """Uniform choice from a non-empty list."""
    if not options:
        raise ValueError("Cannot pick from an empty list")
    rng = rng or random.Random()
    return options[rng.randrange(len(options))]


def weighted_choice(
    options: list[tuple[str, float]],
    rng: random.Random | None = None,
) -> str:
    """Pick a key from ``(key, weight)`` pairs by a cumulative-weight roll.

    The roll is uniform over ``[0, total_weight)``; the first option whose
    cumulative weight exceeds the roll wins.

    Args:
        options: Non-empty list of (key, relative weight) pairs.
        rng: Optional Random instance for seeded/testing rolls.

    Returns:
        The selected key.

    Raises:
        ValueError: If options is empty.
    """
    if not options:
        raise ValueError("No options to choose from")
    rng = rng or random.Random()

    total = sum(max(0.0, weight) for _, weight in options)
    if total <= 0:
        return options[0][0]

    target = rng.random() * total
    cumulative = 0.0
    for key, weight in options:
        cumulative += max(0.0, weight)
        if target < cumulative:
            return key
    return options[-1][0]
