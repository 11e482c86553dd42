"""Stat model: derived stats, experience curves, and individual values."""

from __future__ import annotations

import math
import random

from config import IV_MAX, IV_MIN, PERSONALITIES, STAT_NAMES
from engine.dice import pick, roll_between
from models.creature import StatBlock
from models.species import GrowthTier, Rarity

# (coefficient, exponent) per growth tier
EXPERIENCE_CURVES = {
    GrowthTier.FAST: (80, 2.4),
    GrowthTier.MEDIUM: (100, 2.2),
    GrowthTier.SLOW: (125, 2.0),
}

RARITY_GROWTH = {
    Rarity.COMMON: GrowthTier.FAST,
    Rarity.UNCOMMON: GrowthTier.MEDIUM,
    Rarity.RARE: GrowthTier.SLOW,
    Rarity.EPIC: GrowthTier.SLOW,
    Rarity.LEGENDARY: GrowthTier.SLOW,
}


def compute_stats(
    base: StatBlock,
    growth: StatBlock,
    level: int,
    ivs: StatBlock,
) -> StatBlock:
    """Derive a creature's stats for a level.

    Each stat is ``floor(base + growth*(level-1) + iv + level*0.5)``,
    floored at 0.

    Args:
        base: Species base stats.
        growth: Per-level growth rates.
        level: Creature level.
        ivs: Individual values.

    Returns:
        A new StatBlock.
    """
    values = {}
    for name in STAT_NAMES:
        raw = base.get(name) + growth.get(name) * (level - 1) + ivs.get(name) + level * 0.5
        values[name] = max(0, math.floor(raw))
    return StatBlock(**values)


def growth_tier_for_rarity(rarity: Rarity | str | None) -> GrowthTier:
    """Map species rarity to its experience curve (default medium)."""
    try:
        return RARITY_GROWTH.get(Rarity(rarity), GrowthTier.MEDIUM)
    except ValueError:
        return GrowthTier.MEDIUM


def experience_threshold(level: int, tier: GrowthTier | str = GrowthTier.MEDIUM) -> int:
    """Experience needed to reach ``level``: ``floor(k * level**p)``."""
    k, p = EXPERIENCE_CURVES.get(GrowthTier(tier), EXPERIENCE_CURVES[GrowthTier.MEDIUM])
    return math.floor(k * math.pow(level, p))


def generate_ivs(rng: random.Random | None = None) -> StatBlock:
    """Eight independent uniform draws over [0, 31]."""
    rng = rng or random.Random()
    return StatBlock(**{name: roll_between(IV_MIN, IV_MAX, rng) for name in STAT_NAMES})


def clamp_iv(value: int) -> int:
    return max(IV_MIN, min(IV_MAX, int(value)))


def generate_personality(rng: random.Random | None = None) -> str:
    return pick(list(PERSONALITIES), rng)
