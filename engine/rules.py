"""Battle formulas: damage, capture chance, experience, and fallback loot."""

from __future__ import annotations

import math
import random
from typing import Iterable

from pydantic import BaseModel

from config import (
    BASE_ATTACK_POWER,
    CAPTURE_MAX_CHANCE,
    CAPTURE_MIN_CHANCE,
    DEFAULT_CAPTURE_RATE,
    MAGIC_FLAT_BONUS,
)
from engine.dice import chance, variance
from models.creature import Combatant, StatusEffectType
from models.species import Rarity
from models.spells import LootDrop

CAPTURE_STATUS_BONUS = {
    StatusEffectType.SLEEP: 12,
    StatusEffectType.PARALYSIS: 8,
    StatusEffectType.FROZEN: 10,
}

RARITY_XP_MULTIPLIER = {
    Rarity.COMMON: 1.0,
    Rarity.UNCOMMON: 1.25,
    Rarity.RARE: 1.5,
    Rarity.EPIC: 2.0,
    Rarity.LEGENDARY: 3.0,
}


class DamageRoll(BaseModel):
    """Damage computed for one hit."""
    damage: int
    critical: bool = False


class CaptureModifiers(BaseModel):
    """Extra terms for the capture formula."""
    item_bonus: int = 0
    flat_bonus: int = 0
    multiplier: float = 1.0


def critical_chance(accuracy: int) -> float:
    """``accuracy/1000 + 0.03`` clamped to [0.05, 0.15]."""
    return max(0.05, min(0.15, accuracy / 1000 + 0.03))


def compute_damage(
    attacker: Combatant,
    defender: Combatant,
    magic: bool = False,
    rng: random.Random | None = None,
) -> DamageRoll:
    """Resolve the damage of a basic attack or magic move.

    Uses attack/defense (or magic attack/magic defense) with a fixed power
    of 60, a level-difference adjustment of 5% per level capped at
    +/-20%, a 90-110% variance roll, and an accuracy-driven critical hit
    that doubles damage. Magic adds a flat bonus. Never less than 1.

    Args:
        attacker: The combatant dealing damage.
        defender: The combatant receiving it.
        magic: Use the magic stats and add the flat magic bonus.
        rng: Optional Random instance for seeded/testing rolls.

    Returns:
        DamageRoll with the final damage and whether it was a critical.
    """
    rng = rng or random.Random()
    if magic:
        atk = attacker.effective_stat("magic_attack")
        dfn = defender.effective_stat("magic_defense")
    else:
        atk = attacker.effective_stat("attack")
        dfn = defender.effective_stat("defense")

    level_factor = 2 * attacker.level / 5 + 2
    ratio = atk / max(1, dfn)
    base = math.floor(level_factor * BASE_ATTACK_POWER * ratio / 50 + 2)

    level_bonus = max(-0.2, min(0.2, (attacker.level - defender.level) * 0.05))
    base = math.floor(base * (1 + level_bonus))
    base = math.floor(base * variance(0.9, 1.1, rng))

    critical = chance(critical_chance(attacker.effective_stat("accuracy")), rng)
    if critical:
        base = math.floor(base * 2)

    damage = max(1, base)
    if magic:
        damage += MAGIC_FLAT_BONUS
    return DamageRoll(damage=damage, critical=critical)


def capture_hp_bonus(hp_fraction: float) -> int:
    """Four-step bonus that grows as the target's remaining HP falls."""
    if hp_fraction > 0.75:
        return 0
    if hp_fraction > 0.5:
        return math.floor((0.75 - hp_fraction) * 60)
    if hp_fraction > 0.25:
        return 15 + math.floor((0.5 - hp_fraction) * 80)
    return 35 + math.floor((0.25 - hp_fraction) * 100)


def capture_status_bonus(statuses: Iterable[StatusEffectType | str]) -> int:
    bonus = 0
    for status in set(statuses):
        bonus += CAPTURE_STATUS_BONUS.get(status, 0)
    return bonus


def compute_capture_chance(
    target: Combatant,
    player_level: int,
    capture_rate: int | None = None,
    modifiers: CaptureModifiers | None = None,
) -> int:
    """Capture probability in percent, always an integer in [5, 95].

    Args:
        target: The creature being captured.
        player_level: Level used for the level-gap penalty.
        capture_rate: Species capture rate; defaults to 30.
        modifiers: Item, flat, and multiplier terms.

    Returns:
        The clamped capture chance.
    """
    modifiers = modifiers or CaptureModifiers()
    base = DEFAULT_CAPTURE_RATE if capture_rate is None else capture_rate

    hp_bonus = capture_hp_bonus(target.current_hp / max(1, target.stats.hp))
    level_penalty = max(0, 2 * (target.level - player_level))
    status_bonus = capture_status_bonus(se.type for se in target.status_effects)

    raw = (
        base + hp_bonus - level_penalty + status_bonus + modifiers.item_bonus + modifiers.flat_bonus
    ) * modifiers.multiplier
    return max(CAPTURE_MIN_CHANCE, min(CAPTURE_MAX_CHANCE, math.floor(raw)))


def experience_level_multiplier(enemy_level: int, player_level: int) -> float:
    """+10% per level the enemy is above the player; reduced when far below."""
    diff = enemy_level - player_level
    if diff > 0:
        return 1 + diff * 0.1
    if diff < -5:
        return max(0.2, 1 + diff * 0.05)
    return 1.0


def compute_experience_reward(
    enemy_level: int,
    player_level: int,
    rarity: Rarity | str | None = Rarity.COMMON,
) -> int:
    """Experience for defeating one enemy."""
    try:
        multiplier = RARITY_XP_MULTIPLIER.get(Rarity(rarity), 1.0)
    except ValueError:
        multiplier = 1.0
    return math.floor(
        enemy_level * 8 * multiplier * experience_level_multiplier(enemy_level, player_level)
    )


def fallback_loot(
    enemy_level: int,
    player_level: int,
    rng: random.Random | None = None,
) -> LootDrop:
    """Gold and drops used when no loot generator is configured."""
    rng = rng or random.Random()
    diff = enemy_level - player_level

    gold = math.floor(enemy_level * 2.5)
    if diff > 0:
        gold = math.floor(gold * (1 + diff * 0.08))

    items = []
    if chance(0.15 + enemy_level * 0.005, rng):
        if enemy_level >= 15 and chance(0.3, rng):
            items.append("mana_potion")
        else:
            items.append("health_potion")
    if enemy_level >= 20 and chance(0.05, rng):
        items.append("capture_orb")
    return LootDrop(gold=gold, items=items)
