"""Creature, player stand-in, and status effect models."""

from __future__ import annotations

import math
from datetime import datetime
from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, Field

from config import (
    CAPTURED_FRIENDSHIP,
    DEFAULT_STATUS_DURATION,
    MAX_FRIENDSHIP,
    WILD_FRIENDSHIP,
)


class StatBlock(BaseModel):
    """The eight named stats shared by derived stats, IVs, and growth."""
    hp: int = 0
    mp: int = 0
    attack: int = 0
    defense: int = 0
    magic_attack: int = 0
    magic_defense: int = 0
    speed: int = 0
    accuracy: int = 0

    def get(self, name: str, default: int = 0) -> int:
        return getattr(self, name, default)


class StatusEffectType(str, Enum):
    """Timed conditions a combatant can carry."""
    POISON = "poison"
    BURN = "burn"
    REGENERATION = "regeneration"
    SLEEP = "sleep"
    PARALYSIS = "paralysis"
    FROZEN = "frozen"


# Fraction of max HP lost (negative) or restored (positive) per tick.
STATUS_HP_TICK = {
    StatusEffectType.POISON: -0.10,
    StatusEffectType.BURN: -0.08,
    StatusEffectType.REGENERATION: 0.10,
}


class StatusEffect(BaseModel):
    """An active status effect and its countdown."""
    type: StatusEffectType
    duration: int
    remaining_turns: int


class StatusTick(BaseModel):
    """What one status effect did during a tick."""
    type: StatusEffectType
    hp_change: int = 0
    expired: bool = False


class StatModifier(BaseModel):
    """A timed buff (positive) or debuff (negative) on one stat."""
    stat: str
    amount: int
    remaining_rounds: int


class Lineage(BaseModel):
    """Parents of a bred creature."""
    parent_species: tuple[str, str]
    generation: int


class Combatant(BaseModel):
    """Anything that can stand in a battle: creatures and the player character."""
    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    level: int = 1
    stats: StatBlock
    current_hp: int = 0
    current_mp: int = 0
    learned_moves: list[str] = []
    status_effects: list[StatusEffect] = []
    stat_modifiers: list[StatModifier] = []

    @property
    def display_name(self) -> str:
        return self.name

    @property
    def is_alive(self) -> bool:
        return self.current_hp > 0

    @property
    def hp_fraction(self) -> float:
        return self.current_hp / max(1, self.stats.hp)

    def clamp_resources(self) -> None:
        """Keep current HP/MP inside [0, max]."""
        self.current_hp = max(0, min(self.current_hp, self.stats.hp))
        self.current_mp = max(0, min(self.current_mp, self.stats.mp))

    def take_damage(self, amount: float) -> int:
        """Subtract at least 1 HP (floored at 0). Returns damage dealt."""
        damage = max(1, math.floor(amount))
        before = self.current_hp
        self.current_hp = max(0, self.current_hp - damage)
        return before - self.current_hp

    def heal(self, amount: float) -> int:
        """Restore HP up to max. Returns HP actually restored."""
        before = self.current_hp
        self.current_hp = min(self.stats.hp, self.current_hp + max(0, math.floor(amount)))
        return self.current_hp - before

    def restore_mp(self, amount: float) -> int:
        before = self.current_mp
        self.current_mp = min(self.stats.mp, self.current_mp + max(0, math.floor(amount)))
        return self.current_mp - before

    def use_mp(self, amount: int) -> bool:
        """Spend MP if enough is available; never goes negative."""
        if amount < 0 or self.current_mp < amount:
            return False
        self.current_mp -= amount
        return True

    def full_heal(self) -> None:
        self.current_hp = self.stats.hp
        self.current_mp = self.stats.mp
        self.status_effects = []
        self.stat_modifiers = []

    # --- status effects -------------------------------------------------

    def has_status(self, effect: StatusEffectType | str) -> bool:
        return any(se.type == effect for se in self.status_effects)

    def apply_status_effect(
        self,
        effect: StatusEffectType | str,
        duration: int = DEFAULT_STATUS_DURATION,
    ) -> StatusEffect:
        """Apply an effect, replacing any existing effect of the same type."""
        effect = StatusEffectType(effect)
        self.status_effects = [se for se in self.status_effects if se.type != effect]
        status = StatusEffect(type=effect, duration=duration, remaining_turns=duration)
        self.status_effects.append(status)
        return status

    def remove_status_effect(self, effect: StatusEffectType | str) -> bool:
        before = len(self.status_effects)
        self.status_effects = [se for se in self.status_effects if se.type != effect]
        return len(self.status_effects) != before

    def process_status_effects(self) -> list[StatusTick]:
        """Apply per-tick damage/healing, count every effect down once, drop expired ones."""
        ticks: list[StatusTick] = []
        for effect in list(self.status_effects):
            hp_change = 0
            fraction = STATUS_HP_TICK.get(effect.type)
            if fraction is not None and fraction < 0:
                hp_change = -self.take_damage(max(1, math.floor(self.stats.hp * -fraction)))
            elif fraction is not None:
                hp_change = self.heal(math.floor(self.stats.hp * fraction))

            effect.remaining_turns -= 1
            expired = effect.remaining_turns <= 0
            ticks.append(StatusTick(type=effect.type, hp_change=hp_change, expired=expired))

        self.status_effects = [se for se in self.status_effects if se.remaining_turns > 0]
        return ticks

    # --- stat modifiers -------------------------------------------------

    def add_modifier(self, stat: str, amount: int, rounds: int) -> StatModifier:
        modifier = StatModifier(stat=stat, amount=amount, remaining_rounds=rounds)
        self.stat_modifiers.append(modifier)
        return modifier

    def tick_modifiers(self) -> list[StatModifier]:
        """Count buffs/debuffs down by one round. Returns the ones that expired."""
        expired = []
        for modifier in self.stat_modifiers:
            modifier.remaining_rounds -= 1
            if modifier.remaining_rounds <= 0:
                expired.append(modifier)
        self.stat_modifiers = [m for m in self.stat_modifiers if m.remaining_rounds > 0]
        return expired

    def effective_stat(self, name: str) -> int:
        """Derived stat plus active modifiers, never below 0."""
        bonus = sum(m.amount for m in self.stat_modifiers if m.stat == name)
        return max(0, self.stats.get(name) + bonus)


class PlayerCharacter(Combatant):
    """The player's own avatar when it fights alongside its creatures."""
    owner_id: str | None = None


class Creature(Combatant):
    """A monster instance: wild, captured, bred, or evolved."""
    species: str                    # Species key, e.g., "slime"
    nickname: str | None = None
    experience: int = 0
    experience_to_next: int = 0
    ivs: StatBlock = StatBlock()
    personality: str = "Hardy"
    abilities: list[str] = []
    friendship: int = WILD_FRIENDSHIP
    evolution_stage: int = 0
    lineage: Lineage | None = None
    generation: int = 1
    captured_at: datetime | None = None
    owner_id: str | None = None
    collection_id: str | None = None
    is_wild: bool = True

    @property
    def display_name(self) -> str:
        return self.nickname or self.name

    def set_nickname(self, nickname: str | None) -> None:
        self.nickname = nickname

    # --- friendship -----------------------------------------------------

    def increase_friendship(self, amount: int = 1) -> None:
        if self.is_wild:
            return
        self.friendship = min(MAX_FRIENDSHIP, self.friendship + amount)

    def decrease_friendship(self, amount: int = 1) -> None:
        if self.is_wild:
            return
        self.friendship = max(0, self.friendship - amount)

    @property
    def friendship_level(self) -> str:
        if self.friendship >= 90:
            return "Devoted"
        if self.friendship >= 70:
            return "Loyal"
        if self.friendship >= 50:
            return "Friendly"
        if self.friendship >= 30:
            return "Neutral"
        if self.friendship >= 10:
            return "Wary"
        return "Hostile"

    # --- ownership ------------------------------------------------------

    def capture(self, owner_id: str | None, when: datetime) -> bool:
        """Mark a wild creature as captured. Returns False if already owned."""
        if not self.is_wild:
            return False
        self.is_wild = False
        self.captured_at = when
        self.owner_id = owner_id
        self.friendship = CAPTURED_FRIENDSHIP
        return True

    def release(self) -> bool:
        """Return a captured creature to the wild. Returns False if already wild."""
        if self.is_wild:
            return False
        self.is_wild = True
        self.captured_at = None
        self.owner_id = None
        self.collection_id = None
        self.friendship = WILD_FRIENDSHIP
        self.nickname = None
        return True

    def summary(self) -> dict:
        """Flat view for presentation layers."""
        return {
            "id": self.id,
            "species": self.species,
            "name": self.display_name,
            "level": self.level,
            "hp": self.current_hp,
            "max_hp": self.stats.hp,
            "mp": self.current_mp,
            "max_mp": self.stats.mp,
            "experience": self.experience,
            "experience_to_next": self.experience_to_next,
            "moves": list(self.learned_moves),
            "personality": self.personality,
            "friendship": self.friendship,
            "friendship_level": self.friendship_level,
            "status_effects": [se.type.value for se in self.status_effects],
            "is_wild": self.is_wild,
            "evolution_stage": self.evolution_stage,
            "generation": self.generation,
        }
