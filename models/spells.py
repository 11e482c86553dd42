"""Spellcasting and loot payloads exchanged with external collaborators."""

from enum import Enum

from pydantic import BaseModel

from models.creature import StatusEffectType


class SpellEffectKind(str, Enum):
    """Typed effects a spell can produce."""
    DAMAGE = "damage"
    HEAL = "heal"
    BUFF = "buff"
    DEBUFF = "debuff"
    STATUS_APPLIED = "status_applied"
    STATUS_REMOVED = "status_removed"


class SpellEffect(BaseModel):
    """One effect to be applied by the combat session."""
    kind: SpellEffectKind
    target_id: str                  # Participant id
    amount: int = 0                 # HP for damage/heal, stat points for buffs
    stat: str | None = None         # For buff/debuff
    rounds: int = 3                 # Buff/debuff duration
    status: StatusEffectType | None = None
    duration: int = 3               # Status duration


class SpellOutcome(BaseModel):
    """What the spellcasting collaborator reports for a cast."""
    success: bool
    reason: str | None = None
    insufficient_mp: bool = False   # Failure was an MP shortfall
    mp_consumed: int = 0
    effects: list[SpellEffect] = []


class LootDrop(BaseModel):
    """Gold and items dropped by one defeated opponent."""
    gold: int = 0
    items: list[str] = []
