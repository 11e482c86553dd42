"""Breeding resolver: compatibility checks and offspring generation."""

from __future__ import annotations

import math
import random
from datetime import datetime, timedelta, timezone
from typing import Callable

from pydantic import BaseModel

from config import (
    BREEDING_COOLDOWN_SECONDS,
    BREEDING_MIN_FRIENDSHIP,
    BREEDING_MIN_LEVEL,
    MAX_LEARNED_MOVES,
    STAT_NAMES,
)
from engine.collaborators import emit
from engine.dice import coin_flip, pick, weighted_choice
from engine.logs import get_logger
from engine.ports import BreedingCompatibility, NotificationSink, PersistentCollection
from engine.progression import ProgressionEngine
from engine.stats import clamp_iv
from models.creature import Creature, Lineage, StatBlock
from models.species import BreedingOutcome, Rarity

logger = get_logger(__name__)

RARITY_BREEDING_PENALTY = {
    Rarity.COMMON: 0,
    Rarity.UNCOMMON: 5,
    Rarity.RARE: 10,
    Rarity.EPIC: 15,
    Rarity.LEGENDARY: 20,
}


class BreedingCheck(BaseModel):
    """Eligibility verdict for a breeding pair."""
    ok: bool
    reason: str


class BreedingRecord(BaseModel):
    """One entry of the breeding history."""
    parents: tuple[str, str]        # Creature ids
    parent_species: tuple[str, str]
    offspring_id: str
    offspring_species: str
    time: datetime


class BreedingResult(BaseModel):
    """Outcome of a breed() call."""
    success: bool
    reason: str
    offspring: Creature | None = None
    collection_id: str | None = None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BreedingResolver:
    """Decides who may breed and what hatches.

    Args:
        progression: Used to create offspring and recompute their stats.
        compatibility: Species compatibility table; when absent, same-species
            pairs and pairs sharing a type are compatible.
        collection: Optional storage that receives every offspring.
        notifier: Optional sink for user-facing messages.
        rng: Random source for outcome, IV, and move rolls.
        clock: Returns "now"; cooldowns are compared against it.
        cooldown_seconds: How long both parents rest after breeding.
    """

    def __init__(
        self,
        progression: ProgressionEngine,
        *,
        compatibility: BreedingCompatibility | None = None,
        collection: PersistentCollection | None = None,
        notifier: NotificationSink | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = _utcnow,
        cooldown_seconds: int = BREEDING_COOLDOWN_SECONDS,
    ):
        self.progression = progression
        self.compatibility = compatibility
        self.collection = collection
        self.notifier = notifier
        self.rng = rng or random.Random()
        self.clock = clock
        self.cooldown = timedelta(seconds=cooldown_seconds)
        self.cooldowns: dict[str, datetime] = {}
        self.history: list[BreedingRecord] = []

    def is_on_cooldown(self, creature: Creature) -> bool:
        expires_at = self.cooldowns.get(creature.id)
        return expires_at is not None and self.clock() < expires_at

    # ------------------------------------------------------------------
    # Compatibility
    # ------------------------------------------------------------------

    def species_compatibility(self, a: Creature, b: Creature) -> BreedingCheck:
        if self.compatibility is not None:
            if self.compatibility.can_breed(a.species, b.species):
                return BreedingCheck(ok=True, reason="Species are compatible")
            return BreedingCheck(ok=False, reason="These species are not compatible for breeding")
        return self._type_compatibility(a, b)

    def _type_compatibility(self, a: Creature, b: Creature) -> BreedingCheck:
        if a.species == b.species:
            return BreedingCheck(ok=True, reason="Same species")
        shared = [t for t in self._types(a) if t in self._types(b)]
        if shared:
            return BreedingCheck(ok=True, reason=f"Shared type: {shared[0]}")
        return BreedingCheck(ok=False, reason="No compatible types found")

    def _types(self, creature: Creature) -> list[str]:
        species = self.progression.species.get(creature.species)
        return list(species.types) if species else []

    def can_breed_together(self, a: Creature, b: Creature) -> BreedingCheck:
        """Check every breeding gate, reporting the first one that fails."""
        if a is b or a.id == b.id:
            return BreedingCheck(ok=False, reason="Cannot breed with itself")
        if a.is_wild or b.is_wild:
            return BreedingCheck(ok=False, reason="Wild monsters cannot breed")
        if self.is_on_cooldown(a) or self.is_on_cooldown(b):
            return BreedingCheck(ok=False, reason="One or both monsters are tired from recent breeding")

        compatibility = self.species_compatibility(a, b)
        if not compatibility.ok:
            return compatibility

        if a.level < BREEDING_MIN_LEVEL or b.level < BREEDING_MIN_LEVEL:
            return BreedingCheck(ok=False, reason=f"Both monsters must be at least level {BREEDING_MIN_LEVEL}")
        if a.friendship < BREEDING_MIN_FRIENDSHIP or b.friendship < BREEDING_MIN_FRIENDSHIP:
            return BreedingCheck(
                ok=False,
                reason=f"Monsters need at least {BREEDING_MIN_FRIENDSHIP} friendship to breed",
            )
        return BreedingCheck(ok=True, reason="Compatible for breeding")

    def success_chance(self, a: Creature, b: Creature) -> int:
        """Advisory success percentage (25-95) shown to players before breeding."""
        avg_level = (a.level + b.level) / 2
        level_bonus = min(20, math.floor(avg_level / 5) * 2)
        avg_friendship = (a.friendship + b.friendship) / 2
        friendship_bonus = min(15, math.floor(avg_friendship / 10))

        if a.species == b.species:
            compatibility_bonus = 10
        elif any(t in self._types(b) for t in self._types(a)):
            compatibility_bonus = 5
        else:
            compatibility_bonus = 0

        penalty = 0
        for creature in (a, b):
            species = self.progression.species.get(creature.species)
            rarity = species.rarity if species else Rarity.COMMON
            penalty += RARITY_BREEDING_PENALTY.get(rarity, 0)

        chance = 70 + level_bonus + friendship_bonus + compatibility_bonus - penalty
        return max(25, min(95, chance))

    # ------------------------------------------------------------------
    # Breeding
    # ------------------------------------------------------------------

    def outcomes(self, a: Creature, b: Creature) -> list[BreedingOutcome]:
        if self.compatibility is not None:
            return self.compatibility.breeding_outcomes(a.species, b.species)
        return [
            BreedingOutcome(species=a.species, chance=50),
            BreedingOutcome(species=b.species, chance=50),
        ]

    def breed(self, a: Creature, b: Creature) -> BreedingResult:
        """Produce an offspring from an eligible pair.

        The offspring species is a weighted roll over the outcome table.
        Each IV independently either takes the floored parent average or
        keeps its fresh random value, and one parent move may be inherited.
        """
        check = self.can_breed_together(a, b)
        if not check.ok:
            logger.debug("breeding_rejected", parents=[a.id, b.id], reason=check.reason)
            return BreedingResult(success=False, reason=check.reason)

        outcomes = self.outcomes(a, b)
        if not outcomes:
            return BreedingResult(success=False, reason="No breeding outcomes available")
        species_key = weighted_choice([(o.species, o.chance) for o in outcomes], self.rng)

        offspring = self.progression.create_creature(species_key, 1, wild=False)
        offspring.generation = max(a.generation, b.generation) + 1
        offspring.lineage = Lineage(
            parent_species=(a.species, b.species),
            generation=offspring.generation,
        )
        self._inherit(offspring, a, b)

        now = self.clock()
        self.cooldowns[a.id] = now + self.cooldown
        self.cooldowns[b.id] = now + self.cooldown

        collection_id = None
        if self.collection is not None:
            collection_id = self.collection.store(offspring)
            offspring.collection_id = collection_id

        self.history.append(
            BreedingRecord(
                parents=(a.id, b.id),
                parent_species=(a.species, b.species),
                offspring_id=offspring.id,
                offspring_species=offspring.species,
                time=now,
            )
        )
        logger.info(
            "bred",
            parents=[a.species, b.species],
            offspring=offspring.species,
            generation=offspring.generation,
        )
        emit(
            self.notifier,
            f"{a.display_name} and {b.display_name} produced a {offspring.display_name}!",
            "success",
        )
        return BreedingResult(
            success=True,
            reason="Breeding succeeded",
            offspring=offspring,
            collection_id=collection_id,
        )

    def _inherit(self, offspring: Creature, a: Creature, b: Creature) -> None:
        ivs = {}
        for name in STAT_NAMES:
            if coin_flip(self.rng):
                ivs[name] = clamp_iv(math.floor((a.ivs.get(name) + b.ivs.get(name)) / 2))
            else:
                ivs[name] = offspring.ivs.get(name)
        offspring.ivs = StatBlock(**ivs)

        inheritable = list(dict.fromkeys(a.learned_moves + b.learned_moves))
        if inheritable:
            move = pick(inheritable, self.rng)
            if move not in offspring.learned_moves and len(offspring.learned_moves) < MAX_LEARNED_MOVES:
                offspring.learned_moves.append(move)

        self.progression.recompute_stats(offspring)
        offspring.current_hp = offspring.stats.hp
        offspring.current_mp = offspring.stats.mp
