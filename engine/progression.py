"""Progression engine: creature creation, experience, level-ups, evolution."""

from __future__ import annotations

import math
import random

from config import (
    BRED_FRIENDSHIP,
    LEVEL_MOVE_GATES,
    MAX_LEARNED_MOVES,
    MAX_LEVEL,
    WILD_FRIENDSHIP,
)
from engine.collaborators import auto_confirm, emit
from engine.errors import DataUnavailableError
from engine.logs import get_logger
from engine.ports import ConfirmEvolution, Inventory, NotificationSink, SpeciesLookup
from engine.stats import (
    compute_stats,
    experience_threshold,
    generate_ivs,
    generate_personality,
    growth_tier_for_rarity,
)
from models.creature import Creature, StatBlock
from models.species import GrowthTier, Species

logger = get_logger(__name__)


def level_gated_moves(level: int) -> list[str]:
    """Moves unlocked by reaching ``level``, in unlock order."""
    return [move for gate, move in LEVEL_MOVE_GATES if level >= gate]


def moves_for_level(species: Species, level: int) -> list[str]:
    """Base abilities followed by level-gated moves, truncated to the move cap.

    Truncation keeps the first entries, so a species with a long base
    ability list never sees its later level-gated moves.
    """
    return (list(species.abilities) + level_gated_moves(level))[:MAX_LEARNED_MOVES]


class ProgressionEngine:
    """Owns the (level, experience) state machine of creatures.

    Args:
        species: Species lookup used for stats, moves, and evolution data.
        inventory: Needed only for evolutions that consume items.
        confirm: Asked before item-consuming evolutions; defaults to accept.
        notifier: Optional sink for user-facing messages.
        rng: Random source for IVs and personality.
    """

    def __init__(
        self,
        species: SpeciesLookup,
        *,
        inventory: Inventory | None = None,
        confirm: ConfirmEvolution = auto_confirm,
        notifier: NotificationSink | None = None,
        rng: random.Random | None = None,
    ):
        self.species = species
        self.inventory = inventory
        self.confirm = confirm
        self.notifier = notifier
        self.rng = rng or random.Random()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def species_for(self, key: str) -> Species:
        species = self.species.get(key)
        if species is None:
            raise DataUnavailableError("Species", key)
        return species

    def growth_tier(self, creature: Creature) -> GrowthTier:
        species = self.species.get(creature.species)
        return growth_tier_for_rarity(species.rarity if species else None)

    def threshold(self, creature: Creature, level: int) -> int:
        return experience_threshold(level, self.growth_tier(creature))

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_creature(
        self,
        species_key: str,
        level: int = 1,
        *,
        wild: bool = True,
        ivs: StatBlock | None = None,
    ) -> Creature:
        """Build a creature with fresh IVs and full HP/MP.

        Raises:
            DataUnavailableError: If the species is unknown.
        """
        species = self.species_for(species_key)
        level = max(1, min(MAX_LEVEL, level))
        ivs = ivs or generate_ivs(self.rng)
        stats = compute_stats(species.base_stats, species.stat_growth, level, ivs)

        creature = Creature(
            name=species.name,
            species=species.key,
            level=level,
            stats=stats,
            current_hp=stats.hp,
            current_mp=stats.mp,
            ivs=ivs,
            personality=generate_personality(self.rng),
            abilities=list(species.abilities),
            learned_moves=moves_for_level(species, level),
            friendship=WILD_FRIENDSHIP if wild else BRED_FRIENDSHIP,
            is_wild=wild,
        )
        creature.experience_to_next = self.threshold(creature, level + 1)
        logger.debug("creature_created", species=species.key, level=level, wild=wild)
        return creature

    def recompute_stats(self, creature: Creature) -> StatBlock:
        """Refresh derived stats from species, level, and IVs. HP/MP are clamped, not refilled."""
        species = self.species_for(creature.species)
        creature.stats = compute_stats(species.base_stats, species.stat_growth, creature.level, creature.ivs)
        creature.clamp_resources()
        return creature.stats

    # ------------------------------------------------------------------
    # Experience
    # ------------------------------------------------------------------

    def add_experience(self, creature: Creature, amount: int) -> int:
        """Add experience and apply every level-up it pays for.

        Returns:
            Number of levels gained (always 0 for wild creatures).
        """
        if creature.is_wild or amount <= 0:
            return 0

        creature.experience += amount
        levels_gained = 0
        while (
            creature.level < MAX_LEVEL
            and creature.experience >= self.threshold(creature, creature.level + 1)
        ):
            self.level_up(creature)
            levels_gained += 1
        return levels_gained

    def level_up(self, creature: Creature) -> None:
        """Apply a single level-up step."""
        creature.experience -= self.threshold(creature, creature.level + 1)
        creature.level += 1

        old_max_hp = creature.stats.hp
        old_max_mp = creature.stats.mp
        self.recompute_stats(creature)
        hp_gain = creature.stats.hp - old_max_hp
        mp_gain = creature.stats.mp - old_max_mp
        creature.current_hp = max(0, min(creature.current_hp + hp_gain, creature.stats.hp))
        creature.current_mp = max(0, min(creature.current_mp + mp_gain, creature.stats.mp))

        new_moves = moves_for_level(self.species_for(creature.species), creature.level)
        if len(new_moves) > len(creature.learned_moves):
            learned = new_moves[-1]
            creature.learned_moves = new_moves
            emit(self.notifier, f"{creature.display_name} learned {learned}!", "success")

        self.check_evolution(creature)
        creature.experience_to_next = self.threshold(creature, creature.level + 1)

        logger.info(
            "level_up",
            creature_id=creature.id,
            species=creature.species,
            level=creature.level,
            hp_gain=hp_gain,
            mp_gain=mp_gain,
        )
        emit(self.notifier, f"{creature.display_name} grew to level {creature.level}!", "success")

    # ------------------------------------------------------------------
    # Evolution
    # ------------------------------------------------------------------

    def check_evolution(self, creature: Creature) -> bool:
        """Evolve the creature if every gate passes.

        Gates, in order: an evolution target exists, the level requirement
        is met, required items are held, the confirmation port accepts, and
        the target species is known. Items are consumed only after all of
        them pass.
        """
        requirements = self.species.evolution_requirements(creature.species)
        if requirements is None or not requirements.possible_evolutions:
            return False
        if creature.level < requirements.level:
            return False

        items = list(requirements.items)
        if items:
            if self.inventory is None:
                logger.warning("evolution_inventory_missing", creature_id=creature.id, items=items)
                return False
            if not all(self.inventory.has(item) for item in items):
                emit(self.notifier, "Missing required items for evolution", "error")
                return False
            if not self.confirm(creature, items):
                logger.info("evolution_declined", creature_id=creature.id)
                return False

        target = requirements.possible_evolutions[0]
        if self.species.get(target) is None:
            logger.warning("evolution_target_unknown", creature_id=creature.id, target=target)
            return False

        for item in items:
            self.inventory.remove(item, 1)
        if items:
            emit(self.notifier, f"Used items for evolution: {', '.join(items)}", "item")

        return self.evolve(creature, target)

    def evolve(self, creature: Creature, new_species_key: str) -> bool:
        """Swap species in place, keeping HP/MP at the same fraction of max."""
        new_species = self.species.get(new_species_key)
        if new_species is None:
            return False

        old_name = creature.display_name
        hp_fraction = creature.current_hp / creature.stats.hp if creature.stats.hp > 0 else 1.0
        mp_fraction = creature.current_mp / creature.stats.mp if creature.stats.mp > 0 else 1.0

        creature.species = new_species.key
        creature.name = new_species.name
        creature.evolution_stage += 1
        self.recompute_stats(creature)
        creature.current_hp = math.floor(creature.stats.hp * hp_fraction)
        creature.current_mp = math.floor(creature.stats.mp * mp_fraction)
        creature.clamp_resources()

        creature.abilities = list(new_species.abilities)
        creature.learned_moves = moves_for_level(new_species, creature.level)

        logger.info(
            "evolved",
            creature_id=creature.id,
            species=new_species.key,
            stage=creature.evolution_stage,
        )
        creature.experience_to_next = self.threshold(creature, creature.level + 1)
        emit(self.notifier, f"{old_name} evolved into {new_species.name}!", "success")
        return True
