"""Contracts for the collaborators the rules engine calls out to.

The engine never looks these up globally; they are handed to the
ProgressionEngine, BreedingResolver, and CombatSession constructors.
"""

from __future__ import annotations

import random
from typing import TYPE_CHECKING, Callable, Protocol

if TYPE_CHECKING:
    from models.creature import Combatant, Creature
    from models.species import BreedingOutcome, EvolutionRequirements, Species
    from models.spells import LootDrop, SpellOutcome


class SpeciesLookup(Protocol):
    def get(self, key: str) -> Species | None: ...
    def evolution_requirements(self, key: str) -> EvolutionRequirements | None: ...


class BreedingCompatibility(Protocol):
    def can_breed(self, species_a: str, species_b: str) -> bool: ...
    def breeding_outcomes(self, species_a: str, species_b: str) -> list[BreedingOutcome]: ...


class Inventory(Protocol):
    def quantity(self, item_id: str) -> int: ...
    def has(self, item_id: str, qty: int = 1) -> bool: ...
    def remove(self, item_id: str, qty: int = 1) -> None: ...
    def add(self, item_id: str, qty: int = 1) -> None: ...


class LootGenerator(Protocol):
    def generate(
        self,
        species: str,
        level: int,
        player_level: int,
        rng: random.Random,
    ) -> LootDrop: ...


class PlayerProgression(Protocol):
    @property
    def level(self) -> int: ...
    def grant_experience(self, amount: int) -> None: ...
    def grant_gold(self, amount: int) -> None: ...


class Spellcasting(Protocol):
    def has_mp(self, caster: Combatant, amount: int) -> bool: ...
    def consume_mp(self, caster: Combatant, amount: int) -> None: ...
    def regenerate_mp(self, caster: Combatant) -> int: ...
    def cast(self, caster: Combatant, spell_id: str, target_id: str | None) -> SpellOutcome: ...


class NotificationSink(Protocol):
    def notify(self, message: str, kind: str = "info") -> None: ...


class PersistentCollection(Protocol):
    def store(self, creature: Creature) -> str: ...


# (creature, required items) -> accept?
ConfirmEvolution = Callable[["Creature", list[str]], bool]
