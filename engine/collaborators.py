"""In-memory implementations of the collaborator contracts.

Good enough for tests, tooling, and single-process games; a real game
plugs in its own inventory, storage, and notification layers.
"""

from __future__ import annotations

from uuid import uuid4

from config import BREEDING_PARENT_WEIGHT
from engine.logs import get_logger
from engine.ports import NotificationSink
from models.creature import Creature
from models.species import BreedingOutcome, EvolutionRequirements, Species

logger = get_logger(__name__)


def emit(sink: NotificationSink | None, message: str, kind: str = "info") -> None:
    """Send a user-facing message. Sink failures never reach the engine."""
    if sink is None:
        return
    try:
        sink.notify(message, kind)
    except Exception as exc:  # noqa: BLE001 - notifications are fire-and-forget
        logger.warning("notification_failed", message=message, error=str(exc))


class SpeciesRegistry:
    """Species table plus breeding compatibility rules."""

    def __init__(self, species: list[Species] | None = None):
        self._species: dict[str, Species] = {}
        self._combinations: dict[frozenset[str], BreedingOutcome] = {}
        for sp in species or []:
            self.register(sp)

    def register(self, species: Species) -> None:
        self._species[species.key] = species

    def register_combination(self, species_a: str, species_b: str, result: str, chance: float) -> None:
        """Add a special offspring for a specific parent pair (order-insensitive)."""
        self._combinations[frozenset((species_a, species_b))] = BreedingOutcome(
            species=result, chance=chance
        )

    def get(self, key: str) -> Species | None:
        return self._species.get(key)

    def evolution_requirements(self, key: str) -> EvolutionRequirements | None:
        species = self.get(key)
        if species is None or not species.evolves_to or species.evolution_level is None:
            return None
        return EvolutionRequirements(
            level=species.evolution_level,
            items=list(species.evolution_items),
            possible_evolutions=list(species.evolves_to),
        )

    def can_breed(self, species_a: str, species_b: str) -> bool:
        a = self.get(species_a)
        b = self.get(species_b)
        if a is None or b is None:
            return False
        return species_b in a.breeds_with or species_a in b.breeds_with

    def breeding_outcomes(self, species_a: str, species_b: str) -> list[BreedingOutcome]:
        """Either parent at equal weight, plus any special combination."""
        if not self.can_breed(species_a, species_b):
            return []
        outcomes = [
            BreedingOutcome(species=species_a, chance=BREEDING_PARENT_WEIGHT),
            BreedingOutcome(species=species_b, chance=BREEDING_PARENT_WEIGHT),
        ]
        combo = self._combinations.get(frozenset((species_a, species_b)))
        if combo is not None:
            outcomes.append(combo)
        return outcomes


class ItemBag:
    """Named item counts."""

    def __init__(self, items: dict[str, int] | None = None):
        self._items: dict[str, int] = {k: v for k, v in (items or {}).items() if v > 0}

    def quantity(self, item_id: str) -> int:
        return self._items.get(item_id, 0)

    def has(self, item_id: str, qty: int = 1) -> bool:
        return self.quantity(item_id) >= qty

    def add(self, item_id: str, qty: int = 1) -> None:
        self._items[item_id] = self.quantity(item_id) + qty

    def remove(self, item_id: str, qty: int = 1) -> None:
        if self.quantity(item_id) < qty:
            raise ValueError(f"Not enough '{item_id}' (have {self.quantity(item_id)}, need {qty})")
        self._items[item_id] -= qty
        if self._items[item_id] <= 0:
            del self._items[item_id]

    def snapshot(self) -> dict[str, int]:
        return dict(self._items)


class PlayerProgress:
    """Tracks the player's level, experience, and gold."""

    def __init__(self, level: int = 1, experience: int = 0, gold: int = 0):
        self._level = level
        self.experience = experience
        self.gold = gold

    @property
    def level(self) -> int:
        return self._level

    def grant_experience(self, amount: int) -> None:
        self.experience += amount

    def grant_gold(self, amount: int) -> None:
        self.gold += amount


class CreatureStorage:
    """Persistent collection of captured and bred creatures."""

    def __init__(self):
        self.creatures: dict[str, Creature] = {}

    def store(self, creature: Creature) -> str:
        collection_id = str(uuid4())
        self.creatures[collection_id] = creature
        return collection_id


class NotificationLog:
    """Keeps every notification in order."""

    def __init__(self):
        self.messages: list[tuple[str, str]] = []

    def notify(self, message: str, kind: str = "info") -> None:
        self.messages.append((message, kind))


def auto_confirm(creature: Creature, items: list[str]) -> bool:
    """Non-interactive evolution confirmation: always accept."""
    return True
