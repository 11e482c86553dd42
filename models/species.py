"""Species records served by the species lookup."""

from enum import Enum

from pydantic import BaseModel

from models.creature import StatBlock


class Rarity(str, Enum):
    """Species rarity tiers."""
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


class GrowthTier(str, Enum):
    """Experience curve classes."""
    FAST = "fast"
    MEDIUM = "medium"
    SLOW = "slow"


class Species(BaseModel):
    """Base data for one monster species."""
    key: str                        # e.g., "slime"
    name: str                       # Display name, e.g., "Slime"
    types: list[str] = []           # e.g., ["water", "basic"]
    rarity: Rarity = Rarity.COMMON
    base_stats: StatBlock
    stat_growth: StatBlock = StatBlock()
    abilities: list[str] = []
    capture_rate: int | None = None  # None -> engine default
    evolution_level: int | None = None
    evolves_to: list[str] = []
    evolution_items: list[str] = []
    breeds_with: list[str] = []


class EvolutionRequirements(BaseModel):
    """What a species needs before it can evolve."""
    level: int
    items: list[str] = []
    possible_evolutions: list[str]


class BreedingOutcome(BaseModel):
    """One weighted entry of a breeding outcome table."""
    species: str
    chance: float                   # Relative weight, not a percentage
