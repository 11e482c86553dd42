"""Shared fixtures: a small species table and the engines built on it."""

import random

import pytest

from engine.collaborators import ItemBag, NotificationLog, SpeciesRegistry
from engine.progression import ProgressionEngine
from models.creature import StatBlock
from models.species import Rarity, Species


def _make_species() -> list[Species]:
    return [
        Species(
            key="slime",
            name="Slime",
            types=["water"],
            rarity=Rarity.COMMON,
            base_stats=StatBlock(
                hp=40, mp=20, attack=10, defense=8,
                magic_attack=8, magic_defense=8, speed=12, accuracy=80,
            ),
            stat_growth=StatBlock(
                hp=4, mp=2, attack=2, defense=2,
                magic_attack=2, magic_defense=2, speed=1, accuracy=0,
            ),
            abilities=["absorb"],
            capture_rate=45,
            evolution_level=10,
            evolves_to=["king_slime"],
            breeds_with=["goblin"],
        ),
        Species(
            key="king_slime",
            name="King Slime",
            types=["water"],
            rarity=Rarity.UNCOMMON,
            base_stats=StatBlock(
                hp=80, mp=40, attack=18, defense=16,
                magic_attack=14, magic_defense=14, speed=10, accuracy=80,
            ),
            stat_growth=StatBlock(
                hp=6, mp=3, attack=3, defense=3,
                magic_attack=2, magic_defense=2, speed=1, accuracy=0,
            ),
            abilities=["absorb", "crush"],
            capture_rate=20,
        ),
        Species(
            key="goblin",
            name="Goblin",
            types=["earth"],
            rarity=Rarity.COMMON,
            base_stats=StatBlock(
                hp=35, mp=10, attack=14, defense=6,
                magic_attack=4, magic_defense=5, speed=15, accuracy=85,
            ),
            stat_growth=StatBlock(
                hp=3, mp=1, attack=3, defense=1,
                magic_attack=1, magic_defense=1, speed=2, accuracy=0,
            ),
            abilities=["scratch", "taunt"],
            capture_rate=30,
            breeds_with=["slime"],
        ),
        Species(
            key="wisp",
            name="Wisp",
            types=["fire", "spirit"],
            rarity=Rarity.RARE,
            base_stats=StatBlock(
                hp=30, mp=40, attack=6, defense=6,
                magic_attack=16, magic_defense=12, speed=18, accuracy=90,
            ),
            stat_growth=StatBlock(hp=2, mp=4, magic_attack=3, magic_defense=2, speed=2),
            abilities=["ember"],
            evolution_level=5,
            evolves_to=["phoenix"],
            evolution_items=["fire_stone"],
        ),
        Species(
            key="phoenix",
            name="Phoenix",
            types=["fire"],
            rarity=Rarity.LEGENDARY,
            base_stats=StatBlock(
                hp=90, mp=80, attack=20, defense=18,
                magic_attack=30, magic_defense=25, speed=25, accuracy=95,
            ),
            stat_growth=StatBlock(hp=8, mp=6, attack=3, defense=3, magic_attack=5, magic_defense=4, speed=3),
            abilities=["ember", "blaze", "rebirth"],
        ),
    ]


@pytest.fixture
def registry() -> SpeciesRegistry:
    return SpeciesRegistry(_make_species())


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def inventory() -> ItemBag:
    return ItemBag()


@pytest.fixture
def notifier() -> NotificationLog:
    return NotificationLog()


@pytest.fixture
def progression(registry, inventory, notifier, rng) -> ProgressionEngine:
    return ProgressionEngine(registry, inventory=inventory, notifier=notifier, rng=rng)
