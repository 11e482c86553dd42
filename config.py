"""Engine-wide configuration constants for the monster rules engine."""

import os

MAX_LEVEL = 100
MAX_LEARNED_MOVES = 4
IV_MIN = 0
IV_MAX = 31

STAT_NAMES = (
    "hp",
    "mp",
    "attack",
    "defense",
    "magic_attack",
    "magic_defense",
    "speed",
    "accuracy",
)

# Moves unlocked by level, appended after the species' base abilities.
LEVEL_MOVE_GATES = (
    (5, "tackle"),
    (10, "bite"),
    (15, "roar"),
    (20, "charge"),
)

PERSONALITIES = (
    "Hardy", "Lonely", "Brave", "Adamant", "Naughty",
    "Bold", "Docile", "Relaxed", "Impish", "Lax",
    "Timid", "Hasty", "Serious", "Jolly", "Naive",
    "Modest", "Mild", "Quiet", "Bashful", "Rash",
    "Calm", "Gentle", "Sassy", "Careful", "Quirky",
)

# Combat
BASE_ATTACK_POWER = 60
MAGIC_FLAT_BONUS = 5
DEFAULT_MAGIC_COST = 5
DEFAULT_CAPTURE_RATE = 30
CAPTURE_MIN_CHANCE = 5
CAPTURE_MAX_CHANCE = 95
CAPTURE_ITEM_BONUS = 10
DEFAULT_FLEE_CHANCE = 75
MP_REGEN_FRACTION = 0.05
DEFAULT_STATUS_DURATION = 3
BASIC_HEAL_ITEM = "health_potion"
BASIC_HEAL_AMOUNT = 30

# Friendship
WILD_FRIENDSHIP = 0
CAPTURED_FRIENDSHIP = 20
BRED_FRIENDSHIP = 50
MAX_FRIENDSHIP = 100

# Breeding
BREEDING_MIN_LEVEL = 10
BREEDING_MIN_FRIENDSHIP = 50
BREEDING_COOLDOWN_SECONDS = int(os.environ.get("MONSTER_BREEDING_COOLDOWN_SECONDS", "900"))
BREEDING_PARENT_WEIGHT = 35

# Testing overrides (never consulted unless a session opts in)
EASY_CAPTURE_MODE = os.environ.get("MONSTER_EASY_CAPTURE_MODE", "").lower() in ("1", "true", "yes")
EASY_CAPTURE_MIN_CHANCE = 75

# Logging
LOG_LEVEL = os.environ.get("MONSTER_LOG_LEVEL", "INFO")
LOG_JSON = os.environ.get("MONSTER_LOG_JSON", "").lower() in ("1", "true", "yes")
