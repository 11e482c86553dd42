"""Action descriptors and results for battle actions."""

from enum import Enum

from pydantic import BaseModel


class ActionType(str, Enum):
    """Everything a participant can do on its turn."""
    ATTACK = "attack"
    MAGIC = "magic"
    SPELL = "spell"
    ITEM = "item"
    CAPTURE = "capture"
    FLEE = "flee"
    STATUS = "status"
    DEFEND = "defend"


class ErrorKind(str, Enum):
    """Tagged failure reasons returned across the action boundary."""
    INVALID_PARTICIPANT = "invalid_participant"
    INVALID_TARGET = "invalid_target"
    INSUFFICIENT_RESOURCE = "insufficient_resource"
    DATA_UNAVAILABLE = "data_unavailable"
    CONSTRUCTION_ERROR = "construction_error"
    INACTIVE = "inactive"


class Action(BaseModel):
    """Descriptor stored in the action log."""
    action_type: ActionType
    target_id: str | None = None
    move_id: str | None = None       # Magic move or spell id
    item_id: str | None = None
    success: bool = True
    details: dict = {}               # Damage, rolls, effects, etc.


class ActionResult(BaseModel):
    """What the engine reports back after an action."""
    success: bool
    action_type: ActionType
    description: str                 # Human-readable narrative
    error_kind: ErrorKind | None = None
    error: str | None = None         # If the action was rejected
    damage_dealt: int | None = None
    critical: bool | None = None
    healed: int | None = None
    mp_spent: int | None = None
    target_hp_remaining: int | None = None
    chance: int | None = None        # Capture/flee percentage
    roll: int | None = None          # d100 roll for capture/flee
    collection_id: str | None = None  # Id assigned to a captured creature


def failure(action_type: ActionType, kind: ErrorKind, reason: str) -> ActionResult:
    """Build a rejected ActionResult."""
    return ActionResult(
        success=False,
        action_type=action_type,
        description=reason,
        error_kind=kind,
        error=reason,
    )
