"""Battle participant, log, and result models."""

from enum import Enum

from pydantic import BaseModel

from config import EASY_CAPTURE_MIN_CHANCE, EASY_CAPTURE_MODE
from models.actions import Action
from models.creature import Combatant, Creature


class Side(str, Enum):
    """Which team a participant fights for."""
    ALLY = "ally"
    OPPONENT = "opponent"


class BattleOutcome(str, Enum):
    """How a battle ended."""
    VICTORY = "victory"
    DEFEAT = "defeat"
    FLED = "fled"
    CAPTURED = "captured"           # Every opponent was captured


class CombatParticipant(BaseModel):
    """One slot in the turn order."""
    id: str
    side: Side
    speed: int = 0                  # Only used for the initial ordering
    actor: Combatant                # Creature or PlayerCharacter
    defeated: bool = False
    captured: bool = False

    @property
    def is_active(self) -> bool:
        return not self.defeated and not self.captured

    @property
    def creature(self) -> Creature | None:
        return self.actor if isinstance(self.actor, Creature) else None


class LogEntry(BaseModel):
    """A logged action."""
    round: int
    actor_id: str | None
    action: Action


class Rewards(BaseModel):
    """Spoils of a won battle."""
    experience: int = 0
    gold: int = 0
    items: list[str] = []


class BattleResult(BaseModel):
    """Terminal payload of a finished battle."""
    outcome: BattleOutcome
    defeated: list[str] = []        # Participant ids of defeated opponents
    captured: list[str] = []        # Participant ids of captured opponents
    rewards: Rewards | None = None

    @property
    def victory(self) -> bool:
        return self.outcome in (BattleOutcome.VICTORY, BattleOutcome.CAPTURED)


class BattleState(BaseModel):
    """The full state of one combat session."""
    session_id: str
    owner_id: str
    active: bool = False
    round_number: int = 1
    turn_order: list[CombatParticipant] = []
    current_turn_index: int = 0
    action_log: list[LogEntry] = []
    result: BattleResult | None = None


class PlaytestOverrides(BaseModel):
    """Opt-in knobs for manual play-testing; production sessions leave them off."""
    easy_capture_mode: bool = EASY_CAPTURE_MODE
    min_capture_chance: int = EASY_CAPTURE_MIN_CHANCE  # Floor while easy_capture_mode is on
