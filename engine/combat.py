"""Combat session: turn order, action resolution, battle end, and rewards."""

from __future__ import annotations

import math
import random
from datetime import datetime, timezone
from typing import Callable
from uuid import uuid4

from config import (
    BASIC_HEAL_AMOUNT,
    BASIC_HEAL_ITEM,
    CAPTURE_ITEM_BONUS,
    DEFAULT_FLEE_CHANCE,
    DEFAULT_MAGIC_COST,
    DEFAULT_STATUS_DURATION,
    MP_REGEN_FRACTION,
)
from engine.collaborators import emit
from engine.dice import roll_percent
from engine.errors import ConstructionError
from engine.logs import get_logger
from engine.npc import AIChoice, choose_action
from engine.ports import (
    Inventory,
    LootGenerator,
    NotificationSink,
    PersistentCollection,
    PlayerProgression,
    SpeciesLookup,
    Spellcasting,
)
from engine.progression import ProgressionEngine
from engine.rules import (
    CaptureModifiers,
    compute_capture_chance,
    compute_damage,
    compute_experience_reward,
    fallback_loot,
)
from models.actions import Action, ActionResult, ActionType, ErrorKind, failure
from models.battle import (
    BattleOutcome,
    BattleResult,
    BattleState,
    CombatParticipant,
    LogEntry,
    PlaytestOverrides,
    Rewards,
    Side,
)
from models.creature import Combatant, Creature, StatusEffectType
from models.spells import SpellEffect, SpellEffectKind

logger = get_logger(__name__)


def make_participant(
    actor: Combatant,
    side: Side | str,
    speed: int | None = None,
    participant_id: str | None = None,
) -> CombatParticipant:
    """Wrap a creature or player character as a battle participant.

    Speed defaults to the actor's effective speed stat.
    """
    return CombatParticipant(
        id=participant_id or actor.id,
        side=Side(side),
        speed=actor.effective_stat("speed") if speed is None else speed,
        actor=actor,
    )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CombatSession:
    """One encounter, from ``start`` to ``end_battle``.

    The session owns its participants and turn order; callers interact
    only through the action methods below. Every action either validates
    completely and then mutates state, or returns a failed ActionResult
    without touching anything.

    Args:
        owner_id: The encounter owner (usually the player id).
        species: Species lookup for capture rates and reward rarity.
        progression: Receives post-battle experience for ally creatures.
        inventory: Items for consumables, capture items, and drops.
        loot: Loot generator; fallback formulas are used without one.
        player: Player progression for level scaling and reward grants.
        spellcasting: Spell system; MP regen and checks fall back without one.
        notifier: Sink for user-facing battle messages.
        collection: Receives captured creatures.
        rng: The single random source for every roll in the session.
        overrides: Play-testing knobs, off by default.
        heal_items: Consumable item id -> HP restored.
        clock: Returns "now" for capture timestamps.
    """

    def __init__(
        self,
        owner_id: str = "player",
        *,
        species: SpeciesLookup | None = None,
        progression: ProgressionEngine | None = None,
        inventory: Inventory | None = None,
        loot: LootGenerator | None = None,
        player: PlayerProgression | None = None,
        spellcasting: Spellcasting | None = None,
        notifier: NotificationSink | None = None,
        collection: PersistentCollection | None = None,
        rng: random.Random | None = None,
        overrides: PlaytestOverrides | None = None,
        heal_items: dict[str, int] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.species = species
        self.progression = progression
        self.inventory = inventory
        self.loot = loot
        self.player = player
        self.spellcasting = spellcasting
        self.notifier = notifier
        self.collection = collection
        self.rng = rng or random.Random()
        self.overrides = overrides or PlaytestOverrides()
        self.heal_items = heal_items if heal_items is not None else {BASIC_HEAL_ITEM: BASIC_HEAL_AMOUNT}
        self.clock = clock
        self._state = BattleState(session_id=str(uuid4()), owner_id=owner_id)
        self._log = logger.bind(session_id=self._state.session_id)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def session_id(self) -> str:
        return self._state.session_id

    @property
    def owner_id(self) -> str:
        return self._state.owner_id

    @property
    def active(self) -> bool:
        return self._state.active

    @property
    def round_number(self) -> int:
        return self._state.round_number

    @property
    def current_turn_index(self) -> int:
        return self._state.current_turn_index

    @property
    def turn_order(self) -> tuple[CombatParticipant, ...]:
        return tuple(self._state.turn_order)

    @property
    def action_log(self) -> tuple[LogEntry, ...]:
        return tuple(self._state.action_log)

    @property
    def result(self) -> BattleResult | None:
        return self._state.result

    @property
    def player_level(self) -> int:
        return self.player.level if self.player is not None else 1

    def get_participant(self, participant_id: str | None) -> CombatParticipant | None:
        for participant in self._state.turn_order:
            if participant.id == participant_id:
                return participant
        return None

    def participants_on(self, side: Side, *, active_only: bool = True) -> list[CombatParticipant]:
        return [
            p for p in self._state.turn_order
            if p.side == side and (p.is_active or not active_only)
        ]

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self, participants: list[CombatParticipant]) -> list[CombatParticipant]:
        """Fix the turn order and begin the battle.

        Participants are sorted by descending speed; equal speeds keep their
        input order.

        Returns:
            The turn order.

        Raises:
            ConstructionError: If a battle is already active, the list is
                empty, or participant ids are not unique.
        """
        if self._state.active:
            raise ConstructionError("A battle is already in progress for this session")
        if not participants:
            raise ConstructionError("No participants provided")
        ids = [p.id for p in participants]
        if len(set(ids)) != len(ids):
            raise ConstructionError("Participant ids must be unique")

        ordered = sorted(participants, key=lambda p: -p.speed)
        self._state.turn_order = ordered
        self._state.active = True
        self._state.round_number = 1
        self._state.current_turn_index = 0
        self._state.action_log = []
        self._state.result = None

        self._log.info(
            "battle_started",
            owner_id=self._state.owner_id,
            order=[p.id for p in ordered],
        )
        return list(ordered)

    def get_current_actor(self) -> CombatParticipant | None:
        """The participant whose turn it is, or None if no battle is active."""
        if not self._state.active or not self._state.turn_order:
            return None
        return self._state.turn_order[self._state.current_turn_index]

    def perform_action(self, action: Action) -> bool:
        """Log an action for the current actor and end its turn.

        Returns:
            False if no battle is active, else True.
        """
        if not self._state.active:
            return False
        self._finish_action(action)
        return True

    def end_turn(self) -> None:
        """Run end-of-turn effects for the current actor and advance.

        Defeated and captured participants keep their slot but are skipped.
        Wrapping past the end of the order starts a new round.
        """
        if not self._state.active or not self._state.turn_order:
            return

        current = self.get_current_actor()
        if current is not None and current.is_active:
            self._end_of_turn_effects(current)
            self._resolve_defeats()
            if not self._state.active:
                return

        order_len = len(self._state.turn_order)
        for _ in range(order_len):
            self._state.current_turn_index = (self._state.current_turn_index + 1) % order_len
            if self._state.current_turn_index == 0:
                self._state.round_number += 1
                self._end_of_round_effects()
            if self._state.turn_order[self._state.current_turn_index].is_active:
                break

    def end_battle(self, result: BattleResult) -> BattleResult:
        """Close the session and, on victory, compute and grant rewards."""
        if not self._state.active:
            return self._state.result or result

        self._state.active = False
        self._state.result = result
        if result.victory:
            result.rewards = self.grant_rewards(result)

        self._log.info(
            "battle_ended",
            outcome=result.outcome.value,
            rounds=self._state.round_number,
            defeated=result.defeated,
            captured=result.captured,
        )
        return result

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def attack(self, attacker_id: str, target_id: str) -> ActionResult:
        """Basic physical attack."""
        rejected = self._validate_pair(ActionType.ATTACK, attacker_id, target_id)
        if rejected:
            return rejected
        attacker = self.get_participant(attacker_id)
        target = self.get_participant(target_id)

        hit = compute_damage(attacker.actor, target.actor, magic=False, rng=self.rng)
        dealt = target.actor.take_damage(hit.damage)
        crit_txt = " Critical hit!" if hit.critical else ""
        description = f"{attacker.actor.display_name} attacks {target.actor.display_name} for {dealt} damage.{crit_txt}"
        emit(self.notifier, description, "info")

        self._finish_action(Action(
            action_type=ActionType.ATTACK,
            target_id=target_id,
            details={"damage": dealt, "critical": hit.critical},
        ))
        return ActionResult(
            success=True,
            action_type=ActionType.ATTACK,
            description=description,
            damage_dealt=dealt,
            critical=hit.critical,
            target_hp_remaining=target.actor.current_hp,
        )

    def magic(
        self,
        attacker_id: str,
        target_id: str,
        move_id: str = "spell",
        mp_cost: int = DEFAULT_MAGIC_COST,
    ) -> ActionResult:
        """Magic attack that spends MP. A shortfall changes nothing."""
        rejected = self._validate_pair(ActionType.MAGIC, attacker_id, target_id)
        if rejected:
            return rejected
        if mp_cost < 0:
            self._log.debug("action_rejected", action="magic", actor_id=attacker_id, reason="mp_cost")
            return failure(ActionType.MAGIC, ErrorKind.INSUFFICIENT_RESOURCE, "MP cost cannot be negative")
        attacker = self.get_participant(attacker_id)
        target = self.get_participant(target_id)

        if self.spellcasting is not None:
            enough = self.spellcasting.has_mp(attacker.actor, mp_cost)
        else:
            enough = attacker.actor.current_mp >= mp_cost
        if not enough:
            self._log.debug("action_rejected", action="magic", actor_id=attacker_id, reason="mp")
            return failure(ActionType.MAGIC, ErrorKind.INSUFFICIENT_RESOURCE, "Not enough MP")

        if self.spellcasting is not None:
            self.spellcasting.consume_mp(attacker.actor, mp_cost)
        else:
            attacker.actor.use_mp(mp_cost)

        hit = compute_damage(attacker.actor, target.actor, magic=True, rng=self.rng)
        dealt = target.actor.take_damage(hit.damage)
        description = f"{attacker.actor.display_name}'s {move_id} hits {target.actor.display_name} for {dealt}."
        emit(self.notifier, description, "info")

        self._finish_action(Action(
            action_type=ActionType.MAGIC,
            target_id=target_id,
            move_id=move_id,
            details={"damage": dealt, "critical": hit.critical, "mp_cost": mp_cost},
        ))
        return ActionResult(
            success=True,
            action_type=ActionType.MAGIC,
            description=description,
            damage_dealt=dealt,
            critical=hit.critical,
            mp_spent=mp_cost,
            target_hp_remaining=target.actor.current_hp,
        )

    def cast_spell(self, caster_id: str, spell_id: str, target_id: str | None = None) -> ActionResult:
        """Cast through the spellcasting collaborator and apply its effects."""
        if self.spellcasting is None:
            return failure(ActionType.SPELL, ErrorKind.DATA_UNAVAILABLE, "Spellcasting is not available")
        rejected = self._validate_actor(ActionType.SPELL, caster_id)
        if rejected:
            return rejected
        if target_id is not None and self.get_participant(target_id) is None:
            return failure(ActionType.SPELL, ErrorKind.INVALID_TARGET, f"Target '{target_id}' not found")
        caster = self.get_participant(caster_id)

        outcome = self.spellcasting.cast(caster.actor, spell_id, target_id)
        if not outcome.success:
            kind = ErrorKind.INSUFFICIENT_RESOURCE if outcome.insufficient_mp else ErrorKind.INVALID_PARTICIPANT
            return failure(ActionType.SPELL, kind, outcome.reason or "Spell failed")

        total_damage = 0
        total_healed = 0
        for effect in outcome.effects:
            damage, healed = self._apply_spell_effect(effect)
            total_damage += damage
            total_healed += healed

        description = f"{caster.actor.display_name} casts {spell_id}."
        emit(self.notifier, f"{description} (-{outcome.mp_consumed} MP)", "spell")

        self._finish_action(Action(
            action_type=ActionType.SPELL,
            target_id=target_id,
            move_id=spell_id,
            details={
                "mp_consumed": outcome.mp_consumed,
                "effects": [e.model_dump(mode="json") for e in outcome.effects],
            },
        ))
        return ActionResult(
            success=True,
            action_type=ActionType.SPELL,
            description=description,
            damage_dealt=total_damage,
            healed=total_healed,
            mp_spent=outcome.mp_consumed,
        )

    def use_item(self, user_id: str, item_id: str = BASIC_HEAL_ITEM) -> ActionResult:
        """Use a healing consumable on the user."""
        rejected = self._validate_actor(ActionType.ITEM, user_id)
        if rejected:
            return rejected
        if self.inventory is None:
            return failure(ActionType.ITEM, ErrorKind.DATA_UNAVAILABLE, "Inventory is not available")
        if self.inventory.quantity(item_id) <= 0:
            return failure(ActionType.ITEM, ErrorKind.INSUFFICIENT_RESOURCE, f"No {item_id} left")
        heal_amount = self.heal_items.get(item_id, 0)
        if heal_amount <= 0:
            return failure(ActionType.ITEM, ErrorKind.DATA_UNAVAILABLE, f"Unsupported item '{item_id}'")
        user = self.get_participant(user_id)

        healed = user.actor.heal(heal_amount)
        self.inventory.remove(item_id, 1)
        description = f"{user.actor.display_name} used {item_id} and healed {healed}."
        emit(self.notifier, description, "item")

        self._finish_action(Action(
            action_type=ActionType.ITEM,
            target_id=user_id,
            item_id=item_id,
            details={"healed": healed},
        ))
        return ActionResult(
            success=True,
            action_type=ActionType.ITEM,
            description=description,
            healed=healed,
            target_hp_remaining=user.actor.current_hp,
        )

    def apply_status_effect(
        self,
        target_id: str,
        effect: StatusEffectType | str,
        duration: int = DEFAULT_STATUS_DURATION,
    ) -> ActionResult:
        """Inflict a status effect as the current actor's action."""
        if not self._state.active:
            return failure(ActionType.STATUS, ErrorKind.INACTIVE, "No battle in progress")
        target = self.get_participant(target_id)
        if target is None or not target.is_active:
            return failure(ActionType.STATUS, ErrorKind.INVALID_TARGET, "Invalid target")
        try:
            effect = StatusEffectType(effect)
        except ValueError:
            return failure(ActionType.STATUS, ErrorKind.INVALID_TARGET, f"Unknown status effect '{effect}'")

        target.actor.apply_status_effect(effect, duration)
        description = f"{target.actor.display_name} is now {effect.value}."
        emit(self.notifier, description, "warning")

        self._finish_action(Action(
            action_type=ActionType.STATUS,
            target_id=target_id,
            details={"effect": effect.value, "duration": duration},
        ))
        return ActionResult(success=True, action_type=ActionType.STATUS, description=description)

    def defend(self, actor_id: str) -> ActionResult:
        """Spend the turn defending."""
        rejected = self._validate_actor(ActionType.DEFEND, actor_id)
        if rejected:
            return rejected
        actor = self.get_participant(actor_id)
        description = f"{actor.actor.display_name} is defending."
        emit(self.notifier, description, "info")
        self._finish_action(Action(action_type=ActionType.DEFEND))
        return ActionResult(success=True, action_type=ActionType.DEFEND, description=description)

    def compute_capture_chance(
        self,
        target: Combatant,
        modifiers: CaptureModifiers | None = None,
    ) -> int:
        """Capture chance in percent, with play-testing overrides applied on top."""
        capture_rate = None
        if isinstance(target, Creature) and self.species is not None:
            species = self.species.get(target.species)
            if species is not None:
                capture_rate = species.capture_rate

        chance = compute_capture_chance(target, self.player_level, capture_rate, modifiers)
        if self.overrides.easy_capture_mode:
            chance = max(chance, self.overrides.min_capture_chance)
        return chance

    def attempt_capture(self, user_id: str, target_id: str, item_id: str | None = None) -> ActionResult:
        """Try to capture a wild opponent.

        A named capture item must be held; it is consumed for a flat bonus.
        A failed roll is still a completed action: the turn passes.
        """
        rejected = self._validate_actor(ActionType.CAPTURE, user_id)
        if rejected:
            return rejected
        target = self.get_participant(target_id)
        if target is None:
            return failure(ActionType.CAPTURE, ErrorKind.INVALID_TARGET, f"Target '{target_id}' not found")
        creature = target.creature
        if target.side != Side.OPPONENT or not target.is_active or creature is None or not creature.is_wild:
            return failure(ActionType.CAPTURE, ErrorKind.INVALID_TARGET, "Target cannot be captured")

        item_bonus = 0
        if item_id is not None:
            if self.inventory is None:
                return failure(ActionType.CAPTURE, ErrorKind.DATA_UNAVAILABLE, "Inventory is not available")
            if not self.inventory.has(item_id):
                return failure(ActionType.CAPTURE, ErrorKind.INSUFFICIENT_RESOURCE, f"No {item_id} left")
            self.inventory.remove(item_id, 1)
            item_bonus = CAPTURE_ITEM_BONUS
            emit(self.notifier, f"Used {item_id} (+{item_bonus}% capture)", "item")

        chance = self.compute_capture_chance(creature, CaptureModifiers(item_bonus=item_bonus))
        roll = roll_percent(chance, self.rng)
        success = roll.success or self.overrides.easy_capture_mode

        collection_id = None
        if success:
            creature.capture(self._state.owner_id, self.clock())
            if self.collection is not None:
                collection_id = self.collection.store(creature)
                creature.collection_id = collection_id
            target.captured = True
            description = f"Captured {creature.display_name}!"
            self._log.info("captured", target_id=target_id, species=creature.species, chance=chance, roll=roll.roll)
            emit(self.notifier, description, "success")
        else:
            description = f"{creature.display_name} broke free!"
            emit(self.notifier, "Capture failed!", "warning")

        self._finish_action(Action(
            action_type=ActionType.CAPTURE,
            target_id=target_id,
            item_id=item_id,
            success=success,
            details={"chance": chance, "roll": roll.roll},
        ))
        return ActionResult(
            success=success,
            action_type=ActionType.CAPTURE,
            description=description,
            chance=chance,
            roll=roll.roll,
            collection_id=collection_id,
        )

    def attempt_flee(self, user_id: str, chance: int = DEFAULT_FLEE_CHANCE) -> ActionResult:
        """Roll d100 against ``chance``; success ends the battle as fled."""
        rejected = self._validate_actor(ActionType.FLEE, user_id)
        if rejected:
            return rejected

        roll = roll_percent(chance, self.rng)
        action = Action(
            action_type=ActionType.FLEE,
            success=roll.success,
            details={"chance": chance, "roll": roll.roll},
        )
        if roll.success:
            self._record(action)
            self.end_battle(BattleResult(outcome=BattleOutcome.FLED))
            description = "You fled the battle!"
            emit(self.notifier, description, "info")
        else:
            description = "Could not flee!"
            emit(self.notifier, description, "warning")
            self._finish_action(action)

        return ActionResult(
            success=roll.success,
            action_type=ActionType.FLEE,
            description=description,
            chance=chance,
            roll=roll.roll,
        )

    def ai_take_turn(self, participant_id: str | None = None) -> ActionResult:
        """Let the AI act for a participant (the current actor by default)."""
        if participant_id is None:
            current = self.get_current_actor()
            participant_id = current.id if current else None
        rejected = self._validate_actor(ActionType.ATTACK, participant_id)
        if rejected:
            return rejected
        participant = self.get_participant(participant_id)

        opposite = Side.ALLY if participant.side == Side.OPPONENT else Side.OPPONENT
        decision = choose_action(participant, self.participants_on(opposite), self.rng)
        self._log.debug("ai_decision", actor_id=participant_id, choice=decision.choice.value)

        if decision.choice == AIChoice.SPECIAL:
            result = self.magic(participant_id, decision.target_id, decision.move_id, DEFAULT_MAGIC_COST)
            if result.error_kind != ErrorKind.INSUFFICIENT_RESOURCE:
                return result
            return self.attack(participant_id, decision.target_id)
        if decision.choice == AIChoice.ATTACK:
            return self.attack(participant_id, decision.target_id)
        return self.defend(participant_id)

    # ------------------------------------------------------------------
    # Rewards
    # ------------------------------------------------------------------

    def grant_rewards(self, result: BattleResult) -> Rewards:
        """Compute experience, gold, and drops for every defeated opponent and hand them out.

        A victory reported without a defeated list pays for every opponent
        in the turn order that was not captured.
        """
        rewards = Rewards()
        player_level = self.player_level

        paying = result.defeated
        if not paying and result.outcome == BattleOutcome.VICTORY:
            paying = [
                p.id for p in self._state.turn_order if p.side == Side.OPPONENT and not p.captured
            ]

        for participant_id in paying:
            participant = self.get_participant(participant_id)
            if participant is None:
                continue
            enemy = participant.actor
            species_key = enemy.species if isinstance(enemy, Creature) else None
            rarity = None
            if species_key and self.species is not None:
                species = self.species.get(species_key)
                rarity = species.rarity if species else None

            rewards.experience += compute_experience_reward(enemy.level, player_level, rarity)
            if self.loot is not None and species_key:
                drop = self.loot.generate(species_key, enemy.level, player_level, self.rng)
            else:
                drop = fallback_loot(enemy.level, player_level, self.rng)
            rewards.gold += drop.gold
            rewards.items.extend(drop.items)

        if self.player is not None:
            if rewards.experience > 0:
                self.player.grant_experience(rewards.experience)
            if rewards.gold > 0:
                self.player.grant_gold(rewards.gold)
        if self.inventory is not None:
            for item in rewards.items:
                self.inventory.add(item, 1)
        if self.progression is not None and rewards.experience > 0:
            for ally in self.participants_on(Side.ALLY):
                if isinstance(ally.actor, Creature):
                    self.progression.add_experience(ally.actor, rewards.experience)

        items_txt = f", items: {', '.join(rewards.items)}" if rewards.items else ""
        emit(
            self.notifier,
            f"Battle Rewards: +{rewards.experience} EXP, +{rewards.gold} gold{items_txt}",
            "success",
        )
        return rewards

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _validate_actor(self, action_type: ActionType, actor_id: str | None) -> ActionResult | None:
        if not self._state.active:
            return failure(action_type, ErrorKind.INACTIVE, "No battle in progress")
        actor = self.get_participant(actor_id)
        if actor is None:
            self._log.debug("action_rejected", action=action_type.value, actor_id=actor_id, reason="unknown")
            return failure(action_type, ErrorKind.INVALID_PARTICIPANT, f"Participant '{actor_id}' not found")
        if not actor.is_active:
            return failure(action_type, ErrorKind.INVALID_PARTICIPANT, f"Participant '{actor_id}' cannot act")
        return None

    def _validate_pair(self, action_type: ActionType, actor_id: str, target_id: str | None) -> ActionResult | None:
        rejected = self._validate_actor(action_type, actor_id)
        if rejected:
            return rejected
        target = self.get_participant(target_id)
        if target is None:
            return failure(action_type, ErrorKind.INVALID_TARGET, f"Target '{target_id}' not found")
        if not target.is_active:
            return failure(action_type, ErrorKind.INVALID_TARGET, "Target is no longer in the battle")
        if target.id == actor_id:
            return failure(action_type, ErrorKind.INVALID_TARGET, "Cannot target itself")
        return None

    def _record(self, action: Action) -> None:
        current = self.get_current_actor()
        self._state.action_log.append(LogEntry(
            round=self._state.round_number,
            actor_id=current.id if current else None,
            action=action,
        ))

    def _finish_action(self, action: Action) -> None:
        """Log the action, settle defeats, and pass the turn if the battle goes on."""
        self._record(action)
        self._resolve_defeats()
        if self._state.active:
            self.end_turn()

    def _apply_spell_effect(self, effect: SpellEffect) -> tuple[int, int]:
        target = self.get_participant(effect.target_id)
        if target is None or not target.is_active:
            self._log.warning("spell_effect_skipped", target_id=effect.target_id, kind=effect.kind.value)
            return 0, 0

        actor = target.actor
        if effect.kind == SpellEffectKind.DAMAGE and effect.amount > 0:
            return actor.take_damage(effect.amount), 0
        if effect.kind == SpellEffectKind.HEAL:
            return 0, actor.heal(effect.amount)
        if effect.kind == SpellEffectKind.BUFF and effect.stat:
            actor.add_modifier(effect.stat, abs(effect.amount), effect.rounds)
        elif effect.kind == SpellEffectKind.DEBUFF and effect.stat:
            actor.add_modifier(effect.stat, -abs(effect.amount), effect.rounds)
        elif effect.kind == SpellEffectKind.STATUS_APPLIED and effect.status:
            actor.apply_status_effect(effect.status, effect.duration)
        elif effect.kind == SpellEffectKind.STATUS_REMOVED and effect.status:
            actor.remove_status_effect(effect.status)
        return 0, 0

    def _end_of_turn_effects(self, participant: CombatParticipant) -> None:
        actor = participant.actor
        if self.spellcasting is not None:
            self.spellcasting.regenerate_mp(actor)
        else:
            actor.restore_mp(math.floor(actor.stats.mp * MP_REGEN_FRACTION))

        for tick in actor.process_status_effects():
            if tick.hp_change < 0:
                emit(self.notifier, f"{actor.display_name} takes {-tick.hp_change} {tick.type.value} damage", "warning")
            elif tick.hp_change > 0:
                emit(self.notifier, f"{actor.display_name} regenerates {tick.hp_change} HP", "info")
            if tick.expired:
                emit(self.notifier, f"{actor.display_name} is no longer {tick.type.value}", "info")

    def _end_of_round_effects(self) -> None:
        for participant in self._state.turn_order:
            if participant.is_active:
                participant.actor.tick_modifiers()

    def _resolve_defeats(self) -> None:
        """Mark fainted participants and end the battle when a side is empty."""
        for participant in self._state.turn_order:
            if participant.is_active and participant.actor.current_hp <= 0:
                participant.defeated = True
                self._log.info("participant_defeated", participant_id=participant.id)
                emit(self.notifier, f"{participant.actor.display_name} was defeated!", "info")

        if not self._state.active:
            return

        opponents = self.participants_on(Side.OPPONENT, active_only=False)
        allies = self.participants_on(Side.ALLY, active_only=False)
        defeated = [p.id for p in opponents if p.defeated]
        captured = [p.id for p in opponents if p.captured]

        if opponents and not any(p.is_active for p in opponents):
            outcome = BattleOutcome.VICTORY if defeated else BattleOutcome.CAPTURED
            self.end_battle(BattleResult(outcome=outcome, defeated=defeated, captured=captured))
        elif allies and not any(p.is_active for p in allies):
            self.end_battle(BattleResult(outcome=BattleOutcome.DEFEAT, defeated=defeated, captured=captured))


class EncounterRegistry:
    """Keeps at most one active combat session per encounter owner."""

    def __init__(self):
        self._sessions: dict[str, CombatSession] = {}

    def active_session(self, owner_id: str) -> CombatSession | None:
        session = self._sessions.get(owner_id)
        if session is not None and session.active:
            return session
        return None

    def begin(
        self,
        owner_id: str,
        participants: list[CombatParticipant],
        **session_kwargs,
    ) -> CombatSession:
        """Create and start a session for ``owner_id``.

        Raises:
            ConstructionError: If the owner already has an active battle or
                the participant list is invalid. No session is registered.
        """
        if self.active_session(owner_id) is not None:
            raise ConstructionError(f"Owner '{owner_id}' already has an active battle")
        session = CombatSession(owner_id, **session_kwargs)
        session.start(participants)
        self._sessions[owner_id] = session
        return session
