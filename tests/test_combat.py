"""Tests for the combat session: turn order, actions, battle end, and rewards."""

import random

import pytest

from engine.collaborators import CreatureStorage, ItemBag, NotificationLog, PlayerProgress
from engine.combat import CombatSession, EncounterRegistry, make_participant
from engine.errors import ConstructionError
from engine.rules import compute_experience_reward
from models.actions import Action, ActionType, ErrorKind
from models.battle import BattleOutcome, BattleResult, PlaytestOverrides, Side
from models.creature import Combatant, Creature, PlayerCharacter, StatBlock, StatusEffectType
from models.species import Rarity
from models.spells import LootDrop, SpellEffect, SpellEffectKind, SpellOutcome


def _make_creature(
    cid: str,
    hp: int = 100,
    mp: int = 20,
    speed: int = 10,
    level: int = 5,
    species: str = "slime",
    wild: bool = True,
) -> Creature:
    """Helper to create a test creature at full HP/MP."""
    return Creature(
        id=cid,
        name=f"Mon_{cid}",
        species=species,
        level=level,
        stats=StatBlock(
            hp=hp, mp=mp, attack=10, defense=10,
            magic_attack=10, magic_defense=10, speed=speed, accuracy=50,
        ),
        current_hp=hp,
        current_mp=mp,
        is_wild=wild,
    )


def _make_battle(session: CombatSession | None = None, ally_hp: int = 100, foe_hp: int = 100):
    """Start a one-on-one battle: ally 'a' (speed 20) vs wild opponent 'o' (speed 10)."""
    session = session or CombatSession(rng=random.Random(42))
    ally = _make_creature("a", hp=ally_hp, speed=20, wild=False)
    foe = _make_creature("o", hp=foe_hp, speed=10)
    session.start([make_participant(foe, Side.OPPONENT), make_participant(ally, Side.ALLY)])
    return session, ally, foe


class FakeSpellcasting:
    """Spellcasting collaborator with one damage spell and one buff."""

    def __init__(self, cost: int = 8):
        self.cost = cost
        self.regenerated: list[str] = []

    def has_mp(self, caster: Combatant, amount: int) -> bool:
        return caster.current_mp >= amount

    def consume_mp(self, caster: Combatant, amount: int) -> None:
        caster.current_mp -= amount

    def regenerate_mp(self, caster: Combatant) -> int:
        self.regenerated.append(caster.id)
        return caster.restore_mp(2)

    def cast(self, caster: Combatant, spell_id: str, target_id: str | None) -> SpellOutcome:
        if caster.current_mp < self.cost:
            return SpellOutcome(success=False, reason="Not enough MP", insufficient_mp=True)
        caster.current_mp -= self.cost
        if spell_id == "fireball":
            effects = [
                SpellEffect(kind=SpellEffectKind.DAMAGE, target_id=target_id, amount=15),
                SpellEffect(kind=SpellEffectKind.STATUS_APPLIED, target_id=target_id,
                            status=StatusEffectType.BURN, duration=2),
            ]
        elif spell_id == "bulk_up":
            effects = [SpellEffect(kind=SpellEffectKind.BUFF, target_id=caster.id, stat="attack", amount=5)]
        else:
            return SpellOutcome(success=False, reason=f"Unknown spell {spell_id}")
        return SpellOutcome(success=True, mp_consumed=self.cost, effects=effects)


class ExplodingNotifier:
    """Notification sink that always fails."""

    def notify(self, message: str, kind: str = "info") -> None:
        raise RuntimeError("sink offline")


class TestStart:
    """Tests for session start and turn order."""

    def test_empty_raises(self):
        session = CombatSession()
        with pytest.raises(ConstructionError):
            session.start([])
        assert not session.active
        assert session.get_current_actor() is None

    def test_construction_error_is_value_error(self):
        with pytest.raises(ValueError):
            CombatSession().start([])

    def test_sorted_by_speed_stable(self):
        session = CombatSession()
        participants = [
            make_participant(_make_creature("slow", speed=5), Side.ALLY),
            make_participant(_make_creature("tie1", speed=10), Side.OPPONENT),
            make_participant(_make_creature("fast", speed=30), Side.OPPONENT),
            make_participant(_make_creature("tie2", speed=10), Side.ALLY),
        ]
        order = session.start(participants)
        assert [p.id for p in order] == ["fast", "tie1", "tie2", "slow"]
        assert session.active
        assert session.round_number == 1
        assert session.current_turn_index == 0
        assert session.action_log == ()
        assert session.result is None

    def test_speed_defaults_to_stat(self):
        participant = make_participant(_make_creature("x", speed=17), Side.ALLY)
        assert participant.speed == 17

    def test_duplicate_ids_raise(self):
        session = CombatSession()
        creature = _make_creature("dup")
        with pytest.raises(ConstructionError):
            session.start([make_participant(creature, Side.ALLY), make_participant(creature, Side.OPPONENT)])

    def test_cannot_start_twice(self):
        session, _, _ = _make_battle()
        with pytest.raises(ConstructionError):
            session.start([make_participant(_make_creature("z"), Side.ALLY)])

    def test_current_actor(self):
        session, _, _ = _make_battle()
        assert session.get_current_actor().id == "a"


class TestTurnFlow:
    """Tests for perform_action and end_turn."""

    def test_perform_action_inactive(self):
        assert CombatSession().perform_action(Action(action_type=ActionType.DEFEND)) is False

    def test_perform_action_logs_and_advances(self):
        session, _, _ = _make_battle()
        assert session.perform_action(Action(action_type=ActionType.DEFEND))
        assert len(session.action_log) == 1
        entry = session.action_log[0]
        assert entry.round == 1
        assert entry.actor_id == "a"
        assert session.get_current_actor().id == "o"

    def test_round_wraps(self):
        session, _, _ = _make_battle()
        session.end_turn()
        assert session.round_number == 1
        session.end_turn()
        assert session.round_number == 2
        assert session.current_turn_index == 0

    def test_end_turn_is_not_an_action(self):
        session, _, _ = _make_battle()
        session.end_turn()
        assert session.action_log == ()
        assert "end_turn" not in {t.value for t in ActionType}

    def test_mp_regen_fallback(self):
        session, ally, _ = _make_battle()
        ally.current_mp = 10
        session.end_turn()
        assert ally.current_mp == 11   # floor(20 * 0.05)

    def test_mp_regen_through_spellcasting(self):
        spells = FakeSpellcasting()
        session, ally, _ = _make_battle(CombatSession(spellcasting=spells, rng=random.Random(1)))
        ally.current_mp = 10
        session.end_turn()
        assert ally.current_mp == 12
        assert spells.regenerated == ["a"]

    def test_status_ticks_on_owner_turn(self):
        session, ally, _ = _make_battle()
        ally.apply_status_effect(StatusEffectType.POISON, 2)
        session.end_turn()
        assert ally.current_hp == 90
        assert ally.status_effects[0].remaining_turns == 1

    def test_poison_can_end_battle(self):
        session, ally, _ = _make_battle(ally_hp=5)
        ally.current_hp = 1
        ally.apply_status_effect(StatusEffectType.POISON)
        session.end_turn()
        assert not session.active
        assert session.result.outcome == BattleOutcome.DEFEAT

    def test_modifiers_tick_at_round_end(self):
        session, ally, _ = _make_battle()
        ally.add_modifier("attack", 5, 1)
        session.end_turn()
        assert ally.effective_stat("attack") == 15
        session.end_turn()
        assert ally.effective_stat("attack") == 10

    def test_defeated_participants_skipped(self):
        session = CombatSession(rng=random.Random(5))
        hero = _make_creature("hero", speed=30, wild=False)
        foe1 = _make_creature("foe1", speed=20)
        foe2 = _make_creature("foe2", speed=10)
        session.start([
            make_participant(hero, Side.ALLY),
            make_participant(foe1, Side.OPPONENT),
            make_participant(foe2, Side.OPPONENT),
        ])
        foe1.current_hp = 1
        session.attack("hero", "foe1")
        assert session.get_participant("foe1").defeated
        assert session.get_current_actor().id == "foe2"
        session.end_turn()
        assert session.get_current_actor().id == "hero"
        assert session.round_number == 2


class TestAttack:
    """Tests for the basic attack."""

    def test_attack_deals_damage(self):
        session, _, foe = _make_battle()
        result = session.attack("a", "o")
        assert result.success
        assert result.damage_dealt >= 1
        assert foe.current_hp == 100 - result.damage_dealt
        assert result.target_hp_remaining == foe.current_hp
        assert session.action_log[-1].action.action_type == ActionType.ATTACK
        assert session.get_current_actor().id == "o"

    def test_damage_always_positive(self):
        for seed in range(30):
            session, _, _ = _make_battle(CombatSession(rng=random.Random(seed)), foe_hp=10000)
            result = session.attack("a", "o")
            assert isinstance(result.damage_dealt, int)
            assert result.damage_dealt >= 1

    def test_unknown_attacker(self):
        session, _, foe = _make_battle()
        result = session.attack("ghost", "o")
        assert not result.success
        assert result.error_kind == ErrorKind.INVALID_PARTICIPANT
        assert foe.current_hp == 100
        assert session.action_log == ()
        assert session.get_current_actor().id == "a"

    def test_unknown_target(self):
        session, _, _ = _make_battle()
        result = session.attack("a", "ghost")
        assert result.error_kind == ErrorKind.INVALID_TARGET
        assert session.action_log == ()

    def test_inactive_session(self):
        result = CombatSession().attack("a", "o")
        assert result.error_kind == ErrorKind.INACTIVE

    def test_victory_on_last_opponent(self):
        session, _, foe = _make_battle()
        foe.current_hp = 1
        session.attack("a", "o")
        assert not session.active
        assert session.result.outcome == BattleOutcome.VICTORY
        assert session.result.defeated == ["o"]

    def test_notifier_failure_ignored(self):
        session, _, _ = _make_battle(CombatSession(notifier=ExplodingNotifier(), rng=random.Random(3)))
        assert session.attack("a", "o").success


class TestMagic:
    """Tests for MP-costing magic attacks."""

    def test_insufficient_mp(self):
        session, ally, foe = _make_battle()
        ally.current_mp = 3
        result = session.magic("a", "o", "spark", 5)
        assert not result.success
        assert result.error_kind == ErrorKind.INSUFFICIENT_RESOURCE
        assert ally.current_mp == 3
        assert foe.current_hp == 100
        assert session.action_log == ()
        assert session.get_current_actor().id == "a"

    def test_negative_cost_rejected(self):
        session, ally, foe = _make_battle()
        result = session.magic("a", "o", "spark", -10)
        assert not result.success
        assert result.error_kind == ErrorKind.INSUFFICIENT_RESOURCE
        assert ally.current_mp == 20
        assert foe.current_hp == 100
        assert session.action_log == ()
        assert session.get_current_actor().id == "a"

    def test_magic_spends_mp(self):
        session, ally, foe = _make_battle()
        result = session.magic("a", "o", "spark", 5)
        assert result.success
        assert result.mp_spent == 5
        assert result.damage_dealt >= 6
        # 20 - 5, then +1 regen at end of turn
        assert ally.current_mp == 16
        assert session.action_log[-1].action.move_id == "spark"

    def test_magic_through_spellcasting(self):
        session, ally, _ = _make_battle(CombatSession(spellcasting=FakeSpellcasting(), rng=random.Random(2)))
        ally.current_mp = 4
        result = session.magic("a", "o", "spark", 5)
        assert result.error_kind == ErrorKind.INSUFFICIENT_RESOURCE
        assert ally.current_mp == 4


class TestCastSpell:
    """Tests for spellcasting delegation."""

    def test_without_spellcasting(self):
        session, _, _ = _make_battle()
        result = session.cast_spell("a", "fireball", "o")
        assert result.error_kind == ErrorKind.DATA_UNAVAILABLE

    def test_damage_and_status(self):
        session, ally, foe = _make_battle(CombatSession(spellcasting=FakeSpellcasting(), rng=random.Random(2)))
        result = session.cast_spell("a", "fireball", "o")
        assert result.success
        assert result.damage_dealt == 15
        assert foe.current_hp == 85
        assert foe.has_status(StatusEffectType.BURN)
        assert result.mp_spent == 8
        assert session.action_log[-1].action.move_id == "fireball"

    def test_buff(self):
        session, ally, _ = _make_battle(CombatSession(spellcasting=FakeSpellcasting(), rng=random.Random(2)))
        session.cast_spell("a", "bulk_up")
        assert ally.effective_stat("attack") == 15

    def test_insufficient_mp(self):
        session, ally, _ = _make_battle(CombatSession(spellcasting=FakeSpellcasting(), rng=random.Random(2)))
        ally.current_mp = 2
        result = session.cast_spell("a", "fireball", "o")
        assert result.error_kind == ErrorKind.INSUFFICIENT_RESOURCE
        assert session.action_log == ()

    def test_spell_can_defeat(self):
        session, _, foe = _make_battle(CombatSession(spellcasting=FakeSpellcasting(), rng=random.Random(2)))
        foe.current_hp = 10
        session.cast_spell("a", "fireball", "o")
        assert not session.active
        assert session.result.outcome == BattleOutcome.VICTORY


class TestUseItem:
    """Tests for consumables."""

    def test_no_inventory(self):
        session, _, _ = _make_battle()
        assert session.use_item("a").error_kind == ErrorKind.DATA_UNAVAILABLE

    def test_none_left(self):
        session, _, _ = _make_battle(CombatSession(inventory=ItemBag(), rng=random.Random(1)))
        assert session.use_item("a").error_kind == ErrorKind.INSUFFICIENT_RESOURCE

    def test_heals_and_consumes(self):
        bag = ItemBag({"health_potion": 2})
        session, ally, _ = _make_battle(CombatSession(inventory=bag, rng=random.Random(1)))
        ally.current_hp = 50
        result = session.use_item("a", "health_potion")
        assert result.success
        assert result.healed == 30
        assert ally.current_hp == 80
        assert bag.quantity("health_potion") == 1
        assert session.action_log[-1].action.item_id == "health_potion"

    def test_unsupported_item_not_consumed(self):
        bag = ItemBag({"mystery_box": 1})
        session, _, _ = _make_battle(CombatSession(inventory=bag, rng=random.Random(1)))
        result = session.use_item("a", "mystery_box")
        assert result.error_kind == ErrorKind.DATA_UNAVAILABLE
        assert bag.quantity("mystery_box") == 1

    def test_custom_heal_amount(self):
        bag = ItemBag({"herb": 1})
        session, ally, _ = _make_battle(CombatSession(inventory=bag, heal_items={"herb": 7}, rng=random.Random(1)))
        ally.current_hp = 50
        result = session.use_item("a", "herb")
        assert result.healed == 7
        assert ally.current_hp == 57


class TestStatusAndDefend:
    """Tests for status infliction and defending."""

    def test_apply_status(self):
        session, _, foe = _make_battle()
        result = session.apply_status_effect("o", StatusEffectType.SLEEP)
        assert result.success
        assert foe.has_status(StatusEffectType.SLEEP)
        assert session.get_current_actor().id == "o"

    def test_unknown_status(self):
        session, _, _ = _make_battle()
        result = session.apply_status_effect("o", "confused")
        assert not result.success
        assert session.action_log == ()

    def test_defend(self):
        session, _, _ = _make_battle()
        result = session.defend("a")
        assert result.success
        assert session.action_log[-1].action.action_type == ActionType.DEFEND


class TestCapture:
    """Tests for capture chance and capture attempts."""

    def test_chance_uses_species_rate(self, registry):
        session, _, foe = _make_battle(CombatSession(species=registry, rng=random.Random(1)))
        foe.level = 1
        assert session.compute_capture_chance(foe) == 45

    def test_easy_capture_override(self, registry):
        overrides = PlaytestOverrides(easy_capture_mode=True)
        session, _, foe = _make_battle(CombatSession(species=registry, overrides=overrides))
        foe.level = 1
        assert session.compute_capture_chance(foe) == 75

    def test_capture_success(self):
        storage = CreatureStorage()
        session = CombatSession(
            "trainer1",
            collection=storage,
            overrides=PlaytestOverrides(easy_capture_mode=True),
            rng=random.Random(1),
        )
        session, _, foe = _make_battle(session)
        result = session.attempt_capture("a", "o")
        assert result.success
        assert result.collection_id in storage.creatures
        assert not foe.is_wild
        assert foe.owner_id == "trainer1"
        assert foe.friendship == 20
        assert session.get_participant("o").captured
        assert not session.active
        assert session.result.outcome == BattleOutcome.CAPTURED
        assert session.result.captured == ["o"]
        assert session.result.victory

    def test_capture_roll(self):
        """Success iff the d100 roll is within the chance."""
        for seed in range(20):
            session, _, _ = _make_battle(CombatSession(rng=random.Random(seed)))
            result = session.attempt_capture("a", "o")
            assert result.success == (result.roll <= result.chance)
            assert 1 <= result.roll <= 100

    def test_failed_capture_passes_turn(self):
        session, _, foe = _make_battle(CombatSession(rng=random.Random(1)))
        foe.level = 100
        result = session.attempt_capture("a", "o")
        assert result.chance == 5
        if not result.success:
            assert session.active
            assert session.get_current_actor().id == "o"
            assert foe.is_wild

    def test_cannot_capture_ally(self):
        session, ally, _ = _make_battle()
        result = session.attempt_capture("o", "a")
        assert result.error_kind == ErrorKind.INVALID_TARGET
        assert session.action_log == ()

    def test_missing_capture_item(self):
        bag = ItemBag()
        session, _, foe = _make_battle(CombatSession(inventory=bag, rng=random.Random(1)))
        result = session.attempt_capture("a", "o", item_id="capture_orb")
        assert result.error_kind == ErrorKind.INSUFFICIENT_RESOURCE
        assert foe.is_wild
        assert session.action_log == ()

    def test_capture_item_consumed_for_bonus(self):
        bag = ItemBag({"capture_orb": 1})
        session, _, _ = _make_battle(CombatSession(inventory=bag, rng=random.Random(1)))
        result = session.attempt_capture("a", "o", item_id="capture_orb")
        assert bag.quantity("capture_orb") == 0
        assert result.chance == 32   # 30 base - 8 level gap + 10 item

    def test_player_character_can_capture(self):
        session = CombatSession(overrides=PlaytestOverrides(easy_capture_mode=True), rng=random.Random(1))
        hero = PlayerCharacter(id="hero", name="Hero", stats=StatBlock(hp=50, speed=15), current_hp=50)
        foe = _make_creature("o", speed=10)
        session.start([make_participant(hero, Side.ALLY), make_participant(foe, Side.OPPONENT)])
        assert session.attempt_capture("hero", "o").success


class TestFlee:
    """Tests for fleeing."""

    def test_flee_always_at_100(self):
        for seed in range(20):
            session, _, _ = _make_battle(CombatSession(rng=random.Random(seed)))
            result = session.attempt_flee("a", 100)
            assert result.success
            assert not session.active
            assert session.result.outcome == BattleOutcome.FLED
            assert session.result.rewards is None

    def test_flee_fails_at_zero(self):
        session, _, _ = _make_battle()
        result = session.attempt_flee("a", 0)
        assert not result.success
        assert session.active
        assert session.get_current_actor().id == "o"


class TestRewards:
    """Tests for battle end and reward distribution."""

    def test_rewards_granted(self, registry, progression):
        player = PlayerProgress(level=1)
        bag = ItemBag()
        notes = NotificationLog()
        session = CombatSession(
            species=registry,
            progression=progression,
            player=player,
            inventory=bag,
            notifier=notes,
            rng=random.Random(8),
        )
        ally = progression.create_creature("slime", 5, wild=False)
        foe = progression.create_creature("goblin", 3)
        session.start([make_participant(ally, Side.ALLY, speed=99), make_participant(foe, Side.OPPONENT)])
        foe.current_hp = 1
        session.attack(ally.id, foe.id)

        rewards = session.result.rewards
        expected_xp = compute_experience_reward(3, 1, Rarity.COMMON)
        assert rewards.experience == expected_xp
        assert player.experience == expected_xp
        assert player.gold == rewards.gold == 8   # floor(floor(3 * 2.5) * 1.16)
        assert ally.experience == expected_xp
        for item in rewards.items:
            assert bag.quantity(item) >= 1
        assert any("Battle Rewards" in msg for msg, _ in notes.messages)

    def test_loot_generator_used(self):
        class FixedLoot:
            def generate(self, species, level, player_level, rng):
                return LootDrop(gold=99, items=["slime_gel"])

        bag = ItemBag()
        session, _, foe = _make_battle(CombatSession(loot=FixedLoot(), inventory=bag, rng=random.Random(1)))
        foe.current_hp = 1
        session.attack("a", "o")
        assert session.result.rewards.gold == 99
        assert bag.quantity("slime_gel") == 1

    def test_victory_without_defeated_list(self):
        player = PlayerProgress()
        session, _, _ = _make_battle(CombatSession(player=player, rng=random.Random(1)))
        result = session.end_battle(BattleResult(outcome=BattleOutcome.VICTORY))
        expected_xp = compute_experience_reward(5, 1, None)
        assert result.rewards.experience == expected_xp
        assert player.experience == expected_xp

    def test_captured_outcome_pays_nothing(self):
        player = PlayerProgress()
        session, _, _ = _make_battle(CombatSession(player=player, rng=random.Random(1)))
        result = session.end_battle(BattleResult(outcome=BattleOutcome.CAPTURED, captured=["o"]))
        assert result.rewards.experience == 0
        assert player.experience == 0

    def test_defeat_no_rewards(self):
        player = PlayerProgress()
        session, ally, _ = _make_battle(CombatSession(player=player, rng=random.Random(1)))
        ally.current_hp = 1
        session.end_turn()
        session.attack("o", "a")
        assert session.result.outcome == BattleOutcome.DEFEAT
        assert session.result.rewards is None
        assert player.experience == 0

    def test_actions_rejected_after_end(self):
        session, _, _ = _make_battle()
        session.attempt_flee("a", 100)
        assert session.attack("a", "o").error_kind == ErrorKind.INACTIVE
        assert session.perform_action(Action(action_type=ActionType.DEFEND)) is False


class TestAITurn:
    """Tests for ai_take_turn."""

    def test_ai_acts_and_advances(self):
        session, _, _ = _make_battle()
        session.end_turn()
        result = session.ai_take_turn()
        assert result.success
        assert result.action_type in (ActionType.ATTACK, ActionType.MAGIC, ActionType.DEFEND)
        assert session.get_current_actor().id == "a"
        assert session.action_log[-1].actor_id == "o"

    def test_special_without_mp_falls_back(self):
        session = CombatSession(rng=random.Random(1))
        hero = _make_creature("hero", speed=5, wild=False)
        foe = _make_creature("foe", speed=30, mp=0)
        foe.learned_moves = ["absorb"]
        session.start([make_participant(hero, Side.ALLY), make_participant(foe, Side.OPPONENT)])
        for _ in range(10):
            if not session.active:
                break
            if session.get_current_actor().id == "foe":
                result = session.ai_take_turn()
                assert result.success
                assert result.action_type in (ActionType.ATTACK, ActionType.DEFEND)
            else:
                session.defend("hero")

    def test_unknown_participant(self):
        session, _, _ = _make_battle()
        assert session.ai_take_turn("ghost").error_kind == ErrorKind.INVALID_PARTICIPANT


class TestEncounterRegistry:
    """Tests for one active battle per owner."""

    def test_second_battle_rejected(self):
        registry = EncounterRegistry()
        registry.begin("p1", [make_participant(_make_creature("a"), Side.ALLY)])
        with pytest.raises(ConstructionError):
            registry.begin("p1", [make_participant(_make_creature("b"), Side.ALLY)])

    def test_other_owner_allowed(self):
        registry = EncounterRegistry()
        registry.begin("p1", [make_participant(_make_creature("a"), Side.ALLY)])
        session = registry.begin("p2", [make_participant(_make_creature("b"), Side.ALLY)])
        assert registry.active_session("p2") is session

    def test_new_battle_after_end(self):
        registry = EncounterRegistry()
        first = registry.begin(
            "p1",
            [
                make_participant(_make_creature("a", wild=False), Side.ALLY),
                make_participant(_make_creature("o"), Side.OPPONENT),
            ],
            rng=random.Random(1),
        )
        first.attempt_flee("a", 100)
        assert registry.active_session("p1") is None
        second = registry.begin("p1", [make_participant(_make_creature("c"), Side.ALLY)])
        assert second is not first

    def test_empty_participants_not_registered(self):
        registry = EncounterRegistry()
        with pytest.raises(ConstructionError):
            registry.begin("p1", [])
        assert registry.active_session("p1") is None
