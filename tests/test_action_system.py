import pytest

from stackstate.components.action_result import ActionResult
from stackstate.components.resources import Resources
from stackstate.components.traits import Traits
from stackstate.constants import DAMAGE_HP, DAMAGE_MP, DRAIN_HP
from stackstate.events.bus import (
    EVENT_ACTION_ENDED,
    EVENT_ACTION_EVADED,
    EVENT_COUNTER_ATTACK,
    EVENT_CRITICAL_HIT,
    EVENT_DAMAGE_APPLIED,
    EVENT_ITEM_APPLIED,
    EVENT_MAGIC_REFLECTED,
    EVENT_STATUSES_INFLICTED,
    EVENT_SUBSTITUTED,
)
from stackstate.systems.action_system import ActionOutcome
from tests.helpers import add_battler, make_world, record_events

ALL_EVENTS = (
    EVENT_DAMAGE_APPLIED,
    EVENT_STATUSES_INFLICTED,
    EVENT_ITEM_APPLIED,
    EVENT_CRITICAL_HIT,
    EVENT_ACTION_EVADED,
    EVENT_COUNTER_ATTACK,
    EVENT_MAGIC_REFLECTED,
    EVENT_SUBSTITUTED,
)

ITEMS = [
    {"id": 1, "name": "Attack", "damageType": DAMAGE_HP, "elementId": -1, "isAttack": True},
    {"id": 2, "name": "Fire", "damageType": DAMAGE_HP, "elementId": 2, "addStatuses": {"4": 1.0}},
    {"id": 3, "name": "Drain", "damageType": DRAIN_HP},
    {"id": 4, "name": "Mana Burn", "damageType": DAMAGE_MP},
]
STATUSES = [{"id": 4, "name": "Burn"}]


@pytest.fixture
def battle():
    bus, world = make_world(statuses=STATUSES, items=ITEMS)
    hero = add_battler(world, "hero", is_actor=True)
    foe = add_battler(world, "foe", traits=Traits(element_rates={2: 2.0}))
    return bus, world, hero, foe


def _record(bus):
    received = []
    for name in ALL_EVENTS:
        bus.subscribe(name, lambda sender, _name=name, **kwargs: received.append((_name, kwargs)))
    return received


def _hp(world, entity):
    return world.component_for_entity(entity, Resources).hp


def test_damage_is_scaled_by_element_rate(battle):
    _bus, world, hero, foe = battle
    result = world.actions.invoke(hero, foe, 2, ActionOutcome(damage=10))

    assert _hp(world, foe) == 480
    assert result.hp_damage == 20
    assert result.added_statuses == [4]
    assert world.status_lifecycle.is_affected(foe, 4)


def test_pipeline_order(battle):
    bus, world, hero, foe = battle
    guard = add_battler(world, "guard")
    events = _record(bus)

    world.actions.invoke(hero, foe, 2, ActionOutcome(damage=10, critical=True, substitute=guard))

    assert [name for name, _ in events] == [
        EVENT_DAMAGE_APPLIED,
        EVENT_STATUSES_INFLICTED,
        EVENT_ITEM_APPLIED,
        EVENT_CRITICAL_HIT,
        EVENT_SUBSTITUTED,
    ]
    damage = events[0][1]
    assert (damage["subject"], damage["target"], damage["value"], damage["elements"]) == (hero, guard, 10, (2,))
    assert events[1][1]["added"] == (4,)
    assert events[4][1] == {"subject": hero, "original_target": foe, "substitute": guard}
    assert _hp(world, foe) == 500


def test_evaded_action_applies_nothing(battle):
    bus, world, hero, foe = battle
    events = _record(bus)

    result = world.actions.invoke(hero, foe, 2, ActionOutcome(damage=10, critical=True, evaded=True))

    assert [name for name, _ in events] == [EVENT_ACTION_EVADED]
    assert result.evaded and not result.critical
    assert _hp(world, foe) == 500
    assert not world.status_lifecycle.is_affected(foe, 4)


def test_counter_turns_the_action_into_a_normal_attack_on_the_user(battle):
    bus, world, hero, foe = battle
    events = _record(bus)

    world.actions.invoke(hero, foe, 2, ActionOutcome(damage=10, counter=True))

    assert _hp(world, hero) == 490
    assert _hp(world, foe) == 500
    assert events[0][1]["subject"] == foe
    assert events[-1] == (EVENT_COUNTER_ATTACK, {"subject": hero, "counter_entity": foe})


def test_reflection_sends_the_action_back(battle):
    bus, world, hero, foe = battle
    events = _record(bus)

    world.actions.invoke(hero, foe, 2, ActionOutcome(damage=10, reflected=True))

    assert _hp(world, hero) == 490
    assert world.status_lifecycle.is_affected(hero, 4)
    assert events[-1] == (EVENT_MAGIC_REFLECTED, {"subject": hero, "reflector": foe})


def test_action_ends_for_the_user_after_every_notification(battle):
    bus, world, hero, foe = battle
    guard = add_battler(world, "guard")
    events = record_events(bus, EVENT_COUNTER_ATTACK, EVENT_SUBSTITUTED, EVENT_ACTION_ENDED)

    world.actions.invoke(hero, foe, 2, ActionOutcome(damage=10, counter=True, substitute=guard))

    assert [name for name, _ in events] == [EVENT_COUNTER_ATTACK, EVENT_SUBSTITUTED, EVENT_ACTION_ENDED]
    assert events[-1][1] == {"owner_entity": hero}


def test_drain_heals_the_user(battle):
    _bus, world, hero, foe = battle
    world.component_for_entity(hero, Resources).hp = 100

    world.actions.invoke(hero, foe, 3, ActionOutcome(damage=30))

    assert _hp(world, foe) == 470
    assert _hp(world, hero) == 130


def test_mp_damage(battle):
    _bus, world, hero, foe = battle
    result = world.actions.invoke(hero, foe, 4, ActionOutcome(damage=30))
    assert world.component_for_entity(foe, Resources).mp == 70
    assert result.mp_damage == 30


def test_zero_status_rate_blocks_added_statuses(battle):
    _bus, world, hero, foe = battle
    world.component_for_entity(foe, Traits).state_rates = {4: 0.0}

    result = world.actions.invoke(hero, foe, 2, ActionOutcome(damage=1))

    assert result.added_statuses == []
    assert not world.status_lifecycle.is_affected(foe, 4)


def test_results_are_cleared_per_action(battle):
    _bus, world, hero, foe = battle
    world.actions.invoke(hero, foe, 2, ActionOutcome(damage=10))
    world.actions.invoke(hero, foe, 1, ActionOutcome(damage=0))

    result = world.component_for_entity(foe, ActionResult)
    assert result.used
    assert result.hp_damage == 0
    assert result.added_statuses == []


def test_unknown_item_raises(battle):
    _bus, world, hero, foe = battle
    with pytest.raises(KeyError):
        world.actions.invoke(hero, foe, 99)
