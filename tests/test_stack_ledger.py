import pytest

from stackstate.components.resources import Resources
from stackstate.components.stack_ledger import StackLedger
from stackstate.events.bus import EVENT_STACK_CHANGED, EVENT_STACK_GAIN, EVENT_STATUS_REMOVED, EVENT_TURN_ENDED
from tests.helpers import add_battler, make_world, record_events

STACK_CONFIG = [
    {"stateId": 5, "maxStack": 10, "initialStack": 1, "autoStateAdd": True, "autoStateRemove": True},
    {"stateId": 6, "maxStack": 0, "initialStack": 2},
    {"stateId": 7, "initialStack": 3, "syncTurnCount": True, "autoStateAdd": True},
    {"stateId": 8, "initialStack": 0, "autoStateAdd": True},
    {"stateId": 9, "initialStack": 1, "showStackNum": False},
    {"stateId": 10, "initialStack": 1, "syncTurnCount": True},
]

STATUSES = [
    {"id": 5, "name": "Rage", "iconIndex": 10},
    {"id": 6, "name": "Guard", "iconIndex": 0},
    {"id": 7, "name": "Bleed", "iconIndex": 11, "autoRemovalTiming": 2, "minTurns": 5, "maxTurns": 5},
    {"id": 8, "name": "Valor", "iconIndex": 12, "removeAtBattleEnd": True},
    {"id": 9, "name": "Hidden", "iconIndex": 13},
    {"id": 10, "name": "Focus", "iconIndex": 14, "autoRemovalTiming": 0},
]


@pytest.fixture
def ledger_world():
    bus, world = make_world(STACK_CONFIG, STATUSES)
    hero = add_battler(world)
    return bus, world, world.stack_ledger, hero


def test_auto_add_clamp_and_auto_remove_round_trip(ledger_world):
    bus, world, ledger, hero = ledger_world
    lifecycle = world.status_lifecycle
    changes = record_events(bus, EVENT_STACK_CHANGED)
    removed = record_events(bus, EVENT_STATUS_REMOVED)

    ledger.gain_stack(hero, 5, 4)
    assert lifecycle.is_affected(hero, 5)
    assert ledger.stack_of(hero, 5) == 5

    ledger.gain_stack(hero, 5, 10)
    assert ledger.stack_of(hero, 5) == 10

    ledger.gain_stack(hero, 5, -15)
    assert not lifecycle.is_affected(hero, 5)
    assert ledger.stack_of(hero, 5) == 0
    assert 5 not in world.component_for_entity(hero, StackLedger).stacks

    assert [(p["previous"], p["current"]) for _, p in changes] == [(1, 5), (5, 10), (10, 0)]
    assert removed[0][1]["reason"] == "stack_depleted"


def test_zero_delta_and_unknown_status_are_noops(ledger_world):
    bus, world, ledger, hero = ledger_world
    changes = record_events(bus, EVENT_STACK_CHANGED)

    ledger.gain_stack(hero, 5, 0)
    ledger.gain_stack(hero, 99, 3)

    assert not world.status_lifecycle.is_affected(hero, 5)
    assert world.component_for_entity(hero, StackLedger).stacks == {}
    assert changes == []


def test_inactive_status_without_auto_add_is_left_alone(ledger_world):
    _bus, world, ledger, hero = ledger_world
    ledger.gain_stack(hero, 6, 5)
    assert ledger.stack_of(hero, 6) == 0
    assert not world.status_lifecycle.is_affected(hero, 6)


def test_applying_a_status_seeds_its_initial_stack(ledger_world):
    _bus, world, ledger, hero = ledger_world
    world.status_lifecycle.add_status(hero, 6)
    assert ledger.stack_of(hero, 6) == 2

    ledger.gain_stack(hero, 6, 500)
    assert ledger.stack_of(hero, 6) == 502

    ledger.gain_stack(hero, 6, -600)
    assert ledger.stack_of(hero, 6) == 0
    # Without auto-remove the status outlives an empty stack.
    assert world.status_lifecycle.is_affected(hero, 6)


def test_removal_for_any_reason_drops_the_count(ledger_world):
    _bus, world, ledger, hero = ledger_world
    lifecycle = world.status_lifecycle
    lifecycle.add_status(hero, 6)
    ledger.gain_stack(hero, 6, 3)

    lifecycle.remove_status(hero, 6, reason="cleansed")
    assert ledger.stack_of(hero, 6) == 0

    lifecycle.add_status(hero, 6)
    assert ledger.stack_of(hero, 6) == 2


def test_negative_delta_never_auto_adds(ledger_world):
    _bus, world, ledger, hero = ledger_world
    ledger.gain_stack(hero, 5, -1)
    assert not world.status_lifecycle.is_affected(hero, 5)


def test_battle_only_status_needs_an_active_battle():
    _bus, world = make_world(STACK_CONFIG, STATUSES, in_battle=False)
    hero = add_battler(world)
    world.stack_ledger.gain_stack(hero, 8, 2)
    assert not world.status_lifecycle.is_affected(hero, 8)

    _bus, world = make_world(STACK_CONFIG, STATUSES, in_battle=True)
    hero = add_battler(world)
    world.stack_ledger.gain_stack(hero, 8, 2)
    assert world.stack_ledger.stack_of(hero, 8) == 2


def test_dead_battler_is_not_auto_added(ledger_world):
    _bus, world, ledger, hero = ledger_world
    world.component_for_entity(hero, Resources).hp = 0
    ledger.gain_stack(hero, 5, 2)
    assert not world.status_lifecycle.is_affected(hero, 5)


def test_synced_stack_mirrors_remaining_turns(ledger_world):
    bus, world, ledger, hero = ledger_world
    lifecycle = world.status_lifecycle

    ledger.gain_stack(hero, 7, 2)
    assert ledger.stack_of(hero, 7) == 5
    assert lifecycle.remaining_turns(hero, 7) == 5

    bus.emit(EVENT_TURN_ENDED, owner_entity=hero)
    assert ledger.stack_of(hero, 7) == 4
    assert lifecycle.remaining_turns(hero, 7) == 4

    # A refresh re-applies the stack as the remaining turns.
    lifecycle.add_status(hero, 7)
    assert lifecycle.remaining_turns(hero, 7) == 4


def test_synced_status_expires_when_its_stack_runs_out(ledger_world):
    bus, world, ledger, hero = ledger_world
    lifecycle = world.status_lifecycle
    removed = record_events(bus, EVENT_STATUS_REMOVED)
    lifecycle.add_status(hero, 7)
    ledger.gain_stack(hero, 7, -2)
    assert ledger.stack_of(hero, 7) == 1

    bus.emit(EVENT_TURN_ENDED, owner_entity=hero)

    assert not lifecycle.is_affected(hero, 7)
    assert ledger.stack_of(hero, 7) == 0
    assert removed[0][1]["reason"] == "duration"


def test_synced_status_without_removal_timing_outlives_its_stack(ledger_world):
    bus, world, ledger, hero = ledger_world
    lifecycle = world.status_lifecycle
    lifecycle.add_status(hero, 10)
    assert lifecycle.remaining_turns(hero, 10) == 1

    bus.emit(EVENT_TURN_ENDED, owner_entity=hero)
    bus.emit(EVENT_TURN_ENDED, owner_entity=hero)

    assert lifecycle.is_affected(hero, 10)
    assert ledger.stack_of(hero, 10) == 0
    assert lifecycle.remaining_turns(hero, 10) == 0


def test_scripted_gain_through_the_bus(ledger_world):
    bus, _world, ledger, hero = ledger_world
    bus.emit(EVENT_STACK_GAIN, owner_entity=hero, status_id=5, delta="3")
    assert ledger.stack_of(hero, 5) == 4


def test_display_stacks_lists_shown_statuses_with_icons(ledger_world):
    _bus, world, ledger, hero = ledger_world
    lifecycle = world.status_lifecycle
    for status_id in (5, 6, 9):
        lifecycle.add_status(hero, status_id)
    ledger.gain_stack(hero, 5, 2)

    # 6 has no icon, 9 hides its number.
    assert ledger.display_stacks(hero) == [(5, 3)]


def test_describe_fills_in_current_stacks(ledger_world):
    _bus, world, ledger, hero = ledger_world
    world.status_lifecycle.add_status(hero, 6)
    assert ledger.describe(hero, r"Guard x\stack[6] / rage \stack[5]") == "Guard x2 / rage 0"


def test_stack_ledger_component_round_trip():
    ledger = StackLedger.from_dict({"5": 3, "6": "2", "x": 1, "7": -4})
    assert ledger.stacks == {5: 3, 6: 2, 7: 0}
    assert ledger.to_dict() == {"5": 3, "6": 2, "7": 0}
    assert ledger.get(99) == 0
