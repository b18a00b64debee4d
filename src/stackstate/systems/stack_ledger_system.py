from __future__ import annotations

import logging
from typing import List, Tuple

from esper import World

from stackstate.components.game_state import GameState
from stackstate.components.resources import Resources
from stackstate.components.stack_ledger import StackLedger
from stackstate.data.registry import DataRegistry
from stackstate.events.bus import (
    EVENT_STACK_CHANGED,
    EVENT_STACK_GAIN,
    EVENT_STATUS_ADDED,
    EVENT_STATUS_REFRESHED,
    EVENT_STATUS_REMOVED,
    EventBus,
)
from stackstate.stacks.catalog import RuleCatalog
from stackstate.stacks.text import replace_stack_tokens

logger = logging.getLogger(__name__)


class StackLedgerSystem:
    """Owns every battler's stack counts.

    A count exists only while its status is active: the status-added hook
    seeds it with the configured initial stack and the status-removed hook
    drops it, whatever the removal reason.  ``gain_stack`` is the only
    mutator; the EVENT_STACK_GAIN subscription routes scripted changes to it.
    """

    def __init__(self, world: World, event_bus: EventBus, catalog: RuleCatalog, registry: DataRegistry):
        self.world = world
        self.event_bus = event_bus
        self.catalog = catalog
        self.registry = registry
        setattr(world, "stack_ledger", self)
        self.event_bus.subscribe(EVENT_STATUS_ADDED, self.on_status_added)
        self.event_bus.subscribe(EVENT_STATUS_REFRESHED, self.on_status_refreshed)
        self.event_bus.subscribe(EVENT_STATUS_REMOVED, self.on_status_removed)
        self.event_bus.subscribe(EVENT_STACK_GAIN, self.on_stack_gain)
        self._lifecycle().register_duration_hook(self._on_duration_tick)

    # Public API ---------------------------------------------------------
    def stack_of(self, entity: int, status_id: int) -> int:
        try:
            ledger = self.world.component_for_entity(entity, StackLedger)
        except KeyError:
            return 0
        return ledger.get(status_id)

    def gain_stack(self, entity: int, status_id: int, delta: int) -> None:
        delta = int(delta)
        definition = self.catalog.definition_of(status_id)
        if delta == 0 or definition is None:
            return
        lifecycle = self._lifecycle()
        if (
            delta > 0
            and definition.auto_add
            and not lifecycle.is_affected(entity, status_id)
            and self._can_auto_add(entity, status_id)
        ):
            lifecycle.add_status(entity, status_id)

        if not lifecycle.is_affected(entity, status_id):
            return
        ledger = self._ensure_ledger(entity)
        previous = ledger.get(status_id)
        current = definition.clamp(previous + delta)
        ledger.stacks[status_id] = current
        if definition.sync_duration:
            lifecycle.set_remaining_turns(entity, status_id, current)

        if current <= 0 and definition.auto_remove:
            lifecycle.remove_status(entity, status_id, reason="stack_depleted")

        if current != previous:
            logger.debug("Stack %d on entity %d: %d -> %d", status_id, entity, previous, current)
            self.event_bus.emit(
                EVENT_STACK_CHANGED,
                owner_entity=entity,
                status_id=status_id,
                previous=previous,
                current=current,
            )

    def display_stacks(self, entity: int) -> List[Tuple[int, int]]:
        """``(status_id, stack)`` for each active status whose count is shown."""
        result: List[Tuple[int, int]] = []
        for status_id in self._lifecycle().status_ids(entity):
            definition = self.catalog.definition_of(status_id)
            if definition is None or not definition.show_stack:
                continue
            if not self.registry.has_status(status_id) or self.registry.status(status_id).icon_index <= 0:
                continue
            result.append((status_id, self.stack_of(entity, status_id)))
        return result

    def describe(self, entity: int, text: str) -> str:
        return replace_stack_tokens(text, lambda status_id: self.stack_of(entity, status_id))

    # Event handlers -----------------------------------------------------
    def on_status_added(self, sender, **kwargs):
        owner_entity = kwargs.get("owner_entity")
        status_id = kwargs.get("status_id")
        definition = self.catalog.definition_of(status_id)
        if owner_entity is None or definition is None:
            return
        ledger = self._ensure_ledger(owner_entity)
        ledger.stacks[status_id] = definition.clamp(definition.initial_stack)
        if definition.sync_duration:
            self._lifecycle().set_remaining_turns(owner_entity, status_id, ledger.stacks[status_id])

    def on_status_refreshed(self, sender, **kwargs):
        owner_entity = kwargs.get("owner_entity")
        status_id = kwargs.get("status_id")
        definition = self.catalog.definition_of(status_id)
        if owner_entity is None or definition is None or not definition.sync_duration:
            return
        self._lifecycle().set_remaining_turns(owner_entity, status_id, self.stack_of(owner_entity, status_id))

    def on_status_removed(self, sender, **kwargs):
        owner_entity = kwargs.get("owner_entity")
        status_id = kwargs.get("status_id")
        if owner_entity is None:
            return
        try:
            ledger = self.world.component_for_entity(owner_entity, StackLedger)
        except KeyError:
            return
        ledger.stacks.pop(status_id, None)

    def on_stack_gain(self, sender, **kwargs):
        owner_entity = kwargs.get("owner_entity")
        status_id = kwargs.get("status_id")
        if owner_entity is None or status_id is None:
            return
        self.gain_stack(owner_entity, int(status_id), kwargs.get("delta", 0))

    # Internal helpers ---------------------------------------------------
    def _on_duration_tick(self, owner_entity: int, status_id: int) -> bool:
        definition = self.catalog.definition_of(status_id)
        if definition is None or not definition.sync_duration:
            return False
        self.gain_stack(owner_entity, status_id, -1)
        return True

    def _can_auto_add(self, entity: int, status_id: int) -> bool:
        try:
            resources = self.world.component_for_entity(entity, Resources)
        except KeyError:
            resources = None
        if resources is not None and not resources.is_alive():
            return False
        if self.registry.is_battle_only(status_id) and not self._in_battle():
            return False
        return True

    def _in_battle(self) -> bool:
        for _, state in self.world.get_component(GameState):
            return state.in_battle
        return False

    def _ensure_ledger(self, entity: int) -> StackLedger:
        try:
            return self.world.component_for_entity(entity, StackLedger)
        except KeyError:
            ledger = StackLedger()
            self.world.add_component(entity, ledger)
            return ledger

    def _lifecycle(self):
        return getattr(self.world, "status_lifecycle")
