from __future__ import annotations

from collections.abc import Callable
from typing import List

from esper import World

from stackstate.components.status import Status
from stackstate.components.status_duration import StatusDuration
from stackstate.components.status_list import StatusList
from stackstate.constants import AUTO_REMOVAL_ACTION_END, AUTO_REMOVAL_NONE, AUTO_REMOVAL_TURN_END
from stackstate.data.registry import DataRegistry
from stackstate.events.bus import (
    EVENT_ACTION_ENDED,
    EVENT_BATTLE_ENDED,
    EVENT_STATUS_ADD,
    EVENT_STATUS_ADDED,
    EVENT_STATUS_REFRESHED,
    EVENT_STATUS_REMOVE,
    EVENT_STATUS_REMOVED,
    EVENT_TURN_ENDED,
    EventBus,
)

# Returns True when it has taken over the turn-end countdown for that status.
DurationHook = Callable[[int, int], bool]


class StatusLifecycleSystem:
    """Handles adding, refreshing, counting down and removing statuses."""

    def __init__(self, world: World, event_bus: EventBus, registry: DataRegistry):
        self.world = world
        self.event_bus = event_bus
        self.registry = registry
        self._duration_hooks: List[DurationHook] = []
        setattr(world, "status_lifecycle", self)
        self.event_bus.subscribe(EVENT_STATUS_ADD, self.on_status_add)
        self.event_bus.subscribe(EVENT_STATUS_REMOVE, self.on_status_remove)
        self.event_bus.subscribe(EVENT_TURN_ENDED, self.on_turn_ended)
        self.event_bus.subscribe(EVENT_ACTION_ENDED, self.on_action_ended)
        self.event_bus.subscribe(EVENT_BATTLE_ENDED, self.on_battle_ended)

    # Public API ---------------------------------------------------------
    def register_duration_hook(self, hook: DurationHook) -> None:
        self._duration_hooks.append(hook)

    def add_status(self, owner_entity: int, status_id: int, source_entity: int | None = None) -> int:
        status_list = self._ensure_status_list(owner_entity)
        existing = self._find_status(status_list, status_id)
        if existing is not None:
            self._reset_turns(existing, status_id)
            if source_entity is not None:
                self.world.component_for_entity(existing, Status).source_entity = source_entity
            self.event_bus.emit(
                EVENT_STATUS_REFRESHED,
                status_entity=existing,
                owner_entity=owner_entity,
                status_id=status_id,
            )
            return existing
        status_entity = self.world.create_entity(
            Status(status_id=status_id, owner_entity=owner_entity, source_entity=source_entity)
        )
        status_list.status_entities.append(status_entity)
        self._reset_turns(status_entity, status_id)
        self.event_bus.emit(
            EVENT_STATUS_ADDED,
            status_entity=status_entity,
            owner_entity=owner_entity,
            status_id=status_id,
        )
        return status_entity

    def remove_status(self, owner_entity: int, status_id: int, reason: str = "removed") -> bool:
        status_list = self._get_status_list(owner_entity)
        if status_list is None:
            return False
        status_entity = self._find_status(status_list, status_id)
        if status_entity is None:
            return False
        self._expire_status(status_entity, reason=reason)
        return True

    def is_affected(self, owner_entity: int, status_id: int) -> bool:
        status_list = self._get_status_list(owner_entity)
        if status_list is None:
            return False
        return self._find_status(status_list, status_id) is not None

    def status_ids(self, owner_entity: int) -> list[int]:
        status_list = self._get_status_list(owner_entity)
        if status_list is None:
            return []
        ids: list[int] = []
        for status_entity in status_list.status_entities:
            try:
                ids.append(self.world.component_for_entity(status_entity, Status).status_id)
            except KeyError:
                continue
        return ids

    def remaining_turns(self, owner_entity: int, status_id: int) -> int | None:
        status_entity = self._status_entity(owner_entity, status_id)
        if status_entity is None:
            return None
        try:
            return self.world.component_for_entity(status_entity, StatusDuration).remaining_turns
        except KeyError:
            return None

    def set_remaining_turns(self, owner_entity: int, status_id: int, turns: int) -> None:
        status_entity = self._status_entity(owner_entity, status_id)
        if status_entity is None:
            return
        turns = max(0, int(turns))
        try:
            duration = self.world.component_for_entity(status_entity, StatusDuration)
        except KeyError:
            self.world.add_component(status_entity, StatusDuration(remaining_turns=turns))
        else:
            duration.remaining_turns = turns

    # Event handlers -----------------------------------------------------
    def on_status_add(self, sender, **kwargs):
        owner_entity = kwargs.get("owner_entity")
        status_id = kwargs.get("status_id")
        if owner_entity is None or status_id is None:
            return
        self.add_status(owner_entity, int(status_id), kwargs.get("source_entity"))

    def on_status_remove(self, sender, **kwargs):
        owner_entity = kwargs.get("owner_entity")
        status_id = kwargs.get("status_id")
        if owner_entity is None or status_id is None:
            return
        self.remove_status(owner_entity, int(status_id), kwargs.get("reason", "removed"))

    def on_turn_ended(self, sender, **kwargs):
        owner_entity = kwargs.get("owner_entity")
        if owner_entity is None:
            return
        status_list = self._get_status_list(owner_entity)
        if status_list is None:
            return
        for status_entity in list(status_list.status_entities):
            try:
                status = self.world.component_for_entity(status_entity, Status)
            except KeyError:
                status_list.status_entities.remove(status_entity)
                continue
            consumed = False
            for hook in self._duration_hooks:
                if hook(owner_entity, status.status_id):
                    consumed = True
                    break
            if status_entity not in status_list.status_entities:
                # A hook already removed it.
                continue
            try:
                duration = self.world.component_for_entity(status_entity, StatusDuration)
            except KeyError:
                continue
            if not consumed:
                duration.remaining_turns = max(0, duration.remaining_turns - 1)
        self._expire_elapsed(owner_entity, AUTO_REMOVAL_TURN_END)

    def on_action_ended(self, sender, **kwargs):
        owner_entity = kwargs.get("owner_entity")
        if owner_entity is not None:
            self._expire_elapsed(owner_entity, AUTO_REMOVAL_ACTION_END)

    def on_battle_ended(self, sender, **kwargs):
        for status_entity, status in list(self.world.get_component(Status)):
            if self.registry.is_battle_only(status.status_id):
                self._expire_status(status_entity, reason="battle_end")

    # Internal helpers ---------------------------------------------------
    def _expire_elapsed(self, owner_entity: int, timing: int) -> None:
        """Remove statuses with no turns left whose removal timing is ``timing``."""
        status_list = self._get_status_list(owner_entity)
        if status_list is None:
            return
        for status_entity in list(status_list.status_entities):
            try:
                status = self.world.component_for_entity(status_entity, Status)
                duration = self.world.component_for_entity(status_entity, StatusDuration)
            except KeyError:
                continue
            if duration.remaining_turns > 0 or self._removal_timing(status.status_id) != timing:
                continue
            self._expire_status(status_entity, reason="duration")

    def _removal_timing(self, status_id: int) -> int:
        if not self.registry.has_status(status_id):
            return AUTO_REMOVAL_NONE
        return self.registry.status(status_id).auto_removal_timing

    def _reset_turns(self, status_entity: int, status_id: int) -> None:
        if not self.registry.has_status(status_id):
            return
        definition = self.registry.status(status_id)
        if definition.auto_removal_timing == AUTO_REMOVAL_NONE:
            return
        low = max(0, definition.min_turns)
        high = max(low, definition.max_turns)
        rng = getattr(self.world, "random", None)
        turns = rng.randint(low, high) if rng is not None else low
        try:
            duration = self.world.component_for_entity(status_entity, StatusDuration)
        except KeyError:
            self.world.add_component(status_entity, StatusDuration(remaining_turns=turns))
        else:
            duration.remaining_turns = turns

    def _ensure_status_list(self, owner_entity: int) -> StatusList:
        try:
            return self.world.component_for_entity(owner_entity, StatusList)
        except KeyError:
            status_list = StatusList()
            self.world.add_component(owner_entity, status_list)
            return status_list

    def _get_status_list(self, owner_entity: int) -> StatusList | None:
        try:
            return self.world.component_for_entity(owner_entity, StatusList)
        except KeyError:
            return None

    def _status_entity(self, owner_entity: int, status_id: int) -> int | None:
        status_list = self._get_status_list(owner_entity)
        if status_list is None:
            return None
        return self._find_status(status_list, status_id)

    def _find_status(self, status_list: StatusList, status_id: int) -> int | None:
        for status_entity in status_list.status_entities:
            try:
                status = self.world.component_for_entity(status_entity, Status)
            except KeyError:
                continue
            if status.status_id == status_id:
                return status_entity
        return None

    def _expire_status(self, status_entity: int, reason: str) -> None:
        try:
            status = self.world.component_for_entity(status_entity, Status)
        except KeyError:
            return
        owner_entity = status.owner_entity
        status_list = self._get_status_list(owner_entity)
        if status_list and status_entity in status_list.status_entities:
            status_list.status_entities.remove(status_entity)
        self.world.delete_entity(status_entity, immediate=True)
        self.event_bus.emit(
            EVENT_STATUS_REMOVED,
            status_entity=status_entity,
            owner_entity=owner_entity,
            status_id=status.status_id,
            reason=reason,
        )
