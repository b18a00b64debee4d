from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable

from esper import World

from stackstate.components.action_result import ActionResult
from stackstate.constants import RESOURCE_HP, RESOURCE_MP, RESOURCE_TP
from stackstate.data.registry import DataRegistry
from stackstate.events.bus import (
    EVENT_ACTION_EVADED,
    EVENT_COUNTER_ATTACK,
    EVENT_CRITICAL_HIT,
    EVENT_DAMAGE_APPLIED,
    EVENT_ITEM_APPLIED,
    EVENT_MAGIC_REFLECTED,
    EVENT_RESOURCE_CHANGED,
    EVENT_STATUSES_INFLICTED,
    EVENT_SUBSTITUTED,
    EventBus,
)
from stackstate.stacks import tags
from stackstate.stacks.catalog import RuleCatalog
from stackstate.stacks.tags import TriggerTag

logger = logging.getLogger(__name__)

# kind -> (gain trigger, loss trigger)
_RESOURCE_TRIGGERS = {
    RESOURCE_HP: (tags.STACK_HP_GAIN, tags.STACK_HP_LOSS),
    RESOURCE_MP: (tags.STACK_MP_GAIN, tags.STACK_MP_LOSS),
    RESOURCE_TP: (tags.STACK_TP_GAIN, tags.STACK_TP_LOSS),
}

# kind -> (dealt, received, recovered)
_DAMAGE_TRIGGERS = {
    RESOURCE_HP: (tags.STACK_HP_DAMAGE_DEALT, tags.STACK_HP_DAMAGE_RECEIVE, tags.STACK_HP_DAMAGE_RECOVER),
    RESOURCE_MP: (tags.STACK_MP_DAMAGE_DEALT, tags.STACK_MP_DAMAGE_RECEIVE, tags.STACK_MP_DAMAGE_RECOVER),
}


class StackTriggerSystem:
    """Turns combat events into stack changes.

    Each bus event resolves the trigger tags the concerned battler carries
    (equipment for actors, then statuses), sums the deltas per target status
    and hands them to the stack ledger.  A trigger that fails to resolve
    counts as zero.
    """

    def __init__(self, world: World, event_bus: EventBus, catalog: RuleCatalog, registry: DataRegistry):
        self.world = world
        self.event_bus = event_bus
        self.catalog = catalog
        self.registry = registry
        self.event_bus.subscribe(EVENT_RESOURCE_CHANGED, self.on_resource_changed)
        self.event_bus.subscribe(EVENT_DAMAGE_APPLIED, self.on_damage_applied)
        self.event_bus.subscribe(EVENT_CRITICAL_HIT, self.on_critical_hit)
        self.event_bus.subscribe(EVENT_ACTION_EVADED, self.on_action_evaded)
        self.event_bus.subscribe(EVENT_COUNTER_ATTACK, self.on_counter_attack)
        self.event_bus.subscribe(EVENT_MAGIC_REFLECTED, self.on_magic_reflected)
        self.event_bus.subscribe(EVENT_SUBSTITUTED, self.on_substituted)
        self.event_bus.subscribe(EVENT_STATUSES_INFLICTED, self.on_statuses_inflicted)
        self.event_bus.subscribe(EVENT_ITEM_APPLIED, self.on_item_applied)

    # Event handlers -----------------------------------------------------
    def on_resource_changed(self, sender, **kwargs):
        entity = kwargs.get("entity")
        amount = kwargs.get("amount", 0)
        triggers = _RESOURCE_TRIGGERS.get(kwargs.get("kind"))
        if entity is None or triggers is None or not amount:
            return
        gain, loss = triggers
        self.fire(entity, gain if amount > 0 else loss)

    def on_damage_applied(self, sender, **kwargs):
        subject = kwargs.get("subject")
        target = kwargs.get("target")
        value = kwargs.get("value", 0)
        triggers = _DAMAGE_TRIGGERS.get(kwargs.get("kind"))
        if triggers is None or not value:
            return
        elements = tuple(kwargs.get("elements") or ())
        dealt, received, recovered = triggers

        def by_element(selector: int) -> bool:
            return selector in elements

        if value > 0:
            if subject is not None:
                self.fire(subject, dealt, by_element)
            if target is not None:
                self.fire(target, received, by_element)
        elif target is not None:
            self.fire(target, recovered, by_element)

    def on_critical_hit(self, sender, **kwargs):
        subject = kwargs.get("subject")
        if subject is not None:
            self.fire(subject, tags.STACK_CRITICAL)

    def on_action_evaded(self, sender, **kwargs):
        # The evader and the attacker each resolve their own tags once.
        target = kwargs.get("target")
        subject = kwargs.get("subject")
        if target is not None:
            self.fire(target, tags.STACK_EVADED)
        if subject is not None and subject != target:
            self.fire(subject, tags.STACK_EVADED)

    def on_counter_attack(self, sender, **kwargs):
        counter_entity = kwargs.get("counter_entity")
        if counter_entity is not None:
            self.fire(counter_entity, tags.STACK_COUNTER)

    def on_magic_reflected(self, sender, **kwargs):
        reflector = kwargs.get("reflector")
        if reflector is not None:
            self.fire(reflector, tags.STACK_REFLECTION)

    def on_substituted(self, sender, **kwargs):
        substitute = kwargs.get("substitute")
        if substitute is not None:
            self.fire(substitute, tags.STACK_SUBSTITUTE)

    def on_statuses_inflicted(self, sender, **kwargs):
        subject = kwargs.get("subject")
        added = tuple(kwargs.get("added") or ())
        if subject is None or not added:
            return
        matches = tags.scan(self.world, self.registry, subject, tags.STACK_STATE_ADDED)
        if not matches:
            return
        stats = getattr(self.world, "battler_stats", None)
        attack_states = set(stats.attack_states(subject)) if stats is not None else set()
        for status_id in added:
            for target_status, found in matches.items():
                delta = self._resolve(
                    [tag for tag in found if tag.selector is not None],
                    lambda selector: selector == status_id,
                )
                if status_id in attack_states:
                    delta += self._resolve([tag for tag in found if tag.selector is None])
                self._apply(subject, target_status, delta)

    def on_item_applied(self, sender, **kwargs):
        subject = kwargs.get("subject")
        target = kwargs.get("target")
        item_id = kwargs.get("item_id")
        if item_id is None or not self.registry.has_item(item_id):
            return
        item = self.registry.item(item_id)
        on_target = _group(tag for tag in item.triggers if tag.event == tags.GAIN_STACK)
        on_subject = _group(tag for tag in item.triggers if tag.event == tags.GAIN_STACK_OWN)
        if target is not None:
            for status_id, found in on_target.items():
                delta = self._resolve(found)
                if self._apply(target, status_id, delta):
                    self._record(target, status_id, delta)
        if subject is not None:
            for status_id, found in on_subject.items():
                delta = self._resolve(found)
                if self._apply(subject, status_id, delta):
                    self._record(subject, status_id, delta)

    # Public API ---------------------------------------------------------
    def fire(self, entity: int, event: str, accept: Callable[[int], bool] | None = None) -> Dict[int, int]:
        """Resolve ``event`` triggers carried by ``entity`` and apply them.

        Returns the delta handed to the ledger per target status.
        """
        applied: Dict[int, int] = {}
        matches = tags.scan(self.world, self.registry, entity, event)
        for status_id, found in matches.items():
            delta = self._resolve(found, accept)
            if self._apply(entity, status_id, delta):
                applied[status_id] = delta
        return applied

    # Internal helpers ---------------------------------------------------
    def _resolve(self, found: Iterable[TriggerTag], accept: Callable[[int], bool] | None = None) -> int:
        delta = 0
        for tag in found:
            try:
                delta += tags.total_delta((tag,), accept)
            except Exception as exc:
                logger.debug("Trigger %s for status %d ignored: %s", tag.event, tag.status_id, exc)
        return delta

    def _apply(self, entity: int, status_id: int, delta: int) -> bool:
        if delta == 0:
            return False
        if not self.catalog.is_stack_status(status_id):
            logger.warning("Trigger targets status %d which has no stack configuration", status_id)
            return False
        ledger = getattr(self.world, "stack_ledger")
        ledger.gain_stack(entity, status_id, delta)
        return True

    def _record(self, entity: int, status_id: int, delta: int) -> None:
        try:
            result = self.world.component_for_entity(entity, ActionResult)
        except KeyError:
            return
        result.stack_changes[status_id] = delta


def _group(found: Iterable[TriggerTag]) -> Dict[int, list[TriggerTag]]:
    grouped: Dict[int, list[TriggerTag]] = {}
    for tag in found:
        grouped.setdefault(tag.status_id, []).append(tag)
    return grouped
