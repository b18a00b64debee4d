from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Tuple

from esper import World

from stackstate.components.action_result import ActionResult
from stackstate.constants import (
    DAMAGE_NONE,
    DRAIN_HP,
    DRAIN_MP,
    ELEMENT_NORMAL_ATTACK,
    HP_DAMAGE_TYPES,
    MP_DAMAGE_TYPES,
    RECOVER_HP,
    RESOURCE_HP,
    RESOURCE_MP,
)
from stackstate.data.registry import DataRegistry, ItemDefinition
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
    EventBus,
)


@dataclass(slots=True)
class ActionOutcome:
    """Hit resolution decided by the caller for one action.

    Attributes:
        damage: Base damage or recovery before element rates.
        critical: The hit was critical.
        evaded: The receiver evaded; nothing is applied.
        counter: The target counters with a normal attack instead.
        reflected: The target reflects the action back at the user.
        substitute: Battler that takes the hit in the target's place.
    """

    damage: int = 0
    critical: bool = False
    evaded: bool = False
    counter: bool = False
    reflected: bool = False
    substitute: int | None = None


class ActionSystem:
    """Resolves one action of ``subject`` on ``target``.

    Order: substitution, counter/reflection swap, damage, added statuses,
    then the outcome notifications (critical, evasion, counter, reflection,
    substitution) and finally the end of the user's action.
    """

    def __init__(self, world: World, event_bus: EventBus, registry: DataRegistry, *, attack_item_id: int = 1):
        self.world = world
        self.event_bus = event_bus
        self.registry = registry
        self.attack_item_id = attack_item_id
        setattr(world, "actions", self)

    def invoke(self, subject: int, target: int, item_id: int, outcome: ActionOutcome | None = None) -> ActionResult:
        outcome = outcome or ActionOutcome()
        item = self.registry.item(item_id)

        original_target = target
        substituted = outcome.substitute is not None and outcome.substitute != target
        if substituted:
            target = outcome.substitute

        user, receiver = subject, target
        if outcome.counter:
            user, receiver = target, subject
            if self.registry.has_item(self.attack_item_id):
                item = self.registry.item(self.attack_item_id)
        elif outcome.reflected:
            receiver = subject

        result = self._result(receiver)
        result.clear()
        result.used = True
        if outcome.evaded:
            result.evaded = True
        else:
            result.critical = outcome.critical
            self._apply_item(user, receiver, item, outcome, result)

        if outcome.critical and not outcome.evaded:
            self.event_bus.emit(EVENT_CRITICAL_HIT, subject=user, target=receiver)
        if outcome.evaded:
            self.event_bus.emit(EVENT_ACTION_EVADED, subject=user, target=receiver)
        if outcome.counter:
            self.event_bus.emit(EVENT_COUNTER_ATTACK, subject=subject, counter_entity=target)
        elif outcome.reflected:
            self.event_bus.emit(EVENT_MAGIC_REFLECTED, subject=subject, reflector=target)
        if substituted:
            self.event_bus.emit(
                EVENT_SUBSTITUTED,
                subject=subject,
                original_target=original_target,
                substitute=target,
            )
        self.event_bus.emit(EVENT_ACTION_ENDED, owner_entity=subject)
        return result

    def elements_of(self, user: int, item: ItemDefinition) -> Tuple[int, ...]:
        if item.element_id == ELEMENT_NORMAL_ATTACK:
            stats = getattr(self.world, "battler_stats", None)
            return tuple(stats.attack_elements(user)) if stats else tuple(item.attack_elements)
        return self.registry.item_elements(item.item_id)

    # Internal helpers ---------------------------------------------------
    def _apply_item(
        self,
        user: int,
        receiver: int,
        item: ItemDefinition,
        outcome: ActionOutcome,
        result: ActionResult,
    ) -> None:
        if item.damage_type != DAMAGE_NONE and outcome.damage:
            self._apply_damage(user, receiver, item, outcome.damage, result)

        lifecycle = getattr(self.world, "status_lifecycle")
        before = set(lifecycle.status_ids(receiver))
        rng = getattr(self.world, "random")
        for status_id, chance in self._status_chances(user, receiver, item).items():
            if chance > 0 and rng.random() < chance:
                lifecycle.add_status(receiver, status_id, source_entity=user)
        added = tuple(status_id for status_id in lifecycle.status_ids(receiver) if status_id not in before)
        result.added_statuses.extend(added)
        self.event_bus.emit(
            EVENT_STATUSES_INFLICTED,
            subject=user,
            target=receiver,
            added=added,
            item_id=item.item_id,
        )
        self.event_bus.emit(EVENT_ITEM_APPLIED, subject=user, target=receiver, item_id=item.item_id)

    def _apply_damage(self, user: int, receiver: int, item: ItemDefinition, base: int, result: ActionResult) -> None:
        elements = self.elements_of(user, item)
        stats = getattr(self.world, "battler_stats")
        rate = max((stats.element_rate(receiver, element_id) for element_id in elements), default=1.0)
        value = max(0, math.floor(base * rate))
        kind = RESOURCE_HP if item.damage_type in HP_DAMAGE_TYPES + (RECOVER_HP,) else RESOURCE_MP
        is_damage = item.damage_type in HP_DAMAGE_TYPES + MP_DAMAGE_TYPES
        signed = value if is_damage else -value

        resources = getattr(self.world, "resources")
        reason = f"item:{item.item_id}"
        delta = resources.gain(receiver, kind, -signed, source_owner=user, reason=reason)
        if item.damage_type in (DRAIN_HP, DRAIN_MP) and delta:
            resources.gain(user, kind, -delta, source_owner=user, reason=reason)
        if kind == RESOURCE_HP:
            result.hp_damage = signed
        else:
            result.mp_damage = signed

        self.event_bus.emit(
            EVENT_DAMAGE_APPLIED,
            subject=user,
            target=receiver,
            kind=kind,
            value=signed,
            elements=elements,
            item_id=item.item_id,
        )

    def _status_chances(self, user: int, receiver: int, item: ItemDefinition) -> Dict[int, float]:
        stats = getattr(self.world, "battler_stats")
        chances: Dict[int, float] = {}
        for status_id, chance in item.add_statuses.items():
            chances[status_id] = chance * stats.state_rate(receiver, status_id)
        if item.is_attack:
            for status_id in stats.attack_states(user):
                rate = stats.attack_states_rate(user, status_id) * stats.state_rate(receiver, status_id)
                chances[status_id] = chances.get(status_id, 0.0) + rate
        return chances

    def _result(self, entity: int) -> ActionResult:
        try:
            return self.world.component_for_entity(entity, ActionResult)
        except KeyError:
            result = ActionResult()
            self.world.add_component(entity, result)
            return result
