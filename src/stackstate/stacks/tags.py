"""Trigger tags: event-conditioned stack deltas declared on items and statuses.

Tags are written in note text as ``<Name[StatusId]:delta>`` or
``<Name[StatusId]:delta,selector>`` (the brackets are optional) and are
compiled once when the owning item or status is registered.  ``scan`` then
collects the tags a battler carries for one event name.
"""
from __future__ import annotations

import logging
import re
from collections import defaultdict
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Mapping

from esper import World

from stackstate.components.battler import Battler
from stackstate.components.equipment import Equipment
from stackstate.components.status import Status
from stackstate.components.status_list import StatusList

if TYPE_CHECKING:
    from stackstate.data.registry import DataRegistry

logger = logging.getLogger(__name__)

# Generic resource changes (any source).
STACK_HP_GAIN = "StackHpGain"
STACK_HP_LOSS = "StackHpLoss"
STACK_MP_GAIN = "StackMpGain"
STACK_MP_LOSS = "StackMpLoss"
STACK_TP_GAIN = "StackTpGain"
STACK_TP_LOSS = "StackTpLoss"

# Damage and recovery dealt by actions; selector = element id.
STACK_HP_DAMAGE_DEALT = "StackHpDamageDealt"
STACK_HP_DAMAGE_RECEIVE = "StackHpDamageReceive"
STACK_HP_DAMAGE_RECOVER = "StackHpDamageRecover"
STACK_MP_DAMAGE_DEALT = "StackMpDamageDealt"
STACK_MP_DAMAGE_RECEIVE = "StackMpDamageReceive"
STACK_MP_DAMAGE_RECOVER = "StackMpDamageRecover"

# Action resolution channels.
STACK_CRITICAL = "StackCritical"
STACK_EVADED = "StackEvaded"
STACK_COUNTER = "StackCounter"
STACK_REFLECTION = "StackReflection"
STACK_SUBSTITUTE = "StackSubstitute"
STACK_STATE_ADDED = "StackStateAdded"  # selector = applied status id

# Item/skill effects.
GAIN_STACK = "GainStack"
GAIN_STACK_OWN = "GainStackOwn"

TRIGGER_EVENTS = frozenset({
    STACK_HP_GAIN,
    STACK_HP_LOSS,
    STACK_MP_GAIN,
    STACK_MP_LOSS,
    STACK_TP_GAIN,
    STACK_TP_LOSS,
    STACK_HP_DAMAGE_DEALT,
    STACK_HP_DAMAGE_RECEIVE,
    STACK_HP_DAMAGE_RECOVER,
    STACK_MP_DAMAGE_DEALT,
    STACK_MP_DAMAGE_RECEIVE,
    STACK_MP_DAMAGE_RECOVER,
    STACK_CRITICAL,
    STACK_EVADED,
    STACK_COUNTER,
    STACK_REFLECTION,
    STACK_SUBSTITUTE,
    STACK_STATE_ADDED,
    GAIN_STACK,
    GAIN_STACK_OWN,
})

_TAG_PATTERN = re.compile(r"<([A-Za-z]+)\[?(\d+)\]?(?:\s*:\s*([^>]*))?>")
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


@dataclass(frozen=True, slots=True)
class TriggerTag:
    """One compiled trigger: on ``event``, change ``status_id`` by ``delta``.

    ``selector`` narrows the trigger to an element id or a status id,
    depending on the event; ``None`` means the trigger always applies.
    """

    event: str
    status_id: int
    delta: int = 1
    selector: int | None = None

    def accepts(self, accept: Callable[[int], bool] | None) -> bool:
        if self.selector is None or accept is None:
            return True
        return bool(accept(self.selector))

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "TriggerTag":
        event = str(data.get("event", ""))
        if event not in TRIGGER_EVENTS:
            raise ValueError(f"Unknown trigger event '{event}'")
        raw_status = data.get("status", data.get("status_id"))
        try:
            status_id = int(raw_status)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Trigger '{event}' has no valid status id: {raw_status!r}") from exc
        selector = data.get("selector")
        if selector is not None:
            try:
                selector = int(selector)
            except (TypeError, ValueError) as exc:
                raise ValueError(f"Trigger '{event}' has an invalid selector: {selector!r}") from exc
        return cls(
            event=event,
            status_id=status_id,
            delta=parse_delta(data.get("delta")),
            selector=selector,
        )


def parse_delta(raw: Any) -> int:
    """Read a tag delta. Missing, non-numeric or zero values mean 1."""
    if isinstance(raw, bool):
        return 1
    if isinstance(raw, (int, float)):
        value = int(raw)
        return value if value != 0 else 1
    match = _LEADING_INT.match(str(raw or ""))
    if match is None:
        return 1
    value = int(match.group(1))
    return value if value != 0 else 1


def parse_note_tags(note: str | None) -> tuple[TriggerTag, ...]:
    """Compile every trigger tag found in ``note``, in order of appearance."""
    if not note:
        return ()
    tags: list[TriggerTag] = []
    for match in _TAG_PATTERN.finditer(note):
        name, raw_id, raw_args = match.group(1), match.group(2), match.group(3)
        if name not in TRIGGER_EVENTS:
            continue
        args = [part.strip() for part in (raw_args or "").split(",")]
        selector: int | None = None
        if len(args) > 1 and args[1]:
            try:
                selector = int(args[1])
            except ValueError:
                logger.debug("Ignoring tag <%s%s> with malformed selector %r", name, raw_id, args[1])
                continue
        tags.append(
            TriggerTag(
                event=name,
                status_id=int(raw_id),
                delta=parse_delta(args[0] if args else None),
                selector=selector,
            )
        )
    return tuple(tags)


def scan(world: World, registry: "DataRegistry", entity: int, event: str) -> Dict[int, List[TriggerTag]]:
    """Collect ``event`` triggers carried by ``entity``, grouped by target status.

    Equipped items are walked first (actors only), then active statuses.
    Every source contributes its own entry, so duplicates add up when summed.
    """
    found: Dict[int, List[TriggerTag]] = defaultdict(list)
    for tag in _sources(world, registry, entity):
        if tag.event == event:
            found[tag.status_id].append(tag)
    return dict(found)


def total_delta(matches: Iterable[TriggerTag], accept: Callable[[int], bool] | None = None) -> int:
    """Sum the deltas of ``matches`` whose selector passes ``accept``."""
    return sum(tag.delta for tag in matches if tag.accepts(accept))


def _sources(world: World, registry: "DataRegistry", entity: int) -> Iterable[TriggerTag]:
    try:
        battler = world.component_for_entity(entity, Battler)
    except KeyError:
        battler = None
    if battler is not None and battler.is_actor:
        try:
            equipment = world.component_for_entity(entity, Equipment)
        except KeyError:
            equipment = None
        if equipment is not None:
            for item_id in equipment.equipped():
                if registry.has_item(item_id):
                    yield from registry.item(item_id).triggers
    try:
        status_list = world.component_for_entity(entity, StatusList)
    except KeyError:
        return
    for status_entity in list(status_list.status_entities):
        try:
            status = world.component_for_entity(status_entity, Status)
        except KeyError:
            continue
        if registry.has_status(status.status_id):
            yield from registry.status(status.status_id).triggers
