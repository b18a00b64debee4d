from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Iterable, Mapping

from stackstate.constants import AUTO_REMOVAL_NONE, DAMAGE_NONE, ELEMENT_NORMAL_ATTACK
from stackstate.stacks.tags import TriggerTag, parse_note_tags


@dataclass(frozen=True, slots=True)
class StatusDefinition:
    """Static description of a status as authored in the database.

    ``triggers`` holds the structured trigger list; tags found in ``note``
    are compiled and appended when the definition is registered.
    """

    status_id: int
    name: str
    note: str = ""
    icon_index: int = 0
    remove_at_battle_end: bool = False
    auto_removal_timing: int = AUTO_REMOVAL_NONE
    min_turns: int = 1
    max_turns: int = 1
    triggers: tuple[TriggerTag, ...] = ()


@dataclass(frozen=True, slots=True)
class ItemDefinition:
    """Equipment, skill or usable item.

    Equipment contributes trigger tags while worn; skills and items carry
    the action data the host pipeline needs (damage type, element, attack
    flag, statuses added on hit).
    """

    item_id: int
    name: str
    kind: str = "item"
    note: str = ""
    damage_type: int = DAMAGE_NONE
    element_id: int = 0
    is_attack: bool = False
    add_statuses: Mapping[int, float] = field(default_factory=dict)
    attack_elements: tuple[int, ...] = ()
    triggers: tuple[TriggerTag, ...] = ()


class DataRegistry:
    """In-memory collection of status and item definitions."""

    def __init__(self) -> None:
        self._statuses: dict[int, StatusDefinition] = {}
        self._items: dict[int, ItemDefinition] = {}

    def register_status(self, definition: StatusDefinition) -> StatusDefinition:
        if definition.status_id in self._statuses:
            raise ValueError(f"Status {definition.status_id} already registered")
        compiled = dataclasses.replace(
            definition,
            triggers=tuple(definition.triggers) + parse_note_tags(definition.note),
        )
        self._statuses[definition.status_id] = compiled
        return compiled

    def register_item(self, definition: ItemDefinition) -> ItemDefinition:
        if definition.item_id in self._items:
            raise ValueError(f"Item {definition.item_id} already registered")
        compiled = dataclasses.replace(
            definition,
            triggers=tuple(definition.triggers) + parse_note_tags(definition.note),
        )
        self._items[definition.item_id] = compiled
        return compiled

    def status(self, status_id: int) -> StatusDefinition:
        try:
            return self._statuses[status_id]
        except KeyError as exc:
            raise KeyError(f"Status {status_id} is not registered") from exc

    def item(self, item_id: int) -> ItemDefinition:
        try:
            return self._items[item_id]
        except KeyError as exc:
            raise KeyError(f"Item {item_id} is not registered") from exc

    def has_status(self, status_id: int) -> bool:
        return status_id in self._statuses

    def has_item(self, item_id: int) -> bool:
        return item_id in self._items

    def statuses(self) -> Iterable[StatusDefinition]:
        return tuple(self._statuses.values())

    def items(self) -> Iterable[ItemDefinition]:
        return tuple(self._items.values())

    def is_battle_only(self, status_id: int) -> bool:
        if not self.has_status(status_id):
            return False
        return self._statuses[status_id].remove_at_battle_end

    def item_elements(self, item_id: int) -> tuple[int, ...]:
        if not self.has_item(item_id):
            return ()
        element_id = self._items[item_id].element_id
        if element_id == ELEMENT_NORMAL_ATTACK:
            return ()
        return (element_id,) if element_id > 0 else ()
