from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Iterable, Mapping

from stackstate.data.registry import DataRegistry, ItemDefinition, StatusDefinition
from stackstate.stacks.tags import TriggerTag


def load_database(payload: Mapping[str, Any], registry: DataRegistry | None = None) -> DataRegistry:
    """Register the statuses and items described by ``payload``.

    Both the host's camelCase field names and snake_case names are accepted.
    """

    registry = registry if registry is not None else DataRegistry()
    for entry in payload.get("statuses") or ():
        if not entry:
            continue
        registry.register_status(_status_from_mapping(entry))
    for entry in payload.get("items") or ():
        if not entry:
            continue
        registry.register_item(_item_from_mapping(entry))
    return registry


def load_database_file(path: Path | str, registry: DataRegistry | None = None) -> DataRegistry:
    with Path(path).open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    return load_database(payload, registry)


def _status_from_mapping(data: Mapping[str, Any]) -> StatusDefinition:
    status_id = int(_pick(data, "id", "status_id"))
    return StatusDefinition(
        status_id=status_id,
        name=str(_pick(data, "name", default=f"status:{status_id}")),
        note=str(_pick(data, "note", default="") or ""),
        icon_index=_coerce_int(_pick(data, "iconIndex", "icon_index", default=0)),
        remove_at_battle_end=bool(_pick(data, "removeAtBattleEnd", "remove_at_battle_end", default=False)),
        auto_removal_timing=_coerce_int(_pick(data, "autoRemovalTiming", "auto_removal_timing", default=0)),
        min_turns=_coerce_int(_pick(data, "minTurns", "min_turns", default=1), default=1),
        max_turns=_coerce_int(_pick(data, "maxTurns", "max_turns", default=1), default=1),
        triggers=_triggers(_pick(data, "triggers", default=())),
    )


def _item_from_mapping(data: Mapping[str, Any]) -> ItemDefinition:
    item_id = int(_pick(data, "id", "item_id"))
    return ItemDefinition(
        item_id=item_id,
        name=str(_pick(data, "name", default=f"item:{item_id}")),
        kind=str(_pick(data, "kind", default="item")),
        note=str(_pick(data, "note", default="") or ""),
        damage_type=_coerce_int(_pick(data, "damageType", "damage_type", default=0)),
        element_id=_coerce_int(_pick(data, "elementId", "element_id", default=0)),
        is_attack=bool(_pick(data, "isAttack", "is_attack", default=False)),
        add_statuses=_status_chances(_pick(data, "addStatuses", "add_statuses", default=())),
        attack_elements=tuple(
            _coerce_int(value) for value in _pick(data, "attackElements", "attack_elements", default=()) or ()
        ),
        triggers=_triggers(_pick(data, "triggers", default=())),
    )


def _status_chances(raw: Any) -> dict[int, float]:
    chances: dict[int, float] = {}
    if isinstance(raw, Mapping):
        items: Iterable[tuple[Any, Any]] = raw.items()
    else:
        items = ((entry.get("id"), entry.get("chance", 1.0)) for entry in raw or () if isinstance(entry, Mapping))
    for key, value in items:
        try:
            chances[int(key)] = float(value)
        except (TypeError, ValueError):
            continue
    return chances


def _triggers(raw: Any) -> tuple[TriggerTag, ...]:
    return tuple(TriggerTag.from_mapping(entry) for entry in raw or ())


def _pick(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    if default is None and keys:
        raise KeyError(f"Missing required field '{keys[0]}'")
    return default


def _coerce_int(value: Any, *, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default
