"""Stack-state rule catalog.

Turns the designer's stack configuration (one record per status) into
immutable ``StackStateDefinition`` objects and indexes their modifier rules
by kind and target so stat queries only touch the rules that matter.
"""
from __future__ import annotations

import json
import logging
from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

from stackstate.constants import PARAM_COUNT, SPARAM_COUNT, XPARAM_COUNT
from stackstate.stacks.formula import Formula

logger = logging.getLogger(__name__)


class StackConfigError(ValueError):
    """The stack configuration is inconsistent; raised while loading."""


class ModifierKind(Enum):
    ELEMENT_RATE = "element_rate"
    DEBUFF_RATE = "debuff_rate"
    STATUS_RATE = "status_rate"
    PARAM_ADD = "param_add"
    PARAM_RATE = "param_rate"
    XPARAM = "xparam"
    SPARAM = "sparam"
    ATTACK_STATUS = "attack_status"
    ATTACK_SPEED = "attack_speed"
    ATTACK_TIMES = "attack_times"


@dataclass(frozen=True, slots=True)
class ModifierRule:
    kind: ModifierKind
    target: int | None
    value: Formula


@dataclass(frozen=True, slots=True)
class StackStateDefinition:
    """Stack behaviour of one status.

    ``max_stack`` of 0 leaves the stack unbounded.  ``rules`` keep the order
    in which they were authored.
    """

    status_id: int
    max_stack: int = 0
    initial_stack: int = 0
    auto_add: bool = False
    auto_remove: bool = False
    sync_duration: bool = False
    show_stack: bool = True
    rules: Tuple[ModifierRule, ...] = ()

    def clamp(self, value: int) -> int:
        value = max(0, int(value))
        if self.max_stack > 0:
            value = min(self.max_stack, value)
        return value

    def rules_of(self, kind: ModifierKind) -> Tuple[ModifierRule, ...]:
        return tuple(rule for rule in self.rules if rule.kind is kind)


@dataclass(frozen=True, slots=True)
class DisplaySettings:
    """Stack number overlay settings, consumed only by presentation layers."""

    font_size: int = 20
    offset_x: int = 4
    offset_y: int = 8


@dataclass(frozen=True, slots=True)
class RuleEntry:
    status_id: int
    value: Formula


class RuleCatalog:
    """Immutable mapping of status id -> stack definition."""

    def __init__(
        self,
        definitions: Iterable[StackStateDefinition] = (),
        display: DisplaySettings | None = None,
    ) -> None:
        self.display = display or DisplaySettings()
        self._definitions: Dict[int, StackStateDefinition] = {}
        self._index: Dict[Tuple[ModifierKind, int | None], List[RuleEntry]] = defaultdict(list)
        self._targets: Dict[ModifierKind, List[int]] = defaultdict(list)
        for definition in definitions:
            if definition.status_id in self._definitions:
                raise StackConfigError(f"Stack state {definition.status_id} is configured more than once")
            self._definitions[definition.status_id] = definition
            for rule in definition.rules:
                self._index[(rule.kind, rule.target)].append(RuleEntry(definition.status_id, rule.value))
                if rule.target is not None and rule.target not in self._targets[rule.kind]:
                    self._targets[rule.kind].append(rule.target)

    def definition_of(self, status_id: int) -> StackStateDefinition | None:
        return self._definitions.get(status_id)

    def is_stack_status(self, status_id: int) -> bool:
        return status_id in self._definitions

    def definitions(self) -> Tuple[StackStateDefinition, ...]:
        return tuple(self._definitions.values())

    def rules_for(self, kind: ModifierKind, target: int | None = None) -> Tuple[RuleEntry, ...]:
        """Rules of ``kind`` aimed at ``target``, across every stack status."""
        return tuple(self._index.get((kind, target), ()))

    def targets_of(self, kind: ModifierKind) -> Tuple[int, ...]:
        return tuple(self._targets.get(kind, ()))

    def __len__(self) -> int:
        return len(self._definitions)

    def __contains__(self, status_id: object) -> bool:
        return status_id in self._definitions


def load_catalog(raw_config: Any) -> RuleCatalog:
    """Build a catalog from plugin parameters.

    ``raw_config`` is either the full parameter mapping (``stateConfig`` plus
    display settings) or just the list of per-status records.  Nested values
    may still be JSON-encoded strings, as the host stores them.
    """

    config = _decode(raw_config)
    if isinstance(config, Mapping):
        records = config.get("stateConfig", config.get("state_config")) or []
        display = DisplaySettings(
            font_size=_int_field(config, ("stackFontSize", "font_size"), 20, "display"),
            offset_x=_int_field(config, ("stackAxisX", "offset_x"), 4, "display"),
            offset_y=_int_field(config, ("stackAxisY", "offset_y"), 8, "display"),
        )
    elif isinstance(config, Sequence) and not isinstance(config, str):
        records = config
        display = None
    else:
        raise StackConfigError(f"Unsupported stack configuration of type {type(config).__name__}")
    if not isinstance(records, Sequence) or isinstance(records, str):
        raise StackConfigError("stateConfig must be a list of stack state records")
    definitions = [_definition_from_record(record) for record in records if record]
    catalog = RuleCatalog(definitions, display)
    logger.info("Loaded %d stack state definitions", len(catalog))
    return catalog


def load_catalog_file(path: Path | str) -> RuleCatalog:
    with Path(path).open("r", encoding="utf-8") as handle:
        payload = json.load(handle)
    return load_catalog(payload)


def _definition_from_record(record: Any) -> StackStateDefinition:
    if not isinstance(record, Mapping):
        raise StackConfigError(f"Stack state record must be a mapping, got {type(record).__name__}")
    status_id = _int_field(record, ("stateId", "status_id"), None, "record")
    if status_id <= 0:
        raise StackConfigError(f"Stack state id must be positive, got {status_id}")
    where = f"stack state {status_id}"
    max_stack = _int_field(record, ("maxStack", "max_stack"), 0, where)
    initial_stack = _int_field(record, ("initialStack", "initial_stack"), 0, where)
    if max_stack < 0 or initial_stack < 0:
        raise StackConfigError(f"{where}: stack bounds must not be negative")

    rules: list[ModifierRule] = []
    rules += _target_rules(record, ("elementRate", "element_rate"), ModifierKind.ELEMENT_RATE, None, where)
    rules += _target_rules(record, ("debuffRate", "debuff_rate"), ModifierKind.DEBUFF_RATE, PARAM_COUNT, where)
    rules += _target_rules(record, ("stateRete", "stateRate", "state_rate"), ModifierKind.STATUS_RATE, None, where)
    for entry in _entries(record, ("nparam", "param"), where):
        target = _rule_target(entry, PARAM_COUNT, where)
        add_value = _first(entry, ("addValue", "add_value"))
        rate_value = _first(entry, ("rateValue", "rate_value"))
        if not _is_blank(add_value):
            rules.append(ModifierRule(ModifierKind.PARAM_ADD, target, Formula.compile(add_value)))
        if not _is_blank(rate_value):
            rules.append(ModifierRule(ModifierKind.PARAM_RATE, target, Formula.compile(rate_value)))
    rules += _target_rules(record, ("xparam",), ModifierKind.XPARAM, XPARAM_COUNT, where)
    rules += _target_rules(record, ("sparam",), ModifierKind.SPARAM, SPARAM_COUNT, where)
    rules += _target_rules(record, ("attackState", "attack_state"), ModifierKind.ATTACK_STATUS, None, where)
    speed = _first(record, ("attackSpeedStack", "attack_speed"))
    if not _is_blank(speed):
        rules.append(ModifierRule(ModifierKind.ATTACK_SPEED, None, Formula.compile(speed)))
    times = _first(record, ("attackTimesStack", "attack_times"))
    if not _is_blank(times):
        rules.append(ModifierRule(ModifierKind.ATTACK_TIMES, None, Formula.compile(times)))

    return StackStateDefinition(
        status_id=status_id,
        max_stack=max_stack,
        initial_stack=initial_stack,
        auto_add=_flag(_first(record, ("autoStateAdd", "auto_add"))),
        auto_remove=_flag(_first(record, ("autoStateRemove", "auto_remove"))),
        sync_duration=_flag(_first(record, ("syncTurnCount", "sync_duration"))),
        show_stack=_flag(_first(record, ("showStackNum", "show_stack")), default=True),
        rules=tuple(rules),
    )


def _target_rules(
    record: Mapping[str, Any],
    keys: Tuple[str, ...],
    kind: ModifierKind,
    upper: int | None,
    where: str,
) -> list[ModifierRule]:
    rules: list[ModifierRule] = []
    for entry in _entries(record, keys, where):
        target = _rule_target(entry, upper, where)
        value = entry.get("value")
        if _is_blank(value):
            continue
        rules.append(ModifierRule(kind, target, Formula.compile(value)))
    return rules


def _entries(record: Mapping[str, Any], keys: Tuple[str, ...], where: str) -> list[Mapping[str, Any]]:
    raw = _first(record, keys)
    if raw is None or raw == "":
        return []
    if not isinstance(raw, Sequence) or isinstance(raw, str):
        raise StackConfigError(f"{where}: '{keys[0]}' must be a list")
    entries: list[Mapping[str, Any]] = []
    for entry in raw:
        if not entry:
            continue
        if not isinstance(entry, Mapping):
            raise StackConfigError(f"{where}: '{keys[0]}' entries must be mappings")
        entries.append(entry)
    return entries


def _rule_target(entry: Mapping[str, Any], upper: int | None, where: str) -> int:
    target = _int_field(entry, ("id",), None, where)
    if target < 0 or (upper is not None and target >= upper):
        raise StackConfigError(f"{where}: rule target {target} is out of range")
    return target


def _int_field(data: Mapping[str, Any], keys: Tuple[str, ...], default: int | None, where: str) -> int:
    raw = _first(data, keys)
    if _is_blank(raw):
        if default is None:
            raise StackConfigError(f"{where}: '{keys[0]}' is required")
        return default
    if isinstance(raw, bool):
        raise StackConfigError(f"{where}: '{keys[0]}' must be an integer, got {raw!r}")
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise StackConfigError(f"{where}: '{keys[0]}' must be an integer, got {raw!r}") from exc
    if not value.is_integer():
        raise StackConfigError(f"{where}: '{keys[0]}' must be an integer, got {raw!r}")
    return int(value)


def _first(data: Mapping[str, Any], keys: Tuple[str, ...]) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


def _flag(raw: Any, *, default: bool = False) -> bool:
    if raw is None or raw == "":
        return default
    if isinstance(raw, str):
        return raw.strip().lower() in ("true", "1", "on", "yes")
    return bool(raw)


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _decode(value: Any) -> Any:
    """Recursively decode JSON-encoded strings inside plugin parameters."""
    if isinstance(value, str):
        stripped = value.strip()
        if stripped[:1] in ("[", "{"):
            try:
                return _decode(json.loads(stripped))
            except json.JSONDecodeError:
                return value
        return value
    if isinstance(value, Mapping):
        return {key: _decode(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_decode(item) for item in value]
    return value
