"""Stack contributions to a battler's derived statistics.

``BattlerStats`` computes the host values and then folds every registered
``StatModifierProvider`` over them.  ``ModifierAggregator`` is the provider
backed by the rule catalog: each rule contributes
``floor(value * stack)`` for the status it belongs to.  Percentage
statistics (element, debuff and status rates, parameter rates, extra and
special parameters) divide the sum by 100.
"""
from __future__ import annotations

import math
from typing import TYPE_CHECKING, List, Protocol, Sequence, Set, Tuple

from esper import World

from stackstate.stacks.catalog import ModifierKind, RuleCatalog

if TYPE_CHECKING:
    from stackstate.stacks.formula import FormulaView


class StatModifierProvider(Protocol):
    """Adjusts host statistics. Every method returns the adjusted value."""

    def element_rate(self, entity: int, element_id: int, value: float) -> float: ...

    def debuff_rate(self, entity: int, param_id: int, value: float) -> float: ...

    def state_rate(self, entity: int, status_id: int, value: float) -> float: ...

    def param_rate(self, entity: int, param_id: int, value: float) -> float: ...

    def param_add(self, entity: int, param_id: int, value: float) -> float: ...

    def xparam(self, entity: int, xparam_id: int, value: float) -> float: ...

    def sparam(self, entity: int, sparam_id: int, value: float) -> float: ...

    def attack_states(self, entity: int, states: Sequence[int]) -> List[int]: ...

    def attack_states_rate(self, entity: int, status_id: int, value: float) -> float: ...

    def attack_speed(self, entity: int, value: float) -> float: ...

    def attack_times_add(self, entity: int, value: float) -> float: ...


class ModifierAggregator:
    """Stat provider that sums stack-scaled catalog rules.

    The stack ledger and the battler stats are looked up on the world
    (``world.stack_ledger`` and ``world.battler_stats``) on each query.
    """

    def __init__(self, world: World, catalog: RuleCatalog):
        self.world = world
        self.catalog = catalog
        # (battler, kind, target) sums currently being evaluated.
        self._evaluating: Set[Tuple[int, ModifierKind, int | None]] = set()

    # Rates ---------------------------------------------------------------
    def element_rate(self, entity: int, element_id: int, value: float) -> float:
        return value + self.total(entity, ModifierKind.ELEMENT_RATE, element_id) / 100

    def debuff_rate(self, entity: int, param_id: int, value: float) -> float:
        return value + self.total(entity, ModifierKind.DEBUFF_RATE, param_id) / 100

    def state_rate(self, entity: int, status_id: int, value: float) -> float:
        return value + self.total(entity, ModifierKind.STATUS_RATE, status_id) / 100

    # Parameters ------------------------------------------------------------
    def param_rate(self, entity: int, param_id: int, value: float) -> float:
        """``value`` is the stack rate multiplier, 1.0 before any provider."""
        return value + self.total(entity, ModifierKind.PARAM_RATE, param_id) / 100

    def param_add(self, entity: int, param_id: int, value: float) -> float:
        return value + self.total(entity, ModifierKind.PARAM_ADD, param_id)

    def xparam(self, entity: int, xparam_id: int, value: float) -> float:
        return value + self.total(entity, ModifierKind.XPARAM, xparam_id) / 100

    def sparam(self, entity: int, sparam_id: int, value: float) -> float:
        return value + self.total(entity, ModifierKind.SPARAM, sparam_id) / 100

    # Attacks ---------------------------------------------------------------
    def attack_states(self, entity: int, states: Sequence[int]) -> List[int]:
        """Host attack statuses followed by those granted by active stacks."""
        merged = list(dict.fromkeys(states))
        for status_id in self.catalog.targets_of(ModifierKind.ATTACK_STATUS):
            if status_id in merged:
                continue
            for entry in self.catalog.rules_for(ModifierKind.ATTACK_STATUS, status_id):
                if self._stack(entity, entry.status_id) > 0:
                    merged.append(status_id)
                    break
        return merged

    def attack_states_rate(self, entity: int, status_id: int, value: float) -> float:
        """Adds the plain sum; unlike the other rates it is not a percentage."""
        return value + self.total(entity, ModifierKind.ATTACK_STATUS, status_id)

    def attack_speed(self, entity: int, value: float) -> float:
        return value + self.total(entity, ModifierKind.ATTACK_SPEED)

    def attack_times_add(self, entity: int, value: float) -> float:
        return value + self.total(entity, ModifierKind.ATTACK_TIMES)

    # Core ------------------------------------------------------------------
    def total(self, entity: int, kind: ModifierKind, target: int | None = None) -> int:
        """Sum ``floor(value * stack)`` over the rules of ``kind`` aimed at ``target``.

        A formula that reads the very sum it belongs to, directly or through
        other statistics, sees that sum as zero.  Every other statistic keeps
        its stacked value.
        """
        entries = self.catalog.rules_for(kind, target)
        key = (entity, kind, target)
        if not entries or key in self._evaluating:
            return 0
        self._evaluating.add(key)
        try:
            view = self._view(entity)
            result = 0
            for entry in entries:
                stack = self._stack(entity, entry.status_id)
                if stack <= 0:
                    continue
                result += math.floor(entry.value.evaluate(view) * stack)
            return result
        finally:
            self._evaluating.discard(key)

    def _stack(self, entity: int, status_id: int) -> int:
        ledger = getattr(self.world, "stack_ledger", None)
        if ledger is None:
            return 0
        return ledger.stack_of(entity, status_id)

    def _view(self, entity: int) -> "FormulaView | None":
        stats = getattr(self.world, "battler_stats", None)
        if stats is None:
            return None
        return stats.view(entity)
