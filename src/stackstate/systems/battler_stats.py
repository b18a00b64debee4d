from __future__ import annotations

import math
from typing import List

from esper import World

from stackstate.components.battler import Battler
from stackstate.components.params import BattlerParams
from stackstate.components.resources import Resources
from stackstate.components.traits import Traits
from stackstate.constants import (
    BUFF_RATE_STEP,
    MAX_BUFF_LEVEL,
    PARAM_AGI,
    PARAM_ATK,
    PARAM_COUNT,
    PARAM_LUK,
    PARAM_MAT,
    PARAM_MAX,
    PARAM_MDF,
    PARAM_MHP,
    PARAM_MIN,
    PARAM_MMP,
)
from stackstate.stacks.formula import FormulaView
from stackstate.stacks.modifiers import StatModifierProvider


class BattlerStats:
    """Derived statistics of battlers.

    The host value is computed from the battler's components and then every
    registered provider adjusts it, in registration order.
    """

    def __init__(self, world: World):
        self.world = world
        self.providers: List[StatModifierProvider] = []
        setattr(world, "battler_stats", self)

    # Public API ---------------------------------------------------------
    def add_provider(self, provider: StatModifierProvider) -> None:
        self.providers.append(provider)

    def view(self, entity: int) -> "BattlerView":
        return BattlerView(self, entity)

    def element_rate(self, entity: int, element_id: int) -> float:
        value = self._traits(entity).element_rates.get(element_id, 1.0)
        for provider in self.providers:
            value = provider.element_rate(entity, element_id, value)
        return value

    def debuff_rate(self, entity: int, param_id: int) -> float:
        value = self._traits(entity).debuff_rates.get(param_id, 1.0)
        for provider in self.providers:
            value = provider.debuff_rate(entity, param_id, value)
        return value

    def state_rate(self, entity: int, status_id: int) -> float:
        value = self._traits(entity).state_rates.get(status_id, 1.0)
        for provider in self.providers:
            value = provider.state_rate(entity, status_id, value)
        return value

    def param(self, entity: int, param_id: int) -> int:
        """Final parameter value.

        ``floor(clamp(base * trait rate * buff rate * stack rate + stack add) + 0.5)``
        where the stack rate starts at 1.0 and the stack add at 0.
        """
        if not 0 <= param_id < PARAM_COUNT:
            raise ValueError(f"Unknown parameter id {param_id}")
        params = self._params(entity)
        base = params.base[param_id] + params.plus[param_id]
        trait_rate = self._traits(entity).param_rates.get(param_id, 1.0)
        buff_level = max(-MAX_BUFF_LEVEL, min(MAX_BUFF_LEVEL, params.buffs[param_id]))
        buff_rate = 1.0 + buff_level * BUFF_RATE_STEP
        stack_rate = 1.0
        stack_add = 0.0
        for provider in self.providers:
            stack_rate = provider.param_rate(entity, param_id, stack_rate)
            stack_add = provider.param_add(entity, param_id, stack_add)
        value = base * trait_rate * buff_rate * stack_rate + stack_add
        low, high = params.limits.get(param_id, (PARAM_MIN[param_id], PARAM_MAX[param_id]))
        # Halves round up, not to even.
        return math.floor(min(max(value, low), high) + 0.5)

    def xparam(self, entity: int, xparam_id: int) -> float:
        value = self._traits(entity).xparams.get(xparam_id, 0.0)
        for provider in self.providers:
            value = provider.xparam(entity, xparam_id, value)
        return value

    def sparam(self, entity: int, sparam_id: int) -> float:
        value = self._traits(entity).sparams.get(sparam_id, 1.0)
        for provider in self.providers:
            value = provider.sparam(entity, sparam_id, value)
        return value

    def attack_elements(self, entity: int) -> List[int]:
        return list(self._traits(entity).attack_elements)

    def attack_states(self, entity: int) -> List[int]:
        states = list(self._traits(entity).attack_states)
        for provider in self.providers:
            states = provider.attack_states(entity, states)
        return states

    def attack_states_rate(self, entity: int, status_id: int) -> float:
        value = self._traits(entity).attack_states.get(status_id, 0.0)
        for provider in self.providers:
            value = provider.attack_states_rate(entity, status_id, value)
        return value

    def attack_speed(self, entity: int) -> float:
        value = float(self._traits(entity).attack_speed)
        for provider in self.providers:
            value = provider.attack_speed(entity, value)
        return value

    def attack_times_add(self, entity: int) -> float:
        value = float(self._traits(entity).attack_times)
        for provider in self.providers:
            value = provider.attack_times_add(entity, value)
        return max(0.0, value)

    # Internal helpers ---------------------------------------------------
    def _traits(self, entity: int) -> Traits:
        try:
            return self.world.component_for_entity(entity, Traits)
        except KeyError:
            return Traits()

    def _params(self, entity: int) -> BattlerParams:
        try:
            return self.world.component_for_entity(entity, BattlerParams)
        except KeyError:
            return BattlerParams()


class BattlerView(FormulaView):
    """What a stack formula sees as ``a``.

    Defence is read as ``a.param(3)`` because ``def`` is a Python keyword.
    """

    def __init__(self, stats: BattlerStats, entity: int):
        self._stats = stats
        self._entity = entity

    def _resources(self) -> Resources | None:
        try:
            return self._stats.world.component_for_entity(self._entity, Resources)
        except KeyError:
            return None

    @property
    def hp(self) -> int:
        resources = self._resources()
        return resources.hp if resources else 0

    @property
    def mp(self) -> int:
        resources = self._resources()
        return resources.mp if resources else 0

    @property
    def tp(self) -> int:
        resources = self._resources()
        return resources.tp if resources else 0

    @property
    def level(self) -> int:
        try:
            return self._stats.world.component_for_entity(self._entity, Battler).level
        except KeyError:
            return 1

    @property
    def mhp(self) -> int:
        return self._stats.param(self._entity, PARAM_MHP)

    @property
    def mmp(self) -> int:
        return self._stats.param(self._entity, PARAM_MMP)

    @property
    def atk(self) -> int:
        return self._stats.param(self._entity, PARAM_ATK)

    @property
    def mat(self) -> int:
        return self._stats.param(self._entity, PARAM_MAT)

    @property
    def mdf(self) -> int:
        return self._stats.param(self._entity, PARAM_MDF)

    @property
    def agi(self) -> int:
        return self._stats.param(self._entity, PARAM_AGI)

    @property
    def luk(self) -> int:
        return self._stats.param(self._entity, PARAM_LUK)

    def param(self, param_id: int) -> int:
        return self._stats.param(self._entity, int(param_id))

    def xparam(self, xparam_id: int) -> float:
        return self._stats.xparam(self._entity, int(xparam_id))

    def sparam(self, sparam_id: int) -> float:
        return self._stats.sparam(self._entity, int(sparam_id))

    def stack(self, status_id: int) -> int:
        ledger = getattr(self._stats.world, "stack_ledger", None)
        return ledger.stack_of(self._entity, int(status_id)) if ledger else 0

    def is_state_affected(self, status_id: int) -> bool:
        lifecycle = getattr(self._stats.world, "status_lifecycle", None)
        return lifecycle.is_affected(self._entity, int(status_id)) if lifecycle else False
