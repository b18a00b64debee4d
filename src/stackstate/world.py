from __future__ import annotations

import random
from typing import Iterable, Mapping, Sequence

from esper import World

from stackstate.components.action_result import ActionResult
from stackstate.components.battler import Battler
from stackstate.components.equipment import Equipment
from stackstate.components.game_state import GameState
from stackstate.components.params import BattlerParams
from stackstate.components.resources import Resources
from stackstate.components.stack_ledger import StackLedger
from stackstate.components.status_list import StatusList
from stackstate.components.traits import Traits
from stackstate.constants import PARAM_COUNT, PARAM_MHP, PARAM_MMP
from stackstate.data.registry import DataRegistry
from stackstate.events.bus import EventBus
from stackstate.stacks.catalog import RuleCatalog
from stackstate.stacks.modifiers import ModifierAggregator
from stackstate.systems.action_system import ActionSystem
from stackstate.systems.battle_flow_system import BattleFlowSystem
from stackstate.systems.battler_stats import BattlerStats
from stackstate.systems.resource_system import ResourceSystem
from stackstate.systems.stack_ledger_system import StackLedgerSystem
from stackstate.systems.stack_trigger_system import StackTriggerSystem
from stackstate.systems.status_lifecycle_system import StatusLifecycleSystem


def create_world(
    event_bus: EventBus,
    *,
    catalog: RuleCatalog | None = None,
    registry: DataRegistry | None = None,
    rng: random.Random | None = None,
    in_battle: bool = False,
) -> World:
    """Build a world with every system subscribed to ``event_bus``.

    Shared systems are reachable as world attributes: ``status_lifecycle``,
    ``battler_stats``, ``resources``, ``stack_ledger``, ``stack_triggers``,
    ``actions``; the catalog and registry as ``stack_catalog`` and
    ``registry``.
    """
    world = World()
    setattr(world, "random", rng or random.Random())
    catalog = catalog if catalog is not None else RuleCatalog()
    registry = registry if registry is not None else DataRegistry()
    setattr(world, "stack_catalog", catalog)
    setattr(world, "registry", registry)

    world.create_entity(GameState(in_battle=in_battle))

    BattleFlowSystem(world, event_bus)
    StatusLifecycleSystem(world, event_bus, registry)
    stats = BattlerStats(world)
    ResourceSystem(world, event_bus)
    StackLedgerSystem(world, event_bus, catalog, registry)
    stats.add_provider(ModifierAggregator(world, catalog))
    setattr(world, "stack_triggers", StackTriggerSystem(world, event_bus, catalog, registry))
    ActionSystem(world, event_bus, registry)
    return world


def create_battler(
    world: World,
    name: str,
    *,
    is_actor: bool = False,
    level: int = 1,
    params: Sequence[int] | None = None,
    traits: Traits | None = None,
    equipment: Iterable[int | None] = (),
    hp: int | None = None,
    mp: int | None = None,
    tp: int = 0,
    limits: Mapping[int, tuple[float, float]] | None = None,
) -> int:
    """Create a battler entity. HP and MP start full unless given."""
    base = list(params or ())[:PARAM_COUNT]
    base += [0] * (PARAM_COUNT - len(base))
    entity = world.create_entity(
        Battler(name=name, is_actor=is_actor, level=level),
        BattlerParams(base=base, limits=dict(limits or {})),
        traits or Traits(),
        Equipment(item_ids=list(equipment)),
        StatusList(),
        StackLedger(),
        ActionResult(),
        Resources(hp=0, mp=0, tp=tp),
    )
    stats = getattr(world, "battler_stats")
    resources = world.component_for_entity(entity, Resources)
    resources.hp = stats.param(entity, PARAM_MHP) if hp is None else hp
    resources.mp = stats.param(entity, PARAM_MMP) if mp is None else mp
    return entity
