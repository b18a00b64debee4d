from __future__ import annotations

import random
from typing import Any, Iterable, Mapping, Sequence

from esper import World

from stackstate.components.traits import Traits
from stackstate.data.loader import load_database
from stackstate.events.bus import EventBus
from stackstate.stacks.catalog import load_catalog
from stackstate.world import create_battler, create_world

# mhp, mmp, atk, def, mat, mdf, agi, luk
DEFAULT_PARAMS = (500, 100, 100, 50, 80, 50, 40, 30)


def make_world(
    stack_config: Iterable[Mapping[str, Any]] = (),
    statuses: Iterable[Mapping[str, Any]] = (),
    items: Iterable[Mapping[str, Any]] = (),
    *,
    in_battle: bool = True,
    seed: int = 0,
) -> tuple[EventBus, World]:
    """Build a fully wired world from plain stack records and database rows."""

    bus = EventBus()
    catalog = load_catalog(list(stack_config))
    registry = load_database({"statuses": list(statuses), "items": list(items)})
    world = create_world(
        bus,
        catalog=catalog,
        registry=registry,
        rng=random.Random(seed),
        in_battle=in_battle,
    )
    return bus, world


def add_battler(
    world: World,
    name: str = "hero",
    *,
    is_actor: bool = False,
    params: Sequence[int] = DEFAULT_PARAMS,
    traits: Traits | None = None,
    equipment: Iterable[int | None] = (),
    **kwargs: Any,
) -> int:
    return create_battler(
        world,
        name,
        is_actor=is_actor,
        params=params,
        traits=traits,
        equipment=equipment,
        **kwargs,
    )


def record_events(bus: EventBus, *names: str) -> list[tuple[str, dict]]:
    """Subscribe to ``names`` and collect ``(name, payload)`` in emission order."""

    received: list[tuple[str, dict]] = []
    for name in names:
        def handler(sender, _name=name, **kwargs):
            received.append((_name, kwargs))

        bus.subscribe(name, handler)
    return received
