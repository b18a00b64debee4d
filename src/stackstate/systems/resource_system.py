from __future__ import annotations

from esper import World

from stackstate.components.resources import Resources
from stackstate.constants import DEFAULT_MAX_TP, PARAM_MHP, PARAM_MMP, RESOURCE_HP, RESOURCE_KINDS, RESOURCE_MP
from stackstate.events.bus import EVENT_RESOURCE_CHANGED, EVENT_RESOURCE_GAIN, EventBus


class ResourceSystem:
    """Applies HP/MP/TP changes and reports them.

    Subscribes to EVENT_RESOURCE_GAIN (signed amount; negative for loss),
    clamps against the battler's current maximum and emits
    EVENT_RESOURCE_CHANGED after every non-zero request, even when clamping
    left the value where it was.
    """

    def __init__(self, world: World, event_bus: EventBus):
        self.world = world
        self.event_bus = event_bus
        setattr(world, "resources", self)
        self.event_bus.subscribe(EVENT_RESOURCE_GAIN, self.on_resource_gain)

    def on_resource_gain(self, sender, **kwargs):
        target_entity = kwargs.get("target_entity")
        if target_entity is None:
            return
        self.gain(
            target_entity,
            kwargs.get("kind", RESOURCE_HP),
            kwargs.get("amount", 0),
            source_owner=kwargs.get("source_owner"),
            reason=kwargs.get("reason", "unknown"),
        )

    def gain(
        self,
        entity: int,
        kind: str,
        amount: int,
        *,
        source_owner: int | None = None,
        reason: str = "unknown",
    ) -> int:
        """Change ``kind`` by ``amount`` and return the applied delta."""
        if kind not in RESOURCE_KINDS:
            raise ValueError(f"Unknown resource kind '{kind}'")
        amount = int(amount)
        if amount == 0:
            return 0
        try:
            resources = self.world.component_for_entity(entity, Resources)
        except KeyError:
            return 0

        maximum = self.maximum(entity, kind)
        old_value = resources.get(kind)
        resources.set(kind, old_value + amount)
        resources.clamp(kind, maximum)
        delta = resources.get(kind) - old_value

        self.event_bus.emit(
            EVENT_RESOURCE_CHANGED,
            entity=entity,
            kind=kind,
            amount=amount,
            current=resources.get(kind),
            maximum=maximum,
            delta=delta,
            reason=reason,
            source_owner=source_owner,
        )
        return delta

    def maximum(self, entity: int, kind: str) -> int:
        stats = getattr(self.world, "battler_stats", None)
        if kind == RESOURCE_HP:
            return stats.param(entity, PARAM_MHP) if stats else 0
        if kind == RESOURCE_MP:
            return stats.param(entity, PARAM_MMP) if stats else 0
        return DEFAULT_MAX_TP
