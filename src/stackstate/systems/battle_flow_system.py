"""Keeps the game state's battle flag in step with battle start and end."""
from __future__ import annotations

from esper import World

from stackstate.components.game_state import GameState
from stackstate.events.bus import EVENT_BATTLE_ENDED, EVENT_BATTLE_STARTED, EventBus


class BattleFlowSystem:
    def __init__(self, world: World, event_bus: EventBus) -> None:
        self.world = world
        self.event_bus = event_bus
        self.event_bus.subscribe(EVENT_BATTLE_STARTED, self._on_battle_started)
        self.event_bus.subscribe(EVENT_BATTLE_ENDED, self._on_battle_ended)

    def _on_battle_started(self, sender, **kwargs) -> None:
        self._set_in_battle(True)

    def _on_battle_ended(self, sender, **kwargs) -> None:
        self._set_in_battle(False)

    def _set_in_battle(self, value: bool) -> None:
        states = list(self.world.get_component(GameState))
        if not states:
            self.world.create_entity(GameState(in_battle=value))
            return
        for _, state in states:
            state.in_battle = value
