from blinker import Signal
from typing import Dict

class EventBus:
    """Synchronous event bus built on blinker Signal objects.

    Handlers run inline inside ``emit`` in subscription order, so a handler
    observing an event always sees the state the emitter left behind.
    """
    def __init__(self):
        self._signals: Dict[str, Signal] = {}

    def subscribe(self, name: str, fn):
        sig = self._signals.setdefault(name, Signal(name))
        # Strong references so systems that are not kept in a variable still receive events.
        sig.connect(fn, weak=False)

    def unsubscribe(self, name: str, fn):
        sig = self._signals.get(name)
        if sig:
            sig.disconnect(fn)

    def emit(self, name: str, **payload):
        sig = self._signals.get(name)
        if sig:
            sig.send(self, **payload)


# ============================================================================
# BATTLE FLOW
# ============================================================================
EVENT_BATTLE_STARTED = "battle_started"    # payload: None
EVENT_BATTLE_ENDED = "battle_ended"        # payload: reason=str|None
EVENT_TURN_ENDED = "turn_ended"            # payload: owner_entity=int


# ============================================================================
# STATUSES
# ============================================================================
EVENT_STATUS_ADD = "status_add"                # payload: owner_entity=int, status_id=int, source_entity=int|None
EVENT_STATUS_ADDED = "status_added"            # payload: status_entity=int, owner_entity=int, status_id=int
EVENT_STATUS_REFRESHED = "status_refreshed"    # payload: status_entity=int, owner_entity=int, status_id=int
EVENT_STATUS_REMOVE = "status_remove"          # payload: owner_entity=int, status_id=int, reason=str
EVENT_STATUS_REMOVED = "status_removed"        # payload: status_entity=int, owner_entity=int, status_id=int, reason=str


# ============================================================================
# STACKS
# ============================================================================
EVENT_STACK_GAIN = "stack_gain"          # payload: owner_entity=int, status_id=int, delta=int
EVENT_STACK_CHANGED = "stack_changed"    # payload: owner_entity=int, status_id=int, previous=int, current=int


# ============================================================================
# RESOURCES (HP / MP / TP)
# ============================================================================
EVENT_RESOURCE_GAIN = "resource_gain"          # payload: target_entity=int, kind=str, amount=int, source_owner=int|None, reason=str
EVENT_RESOURCE_CHANGED = "resource_changed"    # payload: entity=int, kind=str, amount=int, current=int, maximum=int, delta=int, reason=str, source_owner=int|None


# ============================================================================
# ACTION RESOLUTION
# ============================================================================
EVENT_DAMAGE_APPLIED = "damage_applied"            # payload: subject=int, target=int, kind=str, value=int, elements=tuple[int,...], item_id=int
EVENT_STATUSES_INFLICTED = "statuses_inflicted"    # payload: subject=int, target=int, added=tuple[int,...], item_id=int
EVENT_ITEM_APPLIED = "item_applied"                # payload: subject=int, target=int, item_id=int
EVENT_CRITICAL_HIT = "critical_hit"                # payload: subject=int, target=int
EVENT_ACTION_EVADED = "action_evaded"              # payload: subject=int, target=int
EVENT_COUNTER_ATTACK = "counter_attack"            # payload: subject=int, counter_entity=int
EVENT_MAGIC_REFLECTED = "magic_reflected"          # payload: subject=int, reflector=int
EVENT_SUBSTITUTED = "substituted"                  # payload: subject=int, original_target=int, substitute=int
EVENT_ACTION_ENDED = "action_ended"                # payload: owner_entity=int
