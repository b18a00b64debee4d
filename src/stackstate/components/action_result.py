from dataclasses import dataclass, field


@dataclass(slots=True)
class ActionResult:
    """Outcome of the most recent action applied to a battler."""

    used: bool = False
    evaded: bool = False
    critical: bool = False
    hp_damage: int = 0
    mp_damage: int = 0
    added_statuses: list[int] = field(default_factory=list)
    stack_changes: dict[int, int] = field(default_factory=dict)

    def clear(self) -> None:
        self.used = False
        self.evaded = False
        self.critical = False
        self.hp_damage = 0
        self.mp_damage = 0
        self.added_statuses.clear()
        self.stack_changes.clear()
