from dataclasses import dataclass, field


@dataclass(slots=True)
class Equipment:
    """Item ids equipped by an actor. ``None`` marks an empty slot."""

    item_ids: list[int | None] = field(default_factory=list)

    def equipped(self) -> list[int]:
        return [item_id for item_id in self.item_ids if item_id is not None]
