from dataclasses import dataclass


@dataclass
class Resources:
    """Current HP/MP/TP. Maximums are derived statistics and passed in on clamp."""
    hp: int
    mp: int = 0
    tp: int = 0

    def get(self, kind: str) -> int:
        return int(getattr(self, kind))

    def set(self, kind: str, value: int) -> None:
        setattr(self, kind, int(value))

    def clamp(self, kind: str, maximum: int) -> None:
        value = self.get(kind)
        if value < 0:
            value = 0
        if value > maximum:
            value = maximum
        self.set(kind, value)

    def is_alive(self) -> bool:
        return self.hp > 0
