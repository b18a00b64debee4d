from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping


@dataclass(slots=True)
class StackLedger:
    """Stack count per status id for one battler.

    An entry exists only while the coupled status is active; the ledger
    system creates it when the status is applied and drops it on removal.
    """

    stacks: dict[int, int] = field(default_factory=dict)

    def get(self, status_id: int) -> int:
        return self.stacks.get(status_id, 0)

    def to_dict(self) -> dict[str, int]:
        return {str(status_id): count for status_id, count in self.stacks.items()}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any] | None) -> "StackLedger":
        ledger = cls()
        for key, value in (payload or {}).items():
            try:
                ledger.stacks[int(key)] = max(0, int(value))
            except (TypeError, ValueError):
                continue
        return ledger
