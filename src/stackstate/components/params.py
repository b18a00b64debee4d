from __future__ import annotations

from dataclasses import dataclass, field

from stackstate.constants import PARAM_COUNT


def _zeros() -> list[int]:
    return [0] * PARAM_COUNT


@dataclass(slots=True)
class BattlerParams:
    """Base parameter values before trait rates, buffs and stacks.

    Attributes:
        base: Class/enemy base value per parameter id.
        plus: Flat additions from equipment and growth items.
        buffs: Buff level per parameter id (negative for debuffs).
        limits: Optional ``(min, max)`` override per parameter id.
    """

    base: list[int] = field(default_factory=_zeros)
    plus: list[int] = field(default_factory=_zeros)
    buffs: list[int] = field(default_factory=_zeros)
    limits: dict[int, tuple[float, float]] = field(default_factory=dict)
