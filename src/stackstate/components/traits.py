from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List


@dataclass(slots=True)
class Traits:
    """Host-side trait totals for a battler.

    Rates are multiplicative (a missing key means 1.0); extra parameters,
    attack speed and attack times are additive.

    Attributes:
        param_rates: Parameter id -> multiplicative rate.
        xparams: Extra parameter id -> additive value.
        sparams: Special parameter id -> multiplicative rate.
        element_rates: Element id -> damage rate taken.
        debuff_rates: Parameter id -> debuff susceptibility.
        state_rates: Status id -> status susceptibility.
        attack_elements: Elements used by normal attacks.
        attack_states: Status id -> chance granted on normal attacks.
    """

    param_rates: Dict[int, float] = field(default_factory=dict)
    xparams: Dict[int, float] = field(default_factory=dict)
    sparams: Dict[int, float] = field(default_factory=dict)
    element_rates: Dict[int, float] = field(default_factory=dict)
    debuff_rates: Dict[int, float] = field(default_factory=dict)
    state_rates: Dict[int, float] = field(default_factory=dict)
    attack_elements: List[int] = field(default_factory=list)
    attack_states: Dict[int, float] = field(default_factory=dict)
    attack_speed: int = 0
    attack_times: int = 0
