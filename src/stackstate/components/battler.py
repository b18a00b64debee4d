from dataclasses import dataclass


@dataclass(slots=True)
class Battler:
    """Identity of a combat participant.

    Actors draw trigger tags from their equipment as well as their statuses;
    enemies only from their statuses.
    """

    name: str
    is_actor: bool = False
    level: int = 1
