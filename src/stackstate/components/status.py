from dataclasses import dataclass


@dataclass(slots=True)
class Status:
    """A status currently affecting a single owner entity.

    Status entities carry a ``StatusDuration`` when the status counts down.
    """

    status_id: int
    owner_entity: int
    source_entity: int | None = None
