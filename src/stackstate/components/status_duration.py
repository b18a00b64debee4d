from dataclasses import dataclass


@dataclass(slots=True)
class StatusDuration:
    """Remaining turns before the status expires."""

    remaining_turns: int
