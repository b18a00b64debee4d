from dataclasses import dataclass, field


@dataclass(slots=True)
class StatusList:
    """Holds references to the status entities affecting an owner, in application order."""

    status_entities: list[int] = field(default_factory=list)
