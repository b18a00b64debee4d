"""Game state resource describing whether a battle is running."""
from dataclasses import dataclass


@dataclass
class GameState:
    """Singleton component storing the battle flag."""
    in_battle: bool = False
