from enum import Enum
from typing import Any, Dict, Union

from pydantic import BaseModel, Field


class GamePhase(str, Enum):
    GAME_SETUP = "GameSetup"
    WORLD_GENERATION = "WorldGeneration"
    EXPLORATION = "Exploration"
    COMBAT = "Combat"
    LEVEL_UP = "LevelUp"


def phase_key(phase: Union[str, Enum]) -> str:
    """Ruleset documents key phases by name; accept enum members or plain strings."""
    if isinstance(phase, Enum):
        return str(phase.value)
    return str(phase)


class GameState(BaseModel):
    """
    The slice of game state this engine touches.
    Ruleset-specific collections live in `ruleset_game_data`.
    """

    active_ruleset_id: str = ""
    ruleset_game_data: Dict[str, Any] = Field(
        default_factory=dict,
        description="Collections declared by the active ruleset, keyed by name.",
    )
