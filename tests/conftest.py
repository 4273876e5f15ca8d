from pathlib import Path
from typing import Dict, List, Optional

import pytest
from pydantic import BaseModel, Field

from ruleforge.engine.compiler import FunctionCompiler
from ruleforge.models.game_state import GameState
from ruleforge.models.ruleset import RulesetDocument
from ruleforge.repositories.ruleset_repository import FileRulesetRepository
from ruleforge.sandbox.script_engine import ScriptEngine
from ruleforge.services.entity_service import InMemoryEntityService

RULESETS_DIR = Path(__file__).resolve().parents[1] / "Rulesets"


class Stats(BaseModel):
    strength: int = 10
    wisdom: int = 10
    speed: float = 1.0


class Trainer(BaseModel):
    name: str = ""
    nickname: Optional[str] = None
    level: int = 1
    money: int = 0
    stats: Optional[Stats] = None
    pokemon: List[str] = Field(default_factory=list)
    badges: Optional[List[str]] = None
    inventory: Dict[str, int] = Field(default_factory=dict)


@pytest.fixture
def trainer():
    return Trainer(
        name="Ash",
        level=5,
        money=500,
        stats=Stats(strength=14, wisdom=12),
        pokemon=["pikachu"],
        inventory={"potion": 2, "pokeball": 3},
    )


@pytest.fixture
def game_state():
    return GameState(active_ruleset_id="pokemon-adventure", ruleset_game_data={"party": [], "badges": []})


@pytest.fixture
def script_engine():
    return ScriptEngine(seed=42)


@pytest.fixture
def entity_service():
    return InMemoryEntityService()


@pytest.fixture
def compiler(script_engine, entity_service):
    return FunctionCompiler(script_engine=script_engine, entity_service=entity_service)


@pytest.fixture
def file_repository():
    return FileRulesetRepository(RULESETS_DIR)


@pytest.fixture
def pokemon_ruleset(file_repository) -> RulesetDocument:
    return file_repository.load("pokemon-adventure")


@pytest.fixture
def minimal_ruleset_data():
    return {
        "metadata": {"id": "minimal", "name": "Minimal", "version": "0.1"},
        "functionDefinitions": {
            "Exploration": [
                {
                    "name": "Rest",
                    "parameters": [],
                    "ruleValidations": [],
                    "effects": [{"target": "character.level", "operation": "add", "value": 1}],
                }
            ]
        },
    }
