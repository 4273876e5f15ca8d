"""
ruleforge: compile declarative game rulesets into validated, state-mutating
operations.
"""

from typing import Optional

from ruleforge.config import EngineSettings
from ruleforge.engine import CompiledFunction, FunctionCompiler, UnrecognizedPolicy
from ruleforge.models import GamePhase, GameState, InvocationResult, RulesetDocument
from ruleforge.repositories import FileRulesetRepository
from ruleforge.sandbox import ScriptEngine
from ruleforge.services import InMemoryEntityService, RulesetManager, validate_ruleset

__version__ = "0.1.0"


def create_ruleset_manager(settings: Optional[EngineSettings] = None, entity_service=None) -> RulesetManager:
    """Wire a RulesetManager with a file repository, the sandbox and the compiler."""
    settings = settings or EngineSettings.from_env()
    compiler = FunctionCompiler(
        script_engine=ScriptEngine(seed=settings.script_seed),
        entity_service=entity_service,
        unrecognized_policy=settings.unrecognized_precondition,
    )
    return RulesetManager(FileRulesetRepository(settings.rulesets_dir), compiler)


__all__ = [
    "create_ruleset_manager",
    "EngineSettings",
    "CompiledFunction",
    "FunctionCompiler",
    "UnrecognizedPolicy",
    "GamePhase",
    "GameState",
    "InvocationResult",
    "RulesetDocument",
    "FileRulesetRepository",
    "ScriptEngine",
    "InMemoryEntityService",
    "RulesetManager",
    "validate_ruleset",
]
