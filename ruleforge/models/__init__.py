from ruleforge.models.game_state import GamePhase, GameState, phase_key
from ruleforge.models.results import EffectOutcome, EffectStatus, InvocationResult
from ruleforge.models.ruleset import (
    EffectSpec,
    FunctionDefinition,
    GameStateSchema,
    ParameterSpec,
    PromptTemplate,
    RulesetDocument,
    RulesetInfo,
    RulesetMetadata,
)

__all__ = [
    "GamePhase",
    "GameState",
    "phase_key",
    "EffectOutcome",
    "EffectStatus",
    "InvocationResult",
    "EffectSpec",
    "FunctionDefinition",
    "GameStateSchema",
    "ParameterSpec",
    "PromptTemplate",
    "RulesetDocument",
    "RulesetInfo",
    "RulesetMetadata",
]
