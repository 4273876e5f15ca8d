from ruleforge.engine.compiler import (
    CompiledFunction,
    CompiledParameter,
    FunctionCompiler,
    parameter_type,
)
from ruleforge.engine.effects import EffectApplier, normalize_operation
from ruleforge.engine.preconditions import (
    PreconditionEvaluator,
    UnrecognizedPolicy,
    parse_precondition,
)

__all__ = [
    "CompiledFunction",
    "CompiledParameter",
    "FunctionCompiler",
    "parameter_type",
    "EffectApplier",
    "normalize_operation",
    "PreconditionEvaluator",
    "UnrecognizedPolicy",
    "parse_precondition",
]
