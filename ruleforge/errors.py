"""
Exception taxonomy for the rule engine.

Most of these never reach a caller of `CompiledFunction.invoke`: the engine
converts them into structured results. They exist so the internal layers can
signal failures precisely and so hosts that want exceptions can opt in.
"""

from typing import Optional


class RuleforgeError(Exception):
    """Base class for every engine error."""


class RulesetLoadError(RuleforgeError):
    """A ruleset could not be found, read or parsed."""

    def __init__(self, ruleset_id: str, reason: str):
        self.ruleset_id = ruleset_id
        self.reason = reason
        super().__init__(f"Could not load ruleset '{ruleset_id}': {reason}")


class DefinitionError(RuleforgeError):
    """A function definition inside a ruleset is malformed."""

    def __init__(self, phase: str, index: int, reason: str, name: Optional[str] = None):
        self.phase = phase
        self.index = index
        self.name = name
        self.reason = reason
        label = f"'{name}'" if name else f"#{index}"
        super().__init__(f"Invalid function definition {label} in phase '{phase}': {reason}")


class PreconditionFailure(RuleforgeError):
    def __init__(self, function_name: str, expression: str):
        self.function_name = function_name
        self.expression = expression
        super().__init__(f"Rule validation failed for {function_name}: {expression}")


class EffectError(RuleforgeError):
    """A single effect could not be applied. Never aborts sibling effects."""


class PathError(EffectError):
    """A dotted path could not be resolved against a root object."""


class CoercionError(EffectError):
    """A value could not be converted to the declared type of its target field."""


class UnsafeScriptError(RuleforgeError):
    def __init__(self, script: str):
        self.script = script
        super().__init__("Script contains unsafe operations")


class ScriptRuntimeError(RuleforgeError):
    """An allowed script raised while being evaluated. The cause is chained."""

    def __init__(self, script: str, reason: str):
        self.script = script
        self.reason = reason
        super().__init__(f"Script execution failed: {reason}")
