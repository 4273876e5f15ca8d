"""
Sandboxed Script Engine
=======================
Evaluates short rule scripts that the built-in precondition grammar cannot
express, e.g. "character.level >= 5 and dice.d20() + utils.ability_modifier(character.stats.wisdom) >= 12".

Uses simpleeval for sandboxed execution:
- A fresh evaluator per call; nothing is shared between invocations.
- Only explicitly injected names are visible: `character`, `context`,
  `dice`, `utils`, `Math`, `true`, `false`, `null`.
- Rule scripts see plain-data snapshots of `character` and `context`, so
  a script can never change live game state.
- No imports, no dunder access, no builtins beyond SAFE_FUNCTIONS.

A syntactic denylist gate runs first. It is a filter, not a proof of safety.
"""

import copy
import dataclasses
import logging
import random
import re
from collections.abc import Mapping
from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, TypeAdapter, ValidationError
from simpleeval import EvalWithCompoundTypes

from ruleforge.errors import ScriptRuntimeError, UnsafeScriptError
from ruleforge.sandbox.helpers import SAFE_FUNCTIONS, DiceRoller, MathNamespace, RuleUtilities

logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# SAFETY GATE
# =============================================================================

FORBIDDEN_IDENTIFIERS = (
    "require",
    "import",
    "eval",
    "exec",
    "Function",
    "setTimeout",
    "setInterval",
    "process",
    "global",
    "globals",
    "__dirname",
    "__filename",
    "module",
    "exports",
    "open",
    "compile",
    "getattr",
    "subprocess",
)

DANGEROUS_PATTERNS = (
    r"new\s+Function",
    r"eval\s*\(",
    r"(?<![\w.])window\.",
    r"(?<![\w.])document\.",
    r"(?<![\w.])location\.",
    r"(?<![\w.])navigator\.",
    r"XMLHttpRequest",
    r"fetch\s*\(",
    r"import\s*\(",
    r"require\s*\(",
    r"__",  # Dunder attributes
)

_forbidden_re = re.compile(
    r"\b(?:" + "|".join(re.escape(word) for word in FORBIDDEN_IDENTIFIERS) + r")\b",
    re.IGNORECASE,
)
_dangerous_res = [re.compile(pattern, re.IGNORECASE) for pattern in DANGEROUS_PATTERNS]


def is_safe_script(script: str) -> bool:
    """
    Syntactic safety gate.

    Returns False when the script names a denylisted identifier or matches
    a dangerous call pattern.
    """
    if not isinstance(script, str):
        return False
    if _forbidden_re.search(script):
        return False
    for pattern in _dangerous_res:
        if pattern.search(script):
            return False
    return True


# =============================================================================
# SCRIPT NORMALIZATION
# =============================================================================

_string_literal_re = re.compile(r"""('(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")""")

_js_operators = [
    (re.compile(r"&&"), " and "),
    (re.compile(r"\|\|"), " or "),
    (re.compile(r"!=="), "!="),
    (re.compile(r"==="), "=="),
    (re.compile(r"!(?!=)"), " not "),
]


def normalize_script(script: str) -> str:
    """
    Rewrite JavaScript-flavoured operators that rulesets commonly use into
    Python operators. String literals are left untouched.
    """
    parts = _string_literal_re.split(script)
    for i in range(0, len(parts), 2):
        chunk = parts[i]
        for pattern, replacement in _js_operators:
            chunk = pattern.sub(replacement, chunk)
        parts[i] = chunk
    return "".join(parts).strip()


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes"):
            return True
        if lowered in ("false", "0", "no", ""):
            return False
    return bool(value)


def _type_default(result_type: Type[Any]) -> Any:
    try:
        return result_type()
    except TypeError:
        return None


def snapshot(value: Any) -> Any:
    """Detached plain-data copy of a value: models and dataclasses become dicts."""
    if isinstance(value, BaseModel):
        return value.model_dump()
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return dataclasses.asdict(value)
    if isinstance(value, Mapping):
        return {key: snapshot(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [snapshot(item) for item in value]
    return copy.deepcopy(value)


def _rule_variables(character: Any, context: Any) -> Dict[str, Any]:
    return {"character": snapshot(character), "context": snapshot(context)}


# =============================================================================
# ENGINE
# =============================================================================


class ScriptEngine:
    """
    Runs rule scripts in isolation.

    Args:
        seed: Optional seed for the dice roller. Each call builds its own
            `random.Random(seed)`, so seeded engines are reproducible and
            calls never share random state.
    """

    def __init__(self, seed: Optional[int] = None):
        self._seed = seed

    def is_safe_script(self, script: str) -> bool:
        return is_safe_script(script)

    def _build_evaluator(self, variables: Dict[str, Any]) -> EvalWithCompoundTypes:
        rng = random.Random(self._seed) if self._seed is not None else random.Random()
        names: Dict[str, Any] = {
            "true": True,
            "false": False,
            "null": None,
            "dice": DiceRoller(rng),
            "utils": RuleUtilities(),
            "Math": MathNamespace(),
        }
        names.update(variables)
        return EvalWithCompoundTypes(functions=dict(SAFE_FUNCTIONS), names=names)

    async def execute(self, script: str, variables: Dict[str, Any]) -> Any:
        """
        Evaluate a script with the given variables.

        Raises:
            UnsafeScriptError: the safety gate rejected the script.
            ScriptRuntimeError: evaluation raised; the original exception is chained.
        """
        if not self.is_safe_script(script):
            raise UnsafeScriptError(script)

        evaluator = self._build_evaluator(variables)
        prepared = normalize_script(script)
        logger.debug(f"Executing script: {prepared}")
        try:
            result = evaluator.eval(prepared)
        except Exception as e:
            raise ScriptRuntimeError(script, str(e)) from e
        logger.debug(f"Script result: {result!r}")
        return result

    async def validate_rule(self, script: str, character: Any, context: Any = None) -> bool:
        """Evaluate a rule script as a boolean. Unsafe or failing scripts are False."""
        if not self.is_safe_script(script):
            logger.error(f"Script not safe: {script}")
            return False
        try:
            result = await self.execute(script, _rule_variables(character, context))
        except ScriptRuntimeError as e:
            logger.error(f"Validation failed for script '{script}': {e.reason}", exc_info=e.__cause__)
            return False
        return _coerce_bool(result)

    async def execute_rule(
        self,
        script: str,
        character: Any,
        context: Any = None,
        result_type: Type[T] = bool,
    ) -> T:
        """
        Evaluate a rule script and coerce the result to `result_type`.

        The safety gate raises `UnsafeScriptError` before anything runs. A
        runtime error or a result that cannot be coerced yields the type's
        default value (e.g. 0 for int).
        """
        if not self.is_safe_script(script):
            raise UnsafeScriptError(script)

        try:
            result = await self.execute(script, _rule_variables(character, context))
        except ScriptRuntimeError as e:
            logger.warning(f"Rule script '{script}' failed: {e.reason}", exc_info=e.__cause__)
            return _type_default(result_type)

        if result_type is bool:
            return _coerce_bool(result)  # type: ignore[return-value]
        if isinstance(result_type, type) and isinstance(result, result_type):
            return result
        try:
            return TypeAdapter(result_type).validate_python(result)
        except ValidationError:
            logger.debug(f"Could not coerce {result!r} to {result_type!r}")
            return _type_default(result_type)
