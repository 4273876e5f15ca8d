from ruleforge.sandbox.helpers import SAFE_FUNCTIONS, DiceRoller, MathNamespace, RuleUtilities
from ruleforge.sandbox.script_engine import ScriptEngine, is_safe_script, normalize_script

__all__ = [
    "SAFE_FUNCTIONS",
    "DiceRoller",
    "MathNamespace",
    "RuleUtilities",
    "ScriptEngine",
    "is_safe_script",
    "normalize_script",
]
