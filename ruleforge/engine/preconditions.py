"""
Precondition Evaluator
======================
Parses rule validation strings into a small expression tree and evaluates
them against the invocation's root objects.

Recognized shapes (root is `character` or `gameState`):
- EmptyCheck:       character.nickname == ''      (also "", null, and !=)
- CollectionLength: character.pokemon.length < 6
- MapMembership:    character.inventory[pokeball] > 0

Anything else parses to `Unrecognized` and is resolved by the configured
UnrecognizedPolicy. Expressions prefixed with "script:" always go to the
sandboxed script engine.
"""

import logging
import operator
import re
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, NamedTuple, Optional, Tuple

from ruleforge.engine.accessors import read_path, resolve_name
from ruleforge.errors import PathError

logger = logging.getLogger(__name__)

SCRIPT_PREFIX = "script:"

ROOT_NAMES = {
    "character": "character",
    "gamestate": "gameState",
    "game_state": "gameState",
}

COMPARATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "==": operator.eq,
    "=": operator.eq,
    "!=": operator.ne,
}


class UnrecognizedPolicy(str, Enum):
    """What an expression outside the grammar evaluates to."""

    ALLOW = "allow"    # true (legacy leniency)
    DENY = "deny"      # false
    SCRIPT = "script"  # hand it to the sandbox


def compare(actual: Any, op: str, expected: Any) -> bool:
    return COMPARATORS[op](actual, expected)


# =============================================================================
# TOKENIZER
# =============================================================================


class Token(NamedTuple):
    kind: str
    text: str


_token_re = re.compile(
    r"""
    (?P<ws>\s+)
  | (?P<key>\[[^\]]*\])
  | (?P<string>'[^']*'|"[^"]*")
  | (?P<number>-?\d+(?:\.\d+)?)
  | (?P<op><=|>=|==|!=|<|>|=)
  | (?P<dot>\.)
  | (?P<ident>[A-Za-z_][A-Za-z0-9_]*)
  | (?P<other>.)
    """,
    re.VERBOSE,
)


def tokenize(expression: str) -> List[Token]:
    return [
        Token(m.lastgroup, m.group())
        for m in _token_re.finditer(expression)
        if m.lastgroup != "ws"
    ]


# =============================================================================
# EXPRESSION TREE
# =============================================================================


@dataclass(frozen=True)
class EmptyCheck:
    root: str
    path: Tuple[str, ...]
    negated: bool = False

    def evaluate(self, root_obj: Any) -> Optional[bool]:
        try:
            value = read_path(root_obj, list(self.path))
        except PathError:
            return False
        is_empty = value is None or (isinstance(value, str) and value == "")
        return not is_empty if self.negated else is_empty


@dataclass(frozen=True)
class CollectionLength:
    root: str
    path: Tuple[str, ...]
    op: str
    expected: int

    def evaluate(self, root_obj: Any) -> Optional[bool]:
        try:
            value = read_path(root_obj, list(self.path))
        except PathError:
            return None
        if value is None or isinstance(value, (str, bytes)) or not hasattr(value, "__len__"):
            return None
        return compare(len(value), self.op, self.expected)


@dataclass(frozen=True)
class MapMembership:
    root: str
    path: Tuple[str, ...]
    key: str
    op: str
    expected: int

    def evaluate(self, root_obj: Any) -> Optional[bool]:
        try:
            container = read_path(root_obj, list(self.path))
        except PathError:
            return False
        if not isinstance(container, Mapping):
            return False
        resolved = resolve_name(container, self.key)
        if resolved is None:
            # An absent key only satisfies "== 0".
            return self.op in ("==", "=") and self.expected == 0
        try:
            actual = int(container[resolved])
        except (TypeError, ValueError):
            return False
        return compare(actual, self.op, self.expected)


@dataclass(frozen=True)
class Unrecognized:
    text: str

    def evaluate(self, root_obj: Any) -> Optional[bool]:
        return None


class _ParseError(Exception):
    pass


class _Parser:
    def __init__(self, tokens: List[Token]):
        self.tokens = tokens
        self.pos = 0

    def _peek(self) -> Optional[Token]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _take(self, kind: str) -> Token:
        tok = self._peek()
        if tok is None or tok.kind != kind:
            raise _ParseError(f"expected {kind}")
        self.pos += 1
        return tok

    def parse(self):
        root_tok = self._take("ident")
        root = ROOT_NAMES.get(root_tok.text.lower())
        if root is None:
            raise _ParseError(f"unknown root {root_tok.text}")

        path: List[str] = []
        key: Optional[str] = None
        while self._peek() is not None and self._peek().kind == "dot":
            if key is not None:
                raise _ParseError("member access after index")
            self._take("dot")
            path.append(self._take("ident").text)
            nxt = self._peek()
            if nxt is not None and nxt.kind == "key":
                self.pos += 1
                key = nxt.text[1:-1].strip().strip("'\"")
        if not path:
            raise _ParseError("missing property")

        op = self._take("op").text
        literal = self._peek()
        if literal is None:
            raise _ParseError("missing literal")
        self.pos += 1
        if self._peek() is not None:
            raise _ParseError("trailing tokens")

        is_empty_literal = (literal.kind == "string" and len(literal.text) == 2) or (
            literal.kind == "ident" and literal.text.lower() == "null"
        )
        if key is None and is_empty_literal and op in ("==", "=", "!="):
            return EmptyCheck(root, tuple(path), negated=op == "!=")

        if literal.kind != "number":
            raise _ParseError("expected integer literal")
        try:
            expected = int(literal.text)
        except ValueError:
            raise _ParseError("expected integer literal")

        if key is not None:
            return MapMembership(root, tuple(path), key, op, expected)
        if len(path) >= 2 and path[-1].lower() in ("length", "count"):
            return CollectionLength(root, tuple(path[:-1]), op, expected)
        raise _ParseError("unsupported comparison")


def parse_precondition(expression: str):
    """Parse an expression into a tree node; never raises."""
    try:
        return _Parser(tokenize(expression.strip())).parse()
    except _ParseError:
        return Unrecognized(expression)


# =============================================================================
# EVALUATOR
# =============================================================================


class PreconditionEvaluator:
    """
    Evaluates preconditions for compiled functions.

    Args:
        script_engine: Sandbox used for "script:" expressions and for the
            SCRIPT policy. Without one those expressions evaluate False.
        policy: Resolution for expressions outside the grammar.
    """

    def __init__(self, script_engine=None, policy: UnrecognizedPolicy = UnrecognizedPolicy.ALLOW):
        self.script_engine = script_engine
        self.policy = UnrecognizedPolicy(policy)

    async def evaluate(
        self,
        expression: str,
        roots: Dict[str, Any],
        context: Any = None,
    ) -> bool:
        """
        Evaluate one (already placeholder-substituted) expression.

        Args:
            expression: The precondition text
            roots: {"character": ..., "gameState": ...}
            context: Passed to the sandbox as `context` when scripts run
        """
        stripped = (expression or "").strip()
        if stripped.lower().startswith(SCRIPT_PREFIX):
            return await self._run_script(stripped[len(SCRIPT_PREFIX):].strip(), roots, context)

        node = parse_precondition(stripped)
        if isinstance(node, Unrecognized):
            return await self._resolve_unrecognized(stripped, roots, context)

        root_obj = roots.get(node.root)
        if root_obj is None:
            logger.warning(f"Precondition '{stripped}' needs {node.root}, which was not supplied")
            return False

        try:
            result = node.evaluate(root_obj)
        except Exception as e:
            logger.error(f"Precondition '{stripped}' raised: {e}", exc_info=True)
            return False

        if result is None:
            return await self._resolve_unrecognized(stripped, roots, context)
        logger.debug(f"Precondition '{stripped}' -> {result}")
        return result

    async def _resolve_unrecognized(self, expression: str, roots: Dict[str, Any], context: Any) -> bool:
        if self.policy == UnrecognizedPolicy.SCRIPT:
            return await self._run_script(expression, roots, context)
        allowed = self.policy == UnrecognizedPolicy.ALLOW
        logger.warning(
            f"Unrecognized precondition '{expression}' treated as {'valid' if allowed else 'invalid'}"
        )
        return allowed

    async def _run_script(self, script: str, roots: Dict[str, Any], context: Any) -> bool:
        if self.script_engine is None:
            logger.warning(f"No script engine configured; rejecting '{script}'")
            return False
        return await self.script_engine.validate_rule(script, roots.get("character"), context)
