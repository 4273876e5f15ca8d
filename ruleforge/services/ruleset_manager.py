"""
Ruleset Manager
===============
Owns the active ruleset and the per-phase cache of compiled functions.

All swaps and cache reads go through one asyncio.Lock held by the manager
instance, so concurrent tasks never observe a half-swapped ruleset.
"""

import asyncio
import logging
from collections.abc import MutableMapping
from typing import Any, Dict, List, Optional, Union

from ruleforge.engine.compiler import CompiledFunction, FunctionCompiler
from ruleforge.errors import RulesetLoadError
from ruleforge.models.game_state import GamePhase, GameState, phase_key
from ruleforge.models.ruleset import RulesetDocument, RulesetInfo

logger = logging.getLogger(__name__)

Phase = Union[GamePhase, str]


def _bullet_list(values: Dict[str, Any]) -> str:
    lines = []
    for key, value in values.items():
        if value is None or isinstance(value, (dict, list)):
            continue
        text = str(value).strip()
        if text:
            lines.append(f"• {key}: {text}")
    return "\n".join(lines)


def _find_state_data(state: Any) -> Optional[MutableMapping]:
    """The collection map of a GameState or of a plain dict state, or None when absent."""
    if isinstance(state, GameState):
        return state.ruleset_game_data
    if isinstance(state, MutableMapping):
        for key in ("ruleset_game_data", "rulesetGameData"):
            if isinstance(state.get(key), MutableMapping):
                return state[key]
        return None
    raise TypeError(f"Unsupported game state type: {type(state).__name__}")


def _state_data(state: Any) -> MutableMapping:
    """Like _find_state_data, but creates the map on a dict state that lacks one."""
    data = _find_state_data(state)
    if data is None:
        data = state["ruleset_game_data"] = {}
    return data


def _set_state_ruleset_id(state: Any, ruleset_id: str):
    if isinstance(state, GameState):
        state.active_ruleset_id = ruleset_id
    else:
        key = "activeRulesetId" if "activeRulesetId" in state else "active_ruleset_id"
        state[key] = ruleset_id


class RulesetManager:
    """
    Args:
        repository: Loads documents by id (see RulesetRepository).
        compiler: Compiles phase function definitions.
    """

    def __init__(self, repository, compiler: Optional[FunctionCompiler] = None):
        self.repository = repository
        self.compiler = compiler or FunctionCompiler()
        self._active_ruleset: Optional[RulesetDocument] = None
        self._active_ruleset_id: Optional[str] = None
        self._cached_functions: Dict[str, List[CompiledFunction]] = {}
        self._lock = asyncio.Lock()

    # =========================================================================
    # ACTIVATION
    # =========================================================================

    @property
    def active_ruleset_id(self) -> Optional[str]:
        return self._active_ruleset_id

    def get_active_ruleset(self) -> Optional[RulesetDocument]:
        return self._active_ruleset

    async def set_active_ruleset(self, ruleset_id: str):
        """
        Load and activate a ruleset. Activating the current id does nothing.

        Raises:
            RulesetLoadError: the ruleset could not be loaded. The previously
                active ruleset and its cache stay in place.
        """
        async with self._lock:
            if ruleset_id == self._active_ruleset_id:
                logger.debug(f"Ruleset '{ruleset_id}' already active")
                return

            try:
                document = self.repository.load(ruleset_id)
                if asyncio.iscoroutine(document):
                    document = await document
            except RulesetLoadError:
                logger.error(f"Failed to activate ruleset '{ruleset_id}'")
                raise
            except Exception as e:
                logger.error(f"Failed to activate ruleset '{ruleset_id}': {e}")
                raise RulesetLoadError(ruleset_id, str(e)) from e

            self._swap(document, ruleset_id)

    async def set_active_ruleset_from_document(self, document: RulesetDocument, ruleset_id: Optional[str] = None):
        """Activate an already parsed document. The id defaults to metadata.id."""
        if not isinstance(document, RulesetDocument):
            document = RulesetDocument.model_validate(document)
        async with self._lock:
            ruleset_id = ruleset_id or document.id
            if ruleset_id == self._active_ruleset_id and document is self._active_ruleset:
                return
            self._swap(document, ruleset_id)

    def _swap(self, document: RulesetDocument, ruleset_id: str):
        self._active_ruleset = document
        self._active_ruleset_id = ruleset_id
        self._cached_functions.clear()
        logger.info(f"Active ruleset set to '{ruleset_id}'")

    # =========================================================================
    # PHASE FUNCTIONS
    # =========================================================================

    async def get_phase_functions(self, phase: Phase) -> List[CompiledFunction]:
        """Compiled functions for a phase, compiled on first request and cached."""
        key = phase_key(phase)
        async with self._lock:
            if self._active_ruleset is None:
                return []
            cached = self._cached_functions.get(key)
            if cached is not None:
                return list(cached)

            functions = self.compiler.compile_functions_for_phase(self._active_ruleset, key)
            self._cached_functions[key] = functions
            return list(functions)

    async def get_phase_function(self, phase: Phase, name: str) -> Optional[CompiledFunction]:
        for function in await self.get_phase_functions(phase):
            if function.name == name:
                return function
        return None

    # =========================================================================
    # GAME STATE
    # =========================================================================

    def initialize_state_from_ruleset(self, state: Any, ruleset: Optional[RulesetDocument] = None):
        """
        Record the ruleset id on the state and seed every declared collection
        that is missing with an empty list. Existing collections are kept.
        """
        ruleset = ruleset or self._active_ruleset
        if ruleset is None or ruleset.game_state_schema is None:
            return

        _set_state_ruleset_id(state, ruleset.id or "unknown")
        data = _state_data(state)
        schema = ruleset.game_state_schema
        for name in list(schema.dynamic_collections) + list(schema.required_collections):
            if name and name not in data:
                data[name] = []
                logger.debug(f"Seeded collection '{name}'")

    def validate_state_schema(self, state: Any, ruleset: Optional[RulesetDocument] = None) -> bool:
        ruleset = ruleset or self._active_ruleset
        if ruleset is None or ruleset.game_state_schema is None:
            return True
        data = _find_state_data(state) or {}
        missing = [name for name in ruleset.game_state_schema.required_collections if name and name not in data]
        if missing:
            logger.warning(f"Game state is missing required collections: {', '.join(missing)}")
            return False
        return True

    # =========================================================================
    # RULESET METADATA
    # =========================================================================

    def get_available_rulesets(self) -> List[RulesetInfo]:
        return self.repository.list_available()

    def get_phase_prompt_template(self, phase: Phase) -> str:
        template = self._active_ruleset.prompt_template(phase_key(phase)) if self._active_ruleset else None
        return template.system_prompt if template else ""

    def get_phase_objective_template(self, phase: Phase) -> str:
        template = self._active_ruleset.prompt_template(phase_key(phase)) if self._active_ruleset else None
        return template.phase_objective if template else ""

    def get_phase_context_elements(self, phase: Phase) -> List[str]:
        template = self._active_ruleset.prompt_template(phase_key(phase)) if self._active_ruleset else None
        return list(template.context_elements) if template else []

    def get_setting_requirements(self) -> str:
        if self._active_ruleset is None:
            return ""
        return _bullet_list(self._active_ruleset.setting_requirements)

    def get_storytelling_directive(self) -> str:
        if self._active_ruleset is None:
            return ""
        return _bullet_list(self._active_ruleset.storytelling_directive)
