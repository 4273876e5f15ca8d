"""
Ruleset Validation
==================
Structural lint for ruleset documents, run before a ruleset is shipped or
activated.

Errors make a ruleset unusable (or make functions silently disappear);
warnings point at things that will probably misbehave at play time.

Checks:
1.  **Metadata:** document parses and has an id.
2.  **Definitions:** each function definition parses; names are unique per phase.
3.  **Effects:** known operations; targets rooted at character/gameState.
4.  **Placeholders:** every {{name}} refers to a declared parameter.
5.  **Preconditions:** grammar coverage; script preconditions pass the safety gate.
"""

import logging
from typing import Any, Dict, List, Set, Union

from pydantic import BaseModel, Field, ValidationError

from ruleforge.engine.compiler import parse_definition
from ruleforge.engine.effects import KNOWN_OPERATIONS, normalize_operation, split_target
from ruleforge.engine.preconditions import SCRIPT_PREFIX, Unrecognized, parse_precondition
from ruleforge.engine.templates import placeholder_names
from ruleforge.errors import DefinitionError
from ruleforge.models.ruleset import FunctionDefinition, RulesetDocument
from ruleforge.sandbox.script_engine import is_safe_script

logger = logging.getLogger(__name__)


class RulesetValidationResult(BaseModel):
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def summary(self) -> str:
        if self.is_valid:
            return "Validation passed" + (f" with {len(self.warnings)} warnings" if self.warnings else "")
        return f"{len(self.errors)} errors, {len(self.warnings)} warnings"


def validate_ruleset(ruleset: Union[RulesetDocument, Dict[str, Any]]) -> RulesetValidationResult:
    result = RulesetValidationResult()

    if not isinstance(ruleset, RulesetDocument):
        try:
            ruleset = RulesetDocument.model_validate(ruleset)
        except ValidationError as e:
            result.errors.append(f"Invalid ruleset document: {e}")
            return result

    if ruleset.game_state_schema is None:
        result.warnings.append("No gameStateSchema declared; game state will not be seeded")

    for phase, raw_definitions in ruleset.function_definitions.items():
        seen: Set[str] = set()
        for index, raw in enumerate(raw_definitions):
            try:
                definition = parse_definition(phase, index, raw)
            except DefinitionError as e:
                result.errors.append(str(e))
                continue

            if definition.name in seen:
                result.errors.append(f"Duplicate function '{definition.name}' in phase '{phase}'")
                continue
            seen.add(definition.name)

            _check_definition(phase, definition, result)

    logger.info(f"Ruleset '{ruleset.id}' validation: {result.summary}")
    return result


def _check_definition(phase: str, definition: FunctionDefinition, result: RulesetValidationResult):
    label = f"{phase}/{definition.name}"
    declared = {p.name for p in definition.parameters}

    for expression in definition.rule_validations:
        for name in placeholder_names(expression) - declared:
            result.warnings.append(f"{label}: precondition uses undeclared parameter '{name}'")

        stripped = expression.strip()
        if stripped.lower().startswith(SCRIPT_PREFIX):
            if not is_safe_script(stripped[len(SCRIPT_PREFIX):]):
                result.errors.append(f"{label}: script precondition is unsafe: {stripped}")
        elif isinstance(parse_precondition(stripped), Unrecognized):
            # Parsed with placeholders still in place; a placeholder standing in
            # for a number or key is expected to parse once substituted.
            if not placeholder_names(stripped):
                result.warnings.append(f"{label}: precondition outside the built-in grammar: {stripped}")

    for effect in definition.effects:
        if normalize_operation(effect.operation) not in KNOWN_OPERATIONS:
            result.errors.append(f"{label}: unknown operation '{effect.operation}'")

        root, _ = split_target(effect.target)
        if root is None:
            result.errors.append(f"{label}: unsupported target path '{effect.target}'")

        used = placeholder_names(effect.target) | placeholder_names(effect.value)
        for name in used - declared:
            result.warnings.append(f"{label}: effect uses undeclared parameter '{name}'")
