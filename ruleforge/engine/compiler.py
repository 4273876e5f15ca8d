"""
Function Definition Compiler
============================
Turns declarative function definitions into invocable operations.

Invocation order is strict:
1. Every precondition is substituted and evaluated; the first false one
   aborts the call before any effect.
2. Effects are applied one by one in declaration order. A failed effect is
   recorded and the rest still run (no rollback).
3. An InvocationResult with a narrative summary is returned.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Type, Union

from pydantic import ValidationError

from ruleforge.engine.accessors import type_adapter
from ruleforge.engine.effects import EffectApplier
from ruleforge.engine.preconditions import PreconditionEvaluator, UnrecognizedPolicy
from ruleforge.engine.templates import substitute_placeholders
from ruleforge.errors import DefinitionError
from ruleforge.models.game_state import phase_key
from ruleforge.models.results import EffectOutcome, InvocationResult
from ruleforge.models.ruleset import FunctionDefinition, RulesetDocument

logger = logging.getLogger(__name__)


PARAMETER_TYPES: Dict[str, Type[Any]] = {
    "string": str,
    "int": int,
    "bool": bool,
    "boolean": bool,
    "double": float,
    "float": float,
    "object": dict,
    "array": list,
}

_JSON_TYPES = {
    str: "string",
    int: "integer",
    bool: "boolean",
    float: "number",
    dict: "object",
    list: "array",
}


def parameter_type(type_name: Optional[str]) -> Type[Any]:
    """Map a ruleset type tag to a Python type; unknown tags are strings."""
    return PARAMETER_TYPES.get((type_name or "").strip().lower(), str)


@dataclass(frozen=True)
class CompiledParameter:
    name: str
    python_type: Type[Any]
    required: bool = False
    description: str = ""

    @property
    def json_type(self) -> str:
        return _JSON_TYPES.get(self.python_type, "string")

    def coerce(self, value: Any) -> Any:
        if value is None or isinstance(value, self.python_type):
            return value
        if self.python_type is str:
            return str(value)
        try:
            return type_adapter(self.python_type).validate_python(value)
        except ValidationError:
            logger.warning(
                f"Argument '{self.name}'={value!r} is not a valid {self.python_type.__name__}; passing it through"
            )
            return value


@dataclass(frozen=True)
class CompiledFunction:
    """
    An invocable operation compiled from a FunctionDefinition.
    Stateless until invoked; `invoke` is the only side-effecting step.
    """

    definition: FunctionDefinition
    parameters: Tuple[CompiledParameter, ...]
    evaluator: PreconditionEvaluator = field(repr=False, compare=False)
    applier: EffectApplier = field(repr=False, compare=False)

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def description(self) -> str:
        return self.definition.description

    def bind_arguments(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """Coerce supplied arguments to their declared types. Extra arguments pass through."""
        bound = dict(arguments)
        for param in self.parameters:
            if param.name in bound:
                bound[param.name] = param.coerce(bound[param.name])
        return bound

    async def invoke(
        self,
        arguments: Optional[Dict[str, Any]] = None,
        *,
        character: Any = None,
        game_state: Any = None,
    ) -> InvocationResult:
        """
        Run the function against live state.

        Args:
            arguments: Values for the function's parameters
            character: Root object for `character.` paths
            game_state: Root object for `gameState.` paths
        """
        args = self.bind_arguments(arguments or {})
        roots = {"character": character, "gameState": game_state}
        context = {"gameState": game_state, "args": args}
        logger.debug(f"Executing function: {self.name}")

        for validation in self.definition.rule_validations:
            processed = substitute_placeholders(validation, args)
            if not await self.evaluator.evaluate(processed, roots, context):
                logger.info(f"Validation FAILED for {self.name}: {processed}")
                return InvocationResult(
                    function_name=self.name,
                    success=False,
                    narrative=f"Rule validation failed: {processed}",
                    failed_precondition=processed,
                )

        outcomes: List[EffectOutcome] = []
        for effect in self.definition.effects:
            outcomes.append(await self.applier.apply(effect, args, roots))

        result = InvocationResult(
            function_name=self.name,
            success=True,
            narrative=self._narrate(outcomes),
            effects=outcomes,
        )
        logger.debug(f"Function execution completed: {result.narrative}")
        return result

    def _narrate(self, outcomes: List[EffectOutcome]) -> str:
        if not outcomes:
            return f"Function {self.name} executed successfully. No effects."
        parts = [o.description if o.ok else f"Effect failed: {o.description}" for o in outcomes]
        return f"Function {self.name} executed successfully. Effects: {', '.join(parts)}"

    def tool_schema(self) -> Dict[str, Any]:
        """JSON-schema function description for LLM tool-calling hosts."""
        properties = {}
        for param in self.parameters:
            prop: Dict[str, Any] = {"type": param.json_type}
            if param.description:
                prop["description"] = param.description
            properties[param.name] = prop

        required = [p.name for p in self.parameters if p.required]

        parameters_schema: Dict[str, Any] = {"type": "object"}
        if properties:
            parameters_schema["properties"] = properties
        if required:
            parameters_schema["required"] = required

        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": parameters_schema,
            },
        }


class FunctionCompiler:
    """
    Compiles function definitions. Compiling is pure: the same definition
    always yields an operation with the same observable behavior.
    """

    def __init__(
        self,
        script_engine=None,
        entity_service=None,
        unrecognized_policy: Union[UnrecognizedPolicy, str] = UnrecognizedPolicy.ALLOW,
    ):
        self.evaluator = PreconditionEvaluator(script_engine, UnrecognizedPolicy(unrecognized_policy))
        self.applier = EffectApplier(entity_service)

    def compile(
        self,
        definition: Union[FunctionDefinition, Dict[str, Any]],
        phase: str = "",
        index: int = 0,
    ) -> Optional[CompiledFunction]:
        """
        Compile one definition. A malformed raw definition is logged with its
        cause and yields None.
        """
        try:
            definition = parse_definition(phase, index, definition)
        except DefinitionError as e:
            logger.error(str(e))
            return None
        parameters = tuple(
            CompiledParameter(
                name=p.name,
                python_type=parameter_type(p.type),
                required=p.required,
                description=p.description,
            )
            for p in definition.parameters
        )
        return CompiledFunction(
            definition=definition,
            parameters=parameters,
            evaluator=self.evaluator,
            applier=self.applier,
        )

    def compile_functions_for_phase(self, ruleset: RulesetDocument, phase: Any) -> List[CompiledFunction]:
        """
        Compile every definition of a phase. Malformed definitions and
        duplicate names are skipped with a logged cause.
        """
        key = phase_key(phase)
        raw_definitions = ruleset.phase_definitions(key)
        logger.debug(f"Found {len(raw_definitions)} function definitions for phase {key}")

        functions: List[CompiledFunction] = []
        seen = set()
        for index, raw in enumerate(raw_definitions):
            try:
                definition = parse_definition(key, index, raw)
            except DefinitionError as e:
                logger.error(str(e))
                continue

            if definition.name in seen:
                logger.warning(f"Duplicate function '{definition.name}' in phase '{key}' skipped")
                continue
            seen.add(definition.name)

            functions.append(self.compile(definition))
            logger.debug(f"Successfully created function: {definition.name}")

        logger.info(f"Generated {len(functions)} functions for phase {key}")
        return functions


def parse_definition(phase: str, index: int, raw: Any) -> FunctionDefinition:
    if isinstance(raw, FunctionDefinition):
        return raw
    if not isinstance(raw, dict):
        raise DefinitionError(phase, index, f"expected an object, got {type(raw).__name__}")
    try:
        return FunctionDefinition.model_validate(raw)
    except ValidationError as e:
        name = raw.get("name") if isinstance(raw.get("name"), str) else None
        raise DefinitionError(phase, index, str(e), name=name) from e
