"""
Models for the declarative ruleset document.

The JSON document uses camelCase keys; fields here are snake_case with camel
aliases so both spellings validate.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class RulesetModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class RulesetMetadata(RulesetModel):
    """Identity of a ruleset. Also used as the listing entry for available rulesets."""

    id: str = Field(..., min_length=1, description="Stable identifier, e.g. 'pokemon-adventure'")
    name: str = Field("", description="Display name")
    version: str = ""
    description: str = ""
    authors: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)


class GameStateSchema(RulesetModel):
    required_collections: List[str] = Field(
        default_factory=list,
        description="Collections that must exist in the game state before play starts.",
    )
    dynamic_collections: Dict[str, Any] = Field(
        default_factory=dict,
        description="Collections seeded on state creation; values describe their contents.",
    )


class ParameterSpec(RulesetModel):
    name: str = Field(..., min_length=1)
    type: str = Field("string", description="string, int, bool, double, object or array")
    required: bool = False
    description: str = ""


class EffectSpec(RulesetModel):
    target: str = Field(
        ...,
        min_length=1,
        description="Dotted path rooted at 'character.' or 'gameState.', e.g. 'character.inventory[potion]'",
    )
    operation: str = Field(..., description="set, add, subtract, add-entity or remove-entity")
    value: Any = Field(None, description="Literal, or a string with {{argName}} placeholders")


class FunctionDefinition(RulesetModel):
    """A named, parameterized mechanical action with preconditions and effects."""

    id: str = ""
    name: str = Field(..., min_length=1)
    description: str = ""
    parameters: List[ParameterSpec] = Field(default_factory=list)
    rule_validations: List[str] = Field(
        default_factory=list,
        description="Precondition expressions, evaluated in order before any effect.",
    )
    effects: List[EffectSpec] = Field(default_factory=list)


class PromptTemplate(RulesetModel):
    system_prompt: str = ""
    phase_objective: str = ""
    context_elements: List[str] = Field(default_factory=list)


class RulesetDocument(RulesetModel):
    """
    Root of a ruleset file.

    Function definitions are stored raw and parsed one at a time by the
    compiler, so a single malformed definition only costs that function.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    metadata: RulesetMetadata
    game_state_schema: Optional[GameStateSchema] = None
    function_definitions: Dict[str, List[Any]] = Field(default_factory=dict)
    prompt_templates: Dict[str, PromptTemplate] = Field(default_factory=dict)
    setting_requirements: Dict[str, Any] = Field(default_factory=dict)
    storytelling_directive: Dict[str, Any] = Field(default_factory=dict)

    @property
    def id(self) -> str:
        return self.metadata.id

    def phase_definitions(self, phase: str) -> List[Any]:
        """Raw definitions for a phase; exact key first, then case-insensitive."""
        if phase in self.function_definitions:
            return self.function_definitions[phase]
        for key, definitions in self.function_definitions.items():
            if key.lower() == phase.lower():
                return definitions
        return []

    def prompt_template(self, phase: str) -> Optional[PromptTemplate]:
        if phase in self.prompt_templates:
            return self.prompt_templates[phase]
        for key, template in self.prompt_templates.items():
            if key.lower() == phase.lower():
                return template
        return None


class RulesetInfo(RulesetModel):
    """Listing entry for an available ruleset."""

    id: str
    name: str = ""
    description: str = ""
    version: str = ""
    tags: List[str] = Field(default_factory=list)

    @classmethod
    def from_metadata(cls, metadata: RulesetMetadata) -> "RulesetInfo":
        return cls(
            id=metadata.id,
            name=metadata.name,
            description=metadata.description,
            version=metadata.version,
            tags=list(metadata.tags),
        )
