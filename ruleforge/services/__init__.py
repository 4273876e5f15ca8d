from ruleforge.services.entity_service import EntityService, InMemoryEntityService
from ruleforge.services.ruleset_manager import RulesetManager
from ruleforge.services.ruleset_validator import RulesetValidationResult, validate_ruleset

__all__ = [
    "EntityService",
    "InMemoryEntityService",
    "RulesetManager",
    "RulesetValidationResult",
    "validate_ruleset",
]
