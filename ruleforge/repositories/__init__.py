from .ruleset_repository import (
    FileRulesetRepository,
    InMemoryRulesetRepository,
    RulesetRepository,
)

__all__ = [
    "FileRulesetRepository",
    "InMemoryRulesetRepository",
    "RulesetRepository",
]
