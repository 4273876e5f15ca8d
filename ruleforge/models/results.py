from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from ruleforge.errors import PreconditionFailure


class EffectStatus(str, Enum):
    APPLIED = "applied"
    FAILED = "failed"


class EffectOutcome(BaseModel):
    target: str
    operation: str
    status: EffectStatus
    description: str = Field(..., description="What was applied, or why it failed")

    @classmethod
    def applied(cls, target: str, operation: str, description: str) -> "EffectOutcome":
        return cls(target=target, operation=operation, status=EffectStatus.APPLIED, description=description)

    @classmethod
    def failed(cls, target: str, operation: str, reason: str) -> "EffectOutcome":
        return cls(target=target, operation=operation, status=EffectStatus.FAILED, description=reason)

    @property
    def ok(self) -> bool:
        return self.status == EffectStatus.APPLIED


class InvocationResult(BaseModel):
    """
    Outcome of invoking a compiled function.

    `success` reports whether the preconditions passed and effects were
    attempted. Effects are not atomic: inspect `failed_effects` to decide
    whether compensation is needed.
    """

    function_name: str
    success: bool
    narrative: str
    failed_precondition: Optional[str] = None
    effects: List[EffectOutcome] = Field(default_factory=list)

    @property
    def applied_effects(self) -> List[EffectOutcome]:
        return [e for e in self.effects if e.ok]

    @property
    def failed_effects(self) -> List[EffectOutcome]:
        return [e for e in self.effects if not e.ok]

    @property
    def has_failures(self) -> bool:
        return not self.success or bool(self.failed_effects)

    def raise_for_status(self):
        if self.failed_precondition is not None:
            raise PreconditionFailure(self.function_name, self.failed_precondition)
