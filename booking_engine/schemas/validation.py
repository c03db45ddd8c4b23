# booking_engine/schemas/validation.py
"""
ValidationResult: the only shape used to reject an operation.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import Field

from ._strict_base import StrictModel


class FinancialImpact(StrictModel):
    """Fee annotation attached to a policy violation (never charged here)."""

    type: Literal["fee", "none"] = "fee"
    amount: float = Field(0.0, ge=0)
    reason: str


class Violation(StrictModel):
    constraint_name: str
    violation_type: str
    message: str
    priority: int = Field(5, ge=1, le=10)
    mandatory: bool = True
    suggested_action: Optional[str] = None
    financial_impact: Optional[FinancialImpact] = None


FailureType = Literal["validation", "conflict", "error"]


class ValidationResult(StrictModel):
    """
    Outcome of validating one operation.

    is_valid is true iff violations is empty; every entry there is mandatory.
    Non-mandatory findings, including fee annotations such as a late
    cancellation, are reported under warnings.
    """

    is_valid: bool
    violations: List[Violation] = Field(default_factory=list)
    warnings: List[Violation] = Field(default_factory=list)
    constraints_checked: int = 0
    processing_time_ms: float = 0.0
    failure_type: Optional[FailureType] = None
    # Resource chosen by the matcher when the request did not name one
    resource_id: Optional[str] = None

    @property
    def mandatory_violations(self) -> List[Violation]:
        return [v for v in self.violations if v.mandatory]

    @property
    def violation_types(self) -> List[str]:
        return [v.violation_type for v in self.violations]

    @property
    def financial_impact(self) -> Optional[FinancialImpact]:
        for finding in [*self.violations, *self.warnings]:
            if finding.financial_impact is not None:
                return finding.financial_impact
        return None

    def to_audit(self) -> Dict[str, Any]:
        return {
            "violations": [v.model_dump(mode="json") for v in self.violations],
            "warnings": [w.model_dump(mode="json") for w in self.warnings],
        }
