"""Constraint evaluation: rule catalog, evaluators and the validator."""

from .catalog import DEFAULT_INDUSTRY_RULES, RuleCatalog, RuleDefinition, load_rule_catalog
from .context import ValidationContext, ValidationOperation
from .validator import ConstraintValidator

__all__ = [
    "DEFAULT_INDUSTRY_RULES",
    "ConstraintValidator",
    "RuleCatalog",
    "RuleDefinition",
    "ValidationContext",
    "ValidationOperation",
    "load_rule_catalog",
]
