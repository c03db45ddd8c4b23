# booking_engine/services/constraints/catalog.py
"""
Rule catalog: the set of rules one validation runs with.

Rules are data. Each industry has a list of rule definitions (stored in
constraint_rules, with DEFAULT_INDUSTRY_RULES as the built-in registry) and
each tenant may override parameters, priority, severity or enablement. A
RuleCatalog is an immutable value built per call and handed to the
validator; there is no process-wide rule table.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
import logging
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from sqlalchemy.orm import Session

from ...core.enums import IndustryType, OperationType, RuleFamily
from ...repositories.factory import RepositoryFactory

if TYPE_CHECKING:
    from ...models.constraint import ConstraintRule, TenantConstraintOverride
    from ...models.resource import BookableResource
    from ...models.tenant import Tenant

logger = logging.getLogger(__name__)

BOOKING_OPERATIONS = (OperationType.CREATE.value, OperationType.RESCHEDULE.value)


@dataclass(frozen=True)
class RuleDefinition:
    """One evaluated rule with tenant overrides already applied."""

    name: str
    family: str
    evaluator: str
    parameters: Mapping[str, Any] = field(default_factory=dict)
    priority: int = 5
    mandatory: bool = True
    applies_to: FrozenSet[str] = frozenset(BOOKING_OPERATIONS)
    description: Optional[str] = None

    def applies(self, operation_type: str) -> bool:
        return operation_type in self.applies_to

    def param(self, key: str, default: Any = None) -> Any:
        value = self.parameters.get(key, default)
        return default if value is None else value


def _rule(
    name: str,
    family: RuleFamily,
    evaluator: str,
    priority: int,
    *,
    mandatory: bool = True,
    parameters: Optional[Dict[str, Any]] = None,
    applies_to: Iterable[str] = BOOKING_OPERATIONS,
    description: Optional[str] = None,
) -> Dict[str, Any]:
    """Registry entry shaped like a constraint_rules row."""
    return {
        "name": name,
        "rule_family": family.value,
        "evaluator": evaluator,
        "priority": priority,
        "is_mandatory": mandatory,
        "parameters": dict(parameters or {}),
        "applies_to": sorted(applies_to),
        "description": description,
    }


def _common_rules(
    *,
    capacity_rule: str = "resource_capacity",
    free_cancellation_hours: int = 24,
    fee_structure: str = "none",
    fee_amount: float = 0.0,
    fee_percentage: float = 0.0,
    max_advance_days: int = 90,
    last_seating_minutes: Optional[int] = None,
) -> List[Dict[str, Any]]:
    return [
        _rule(
            "resource_availability",
            RuleFamily.AVAILABILITY,
            "resource_state",
            1,
            description="Target resource exists, is active and reservable",
        ),
        _rule(
            "time_slot_availability",
            RuleFamily.AVAILABILITY,
            "booking_conflict",
            1,
            # None: use the resource's own buffer
            parameters={"buffer_minutes": None},
            description="No overlap with another active booking (buffer-expanded)",
        ),
        _rule(
            "resource_working_hours",
            RuleFamily.AVAILABILITY,
            "working_window",
            2,
            description="Resource works the requested date and time, outside breaks",
        ),
        _rule(
            "operating_hours",
            RuleFamily.TIMING,
            "operating_hours",
            2,
            parameters={
                "include_buffer": False,
                "last_seating_minutes_before_close": last_seating_minutes,
            },
            description="Booking fits inside the business's opening hours",
        ),
        _rule(
            "time_range",
            RuleFamily.TIMING,
            "time_range",
            3,
            parameters={"min_duration_minutes": 15, "max_duration_minutes": 480},
        ),
        _rule(
            "advance_booking_window",
            RuleFamily.TIMING,
            "advance_window",
            3,
            parameters={"min_lead_minutes": 0, "max_advance_days": max_advance_days},
        ),
        _rule(
            capacity_rule,
            RuleFamily.CAPACITY,
            "capacity",
            1,
            description="Party size within the resource's capacity bounds",
        ),
        _rule("daily_assignment_cap", RuleFamily.CAPACITY, "concurrency_cap", 2),
        _rule(
            "cancellation_policy",
            RuleFamily.POLICY,
            "cancellation_notice",
            4,
            mandatory=False,
            parameters={
                "free_cancellation_hours": free_cancellation_hours,
                "fee_structure": fee_structure,
                "fee_amount": fee_amount,
                "fee_percentage": fee_percentage,
            },
            applies_to=[OperationType.CANCEL.value],
        ),
        _rule(
            "no_show_policy",
            RuleFamily.POLICY,
            "no_show_notice",
            4,
            mandatory=False,
            parameters={
                "grace_period_minutes": 15,
                "fee_structure": "none",
                "fee_amount": 0,
                "fee_percentage": 0,
            },
            applies_to=[OperationType.NO_SHOW.value],
        ),
        _rule(
            "reschedule_policy",
            RuleFamily.POLICY,
            "reschedule_notice",
            4,
            parameters={"allowed_until_hours": 24, "max_reschedules": 3, "same_day_allowed": True},
            applies_to=[OperationType.RESCHEDULE.value],
        ),
    ]


def _restaurant_rules() -> List[Dict[str, Any]]:
    return _common_rules(
        capacity_rule="table_capacity",
        free_cancellation_hours=2,
        max_advance_days=14,
        last_seating_minutes=60,
    ) + [
        _rule(
            "restaurant_policy",
            RuleFamily.CAPACITY,
            "venue_ceiling",
            1,
            parameters={"max_party_size": 12},
            description="Large parties are arranged directly with the restaurant",
        ),
        _rule(
            "table_efficiency",
            RuleFamily.CAPACITY,
            "utilization",
            8,
            mandatory=False,
            parameters={"min_utilization": 0.5},
        ),
        _rule(
            "restaurant_hours",
            RuleFamily.TIMING,
            "hour_advisory",
            9,
            mandatory=False,
            parameters={
                "start_hour": 14,
                "end_hour": 17,
                "violation_type": "afternoon_booking",
                "message": "Afternoon service between 14:00 and 17:00 runs a limited menu",
            },
        ),
    ]


def _salon_rules() -> List[Dict[str, Any]]:
    return _common_rules(fee_structure="percentage", fee_percentage=50.0) + [
        _rule(
            "working_days",
            RuleFamily.TIMING,
            "weekday_advisory",
            9,
            mandatory=False,
            parameters={
                "weekdays": [6],
                "violation_type": "sunday_booking",
                "message": "Sunday appointments are subject to limited staff availability",
            },
        ),
    ]


DEFAULT_INDUSTRY_RULES: Dict[str, List[Dict[str, Any]]] = {
    industry.value: _common_rules() for industry in IndustryType
}
DEFAULT_INDUSTRY_RULES[IndustryType.RESTAURANT.value] = _restaurant_rules()
DEFAULT_INDUSTRY_RULES[IndustryType.SALON.value] = _salon_rules()


def definition_from_row(row: Mapping[str, Any]) -> RuleDefinition:
    return RuleDefinition(
        name=row["name"],
        family=row["rule_family"],
        evaluator=row["evaluator"],
        parameters=MappingProxyType(dict(row.get("parameters") or {})),
        priority=int(row.get("priority") or 5),
        mandatory=bool(row.get("is_mandatory", True)),
        applies_to=frozenset(row.get("applies_to") or BOOKING_OPERATIONS),
        description=row.get("description"),
    )


@dataclass(frozen=True)
class RuleCatalog:
    """Immutable set of rules for one tenant's industry."""

    industry_type: str
    rules: Tuple[RuleDefinition, ...] = ()
    source: str = "defaults"  # "defaults" | "store"

    @classmethod
    def defaults_for(cls, industry_type: str) -> "RuleCatalog":
        rows = DEFAULT_INDUSTRY_RULES.get(industry_type) or _common_rules()
        return cls(industry_type, tuple(definition_from_row(row) for row in rows))

    @classmethod
    def from_rows(
        cls,
        industry_type: str,
        rules: Iterable["ConstraintRule"],
        overrides: Iterable["TenantConstraintOverride"] = (),
    ) -> "RuleCatalog":
        """Merge stored rules with tenant overrides; disabled rules are dropped."""
        overrides_by_rule = {override.constraint_id: override for override in overrides}
        definitions: List[RuleDefinition] = []
        for row in rules:
            if not row.is_active:
                continue
            definition = definition_from_row(
                {
                    "name": row.name,
                    "rule_family": row.rule_family,
                    "evaluator": row.evaluator,
                    "parameters": row.parameters,
                    "priority": row.priority,
                    "is_mandatory": row.is_mandatory,
                    "applies_to": row.applies_to,
                    "description": row.description,
                }
            )
            override = overrides_by_rule.get(row.id)
            if override is not None:
                if not override.is_enabled:
                    continue
                definition = replace(
                    definition,
                    parameters=MappingProxyType(override.merged_parameters(dict(definition.parameters))),
                    priority=override.custom_priority or definition.priority,
                    mandatory=(
                        definition.mandatory
                        if override.custom_mandatory is None
                        else bool(override.custom_mandatory)
                    ),
                )
            definitions.append(definition)
        return cls(industry_type, tuple(definitions), source="store")

    def get(self, name: str) -> Optional[RuleDefinition]:
        return next((rule for rule in self.rules if rule.name == name), None)

    def rules_for(self, operation_type: str) -> List[RuleDefinition]:
        return [rule for rule in self.rules if rule.applies(operation_type)]

    def with_override(self, name: str, **changes: Any) -> "RuleCatalog":
        """
        Copy of the catalog with one rule changed.

        ``parameters`` is merged over the existing ones; ``enabled=False``
        removes the rule.
        """
        rules: List[RuleDefinition] = []
        for rule in self.rules:
            if rule.name != name:
                rules.append(rule)
                continue
            if changes.get("enabled", True) is False:
                continue
            params = dict(rule.parameters)
            params.update(changes.get("parameters") or {})
            updates = {k: v for k, v in changes.items() if k not in {"parameters", "enabled"}}
            rules.append(replace(rule, parameters=MappingProxyType(params), **updates))
        return replace(self, rules=tuple(rules))

    def buffer_minutes_for(self, resource: "BookableResource") -> int:
        """Effective buffer: the conflict rule's parameter, else the resource's own."""
        rule = self.get("time_slot_availability")
        if rule is not None and rule.parameters.get("buffer_minutes") is not None:
            return int(rule.parameters["buffer_minutes"])
        return int(resource.buffer_minutes or 0)


def load_rule_catalog(db: Session, tenant: "Tenant") -> RuleCatalog:
    """
    Build the catalog for a tenant from the rule store.

    Falls back to the built-in registry when no rules are stored for the
    tenant's industry.
    """
    repository = RepositoryFactory.create_constraint_repository(db)
    industry = tenant.industry_type
    rows = repository.list_rules_for_industry(industry)
    if not rows:
        logger.debug("No stored rules for %s, using built-in registry", industry)
        return RuleCatalog.defaults_for(industry)
    overrides = repository.list_overrides_for_tenant(tenant.id)
    return RuleCatalog.from_rows(industry, rows, overrides)
