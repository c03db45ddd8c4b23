# booking_engine/services/constraints/validator.py
"""
Constraint Validator.

Runs every applicable rule of a RuleCatalog against one operation and splits
the findings into mandatory violations and warnings. Rule order does not
affect the outcome; findings are reported most severe first. Business
outcomes are returned as a ValidationResult, never raised.
"""

import logging
import time
from typing import List, Optional

from sqlalchemy.orm import Session

from ...core.timezone_utils import get_tenant_now
from ...monitoring.prometheus_metrics import prometheus_metrics
from ...repositories.factory import RepositoryFactory
from ...schemas.validation import ValidationResult, Violation
from ..base import BaseService
from ..resource_matcher import ResourceMatcher
from ..schedule_service import ScheduleService
from ..slot_generator import SlotGenerator
from .catalog import RuleCatalog, RuleDefinition
from .context import ValidationContext, ValidationOperation
from .rules import BOOKING_STATUS_RULE, RuleConfigurationError, finding, get_evaluator

logger = logging.getLogger(__name__)


def _report_order(violation: Violation) -> tuple:
    return (violation.priority, violation.constraint_name, violation.violation_type)


class ConstraintValidator(BaseService):
    """Evaluates booking requests and lifecycle mutations against a rule catalog."""

    def __init__(
        self,
        db: Session,
        schedule_service: Optional[ScheduleService] = None,
        slot_generator: Optional[SlotGenerator] = None,
        resource_matcher: Optional[ResourceMatcher] = None,
    ):
        super().__init__(db)
        self.schedule_service = schedule_service or ScheduleService(db)
        self.slot_generator = slot_generator or SlotGenerator(db, self.schedule_service)
        self.resource_matcher = resource_matcher or ResourceMatcher(
            db, self.schedule_service, self.slot_generator
        )
        self.resource_repository = RepositoryFactory.create_resource_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)

    @BaseService.measure_operation("validate")
    def validate(self, operation: ValidationOperation, catalog: RuleCatalog) -> ValidationResult:
        """
        Validate an operation.

        Args:
            operation: New request or mutation of an existing booking
            catalog: Rules for the tenant, overrides already applied

        Returns:
            ValidationResult; is_valid iff no mandatory violation
        """
        started = time.perf_counter()
        ctx = self.build_context(operation, catalog)

        rules: List[RuleDefinition] = catalog.rules_for(operation.operation_type.value)
        if operation.booking is not None and BOOKING_STATUS_RULE.applies(
            operation.operation_type.value
        ):
            rules = [BOOKING_STATUS_RULE, *rules]

        violations: List[Violation] = []
        warnings: List[Violation] = []
        for rule in rules:
            for item in self._evaluate(ctx, rule):
                (violations if item.mandatory else warnings).append(item)
                prometheus_metrics.record_constraint_finding(
                    item.constraint_name, item.violation_type, item.mandatory
                )

        violations.sort(key=_report_order)
        warnings.sort(key=_report_order)

        is_valid = not violations

        result = ValidationResult(
            is_valid=is_valid,
            violations=violations,
            warnings=warnings,
            constraints_checked=len(rules),
            processing_time_ms=round((time.perf_counter() - started) * 1000, 3),
            failure_type=None if is_valid else "validation",
            resource_id=ctx.resource.id if ctx.resource is not None else None,
        )
        self.log_operation(
            "validate",
            operation_type=operation.operation_type.value,
            tenant_id=operation.tenant.id,
            resource_id=result.resource_id,
            is_valid=is_valid,
            violations=len(violations),
            warnings=len(warnings),
        )
        return result

    def build_context(self, operation: ValidationOperation, catalog: RuleCatalog) -> ValidationContext:
        """Load everything the rules need for this operation."""
        ctx = ValidationContext(
            operation=operation, catalog=catalog, now=get_tenant_now(operation.tenant)
        )
        window = operation.window
        if not operation.is_booking_write or window is None:
            return ctx

        if operation.resource_id:
            ctx.resource = self.resource_repository.get_for_tenant(
                operation.tenant.id, operation.resource_id
            )
        else:
            ctx.match = self.resource_matcher.match_resources(
                operation.tenant.id,
                operation.request_type,
                window,
                operation.capability_tags,
                preferred_resource_id=operation.preferred_resource_id,
                catalog=catalog,
            )
            if ctx.match.best is not None:
                ctx.resource = self.resource_repository.get_by_id(ctx.match.best.resource_id)

        resource = ctx.resource
        if resource is None:
            return ctx

        exclude_id = operation.booking.id if operation.booking is not None else None
        day = window.start.date()
        ctx.buffer_minutes = catalog.buffer_minutes_for(resource)
        ctx.has_schedule = self.schedule_service.has_schedule(resource)
        ctx.working = self.schedule_service.working_window(resource, day)
        ctx.conflicts = self.slot_generator.conflicting_bookings(
            resource.id, window, ctx.buffer_minutes, exclude_booking_id=exclude_id
        )
        ctx.day_assignment_count = self.booking_repository.count_active_on_day(
            resource.id, day, exclude_booking_id=exclude_id
        )
        return ctx

    def _evaluate(self, ctx: ValidationContext, rule: RuleDefinition) -> List[Violation]:
        evaluator = get_evaluator(rule.evaluator)
        if evaluator is None:
            self.logger.warning(f"Rule {rule.name} references unknown evaluator {rule.evaluator}")
            return [
                finding(
                    rule,
                    "rule_not_configured",
                    f"Rule '{rule.name}' could not be evaluated",
                    mandatory=False,
                )
            ]
        try:
            return evaluator(ctx, rule)
        except RuleConfigurationError as exc:
            self.logger.warning(f"Rule {rule.name} skipped: {exc}")
            return [finding(rule, "rule_not_configured", str(exc), mandatory=False)]
