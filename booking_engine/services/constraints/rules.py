# booking_engine/services/constraints/rules.py
"""
Rule evaluators.

Each evaluator looks at a ValidationContext and returns the findings for one
rule. Severity and priority come from the rule definition, so the same
evaluator can block in one industry and only warn in another. Evaluators
never raise for business outcomes; RuleConfigurationError signals a rule
that cannot be evaluated and is reported as a warning by the validator.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Callable, Dict, List, Optional

from ...core.enums import OperationType, RuleFamily
from ...models.booking import RESCHEDULABLE_STATUSES, BookingStatus, can_transition
from ...models.resource import ResourceStatus
from ...schemas.validation import FinancialImpact, Violation
from ...utils.time_window import TimeWindow, parse_hhmm
from .catalog import RuleDefinition
from .context import ValidationContext

Evaluator = Callable[[ValidationContext, RuleDefinition], List[Violation]]


class RuleConfigurationError(Exception):
    """A rule's parameters are missing or unusable."""


def finding(
    rule: RuleDefinition,
    violation_type: str,
    message: str,
    suggested_action: Optional[str] = None,
    *,
    mandatory: Optional[bool] = None,
    financial_impact: Optional[FinancialImpact] = None,
) -> Violation:
    return Violation(
        constraint_name=rule.name,
        violation_type=violation_type,
        message=message,
        priority=rule.priority,
        mandatory=rule.mandatory if mandatory is None else mandatory,
        suggested_action=suggested_action,
        financial_impact=financial_impact,
    )


def _number_param(rule: RuleDefinition, key: str, *, required: bool = True) -> Optional[float]:
    value = rule.parameters.get(key)
    if value is None:
        if required:
            raise RuleConfigurationError(f"Rule '{rule.name}' is missing parameter '{key}'")
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise RuleConfigurationError(
            f"Rule '{rule.name}' has a non-numeric '{key}': {value!r}"
        ) from exc


def _hhmm(moment) -> str:
    return moment.strftime("%H:%M")


# Availability


def resource_state(ctx: ValidationContext, rule: RuleDefinition) -> List[Violation]:
    resource = ctx.resource
    if resource is None:
        if ctx.match is not None:
            return [
                finding(
                    rule,
                    "no_resource_available",
                    "No resource is available for the requested time",
                    "Please select a different time slot",
                )
            ]
        return [
            finding(
                rule,
                "resource_not_found",
                "The requested resource does not exist",
                "Please choose another resource",
            )
        ]

    findings: List[Violation] = []
    if ctx.match is not None and ctx.match.preferred_resource_unavailable:
        findings.append(
            finding(
                rule,
                "preferred_resource_unavailable",
                f"Your preferred choice is not available; {resource.name} has been assigned instead",
                mandatory=False,
            )
        )
    if resource.status == ResourceStatus.ON_LEAVE.value:
        findings.append(
            finding(
                rule,
                "resource_on_leave",
                f"{resource.name} is currently on leave",
                "Please choose another resource",
            )
        )
    elif resource.status != ResourceStatus.ACTIVE.value:
        findings.append(
            finding(
                rule,
                "resource_inactive",
                f"{resource.name} is not currently available for bookings",
                "Please choose another resource",
            )
        )
    if not resource.is_reservable:
        findings.append(
            finding(
                rule,
                "resource_not_reservable",
                f"{resource.name} cannot be reserved in advance",
                "Please contact the business directly",
            )
        )
    return findings


def booking_conflict(ctx: ValidationContext, rule: RuleDefinition) -> List[Violation]:
    if ctx.resource is None or not ctx.conflicts:
        return []
    message = "The requested time overlaps an existing booking"
    if ctx.buffer_minutes:
        message += f" (including the {ctx.buffer_minutes}-minute buffer)"
    return [finding(rule, "booking_conflict", message, "Please select a different time slot")]


def working_window(ctx: ValidationContext, rule: RuleDefinition) -> List[Violation]:
    resource, window = ctx.resource, ctx.window
    if resource is None or window is None:
        return []
    if not ctx.has_schedule:
        return [
            finding(
                rule,
                "schedule_not_configured",
                f"No working schedule is configured for {resource.name}; working hours were not checked",
                mandatory=False,
            )
        ]
    working = ctx.working
    day = window.start.date()
    if working is None:
        return [
            finding(
                rule,
                "resource_not_working",
                f"{resource.name} is not working on {day.isoformat()}",
                "Please choose another date or resource",
            )
        ]
    if not working.window.contains(window):
        return [
            finding(
                rule,
                "outside_working_hours",
                f"{resource.name} works {_hhmm(working.window.start)}-{_hhmm(working.window.end)} "
                f"on {day.isoformat()}",
                "Please select a time within working hours",
            )
        ]
    blocking_break = working.break_overlapping(window)
    if blocking_break is not None:
        return [
            finding(
                rule,
                "overlaps_break",
                f"The requested time overlaps a break ({_hhmm(blocking_break.start)}-"
                f"{_hhmm(blocking_break.end)})",
                "Please select a different time slot",
            )
        ]
    return []


# Timing


def operating_hours(ctx: ValidationContext, rule: RuleDefinition) -> List[Violation]:
    window = ctx.window
    if window is None:
        return []
    day = window.start.date()
    if not ctx.tenant.operating_hours:
        return [
            finding(
                rule,
                "no_hours_configured",
                "No operating hours are configured; opening hours were not checked",
                mandatory=False,
            )
        ]
    entry = ctx.tenant.hours_for_weekday(day.weekday())
    if entry is None:
        return [
            finding(
                rule,
                "no_hours_configured",
                f"No operating hours are configured for {day:%A}",
                mandatory=False,
            )
        ]
    if not entry.get("is_open", True):
        return [
            finding(
                rule,
                "business_closed",
                f"The business is closed on {day:%A}",
                "Please choose another day",
            )
        ]

    open_time = parse_hhmm(entry.get("open") or entry.get("open_time"))
    close_time = parse_hhmm(entry.get("close") or entry.get("close_time"))
    if open_time is None or close_time is None:
        return [
            finding(
                rule,
                "no_hours_configured",
                f"Operating hours for {day:%A} are incomplete",
                mandatory=False,
            )
        ]

    business = TimeWindow.on(day, open_time, close_time)
    findings: List[Violation] = []
    if window.start < business.start:
        findings.append(
            finding(
                rule,
                "before_opening",
                f"The business opens at {_hhmm(business.start)}",
                f"Please select a time after {_hhmm(business.start)}",
            )
        )

    end = window.end
    if rule.param("include_buffer", False):
        end += timedelta(minutes=ctx.buffer_minutes)
    if end > business.end:
        findings.append(
            finding(
                rule,
                "extends_past_closing",
                f"The booking would end at {_hhmm(end)}, after closing time {_hhmm(business.end)}",
                "Please choose an earlier time or a shorter service",
            )
        )
        return findings

    last_seating = rule.param("last_seating_minutes_before_close")
    if last_seating and window.start > business.end - timedelta(minutes=int(last_seating)):
        findings.append(
            finding(
                rule,
                "late_booking",
                f"Bookings within {int(last_seating)} minutes of closing may have limited service",
                mandatory=False,
            )
        )
    return findings


def time_range(ctx: ValidationContext, rule: RuleDefinition) -> List[Violation]:
    if ctx.window is None:
        return []
    duration = ctx.window.duration_minutes
    minimum = _number_param(rule, "min_duration_minutes", required=False)
    maximum = _number_param(rule, "max_duration_minutes", required=False)
    if minimum is not None and duration < minimum:
        return [
            finding(
                rule,
                "duration_too_short",
                f"Bookings must be at least {int(minimum)} minutes long",
                "Please select a longer time",
            )
        ]
    if maximum is not None and duration > maximum:
        return [
            finding(
                rule,
                "duration_too_long",
                f"Bookings cannot be longer than {int(maximum)} minutes",
                "Please split the booking or contact the business directly",
            )
        ]
    return []


def advance_window(ctx: ValidationContext, rule: RuleDefinition) -> List[Violation]:
    window = ctx.window
    if window is None:
        return []
    if window.start < ctx.now:
        return [
            finding(
                rule,
                "booking_in_past",
                "The requested time has already passed",
                "Please select a future time",
            )
        ]
    min_lead = _number_param(rule, "min_lead_minutes", required=False) or 0
    if window.start - ctx.now < timedelta(minutes=min_lead):
        return [
            finding(
                rule,
                "insufficient_notice",
                f"Bookings require at least {int(min_lead)} minutes notice",
                "Please select a later time",
            )
        ]
    max_days = _number_param(rule, "max_advance_days", required=False)
    if max_days is not None and window.start.date() > (ctx.now + timedelta(days=max_days)).date():
        return [
            finding(
                rule,
                "too_far_in_advance",
                f"Bookings can be made at most {int(max_days)} days in advance",
                "Please select an earlier date",
            )
        ]
    return []


def hour_advisory(ctx: ValidationContext, rule: RuleDefinition) -> List[Violation]:
    if ctx.window is None:
        return []
    start_hour = _number_param(rule, "start_hour")
    end_hour = _number_param(rule, "end_hour")
    if start_hour <= ctx.window.start.hour < end_hour:
        return [
            finding(
                rule,
                str(rule.param("violation_type", "hour_advisory")),
                str(rule.param("message", "Bookings at this time of day are subject to restrictions")),
            )
        ]
    return []


def weekday_advisory(ctx: ValidationContext, rule: RuleDefinition) -> List[Violation]:
    if ctx.window is None:
        return []
    weekdays = rule.parameters.get("weekdays")
    if not isinstance(weekdays, (list, tuple)):
        raise RuleConfigurationError(f"Rule '{rule.name}' needs a list of weekdays")
    if ctx.window.start.weekday() in {int(day) for day in weekdays}:
        return [
            finding(
                rule,
                str(rule.param("violation_type", "weekday_advisory")),
                str(rule.param("message", "Bookings on this day are subject to restrictions")),
            )
        ]
    return []


# Capacity


def capacity(ctx: ValidationContext, rule: RuleDefinition) -> List[Violation]:
    resource = ctx.resource
    if resource is None:
        return []
    if ctx.party_size > resource.max_capacity:
        return [
            finding(
                rule,
                "party_size_exceeds_capacity",
                f"A party of {ctx.party_size} exceeds the capacity of {resource.name} "
                f"({resource.max_capacity})",
                "Please reduce the party size or contact the business directly",
            )
        ]
    if ctx.party_size < resource.min_capacity:
        return [
            finding(
                rule,
                "party_size_below_minimum",
                f"{resource.name} requires a party of at least {resource.min_capacity}",
                "Please choose a smaller option",
            )
        ]
    return []


def venue_ceiling(ctx: ValidationContext, rule: RuleDefinition) -> List[Violation]:
    ceiling = _number_param(rule, "max_party_size")
    if ctx.party_size > ceiling:
        return [
            finding(
                rule,
                "large_party_restriction",
                f"Parties of more than {int(ceiling)} cannot be booked online",
                f"Please contact the business directly to arrange parties over {int(ceiling)}",
            )
        ]
    return []


def utilization(ctx: ValidationContext, rule: RuleDefinition) -> List[Violation]:
    resource = ctx.resource
    if resource is None or not resource.max_capacity:
        return []
    ratio = _number_param(rule, "min_utilization")
    if ctx.party_size < resource.max_capacity * ratio:
        return [
            finding(
                rule,
                "underutilized_table",
                f"A party of {ctx.party_size} would occupy {resource.name} "
                f"(seats {resource.max_capacity})",
                "A smaller option may be available",
            )
        ]
    return []


def concurrency_cap(ctx: ValidationContext, rule: RuleDefinition) -> List[Violation]:
    resource = ctx.resource
    if resource is None or resource.max_concurrent_assignments is None:
        return []
    if ctx.day_assignment_count >= resource.max_concurrent_assignments:
        return [
            finding(
                rule,
                "daily_limit_reached",
                f"{resource.name} has reached the maximum of "
                f"{resource.max_concurrent_assignments} bookings for this day",
                "Please choose another date or resource",
            )
        ]
    return []


# Policy


def _policy_fee(rule: RuleDefinition, booking, reason: str) -> Optional[FinancialImpact]:
    structure = str(rule.param("fee_structure", "none")).lower()
    if structure == "flat":
        return FinancialImpact(type="fee", amount=float(rule.param("fee_amount", 0)), reason=reason)
    if structure == "percentage":
        price = float(booking.total_price or 0)
        percentage = float(rule.param("fee_percentage", 0))
        return FinancialImpact(type="fee", amount=round(price * percentage / 100, 2), reason=reason)
    return None


def cancellation_notice(ctx: ValidationContext, rule: RuleDefinition) -> List[Violation]:
    booking = ctx.booking
    if booking is None:
        return []
    free_hours = _number_param(rule, "free_cancellation_hours")
    if booking.start_at - ctx.now >= timedelta(hours=free_hours):
        return []
    impact = _policy_fee(
        rule, booking, f"Late cancellation (less than {free_hours:g} hours notice)"
    )
    message = f"Cancellations less than {free_hours:g} hours before the booking are late"
    if impact is not None:
        message += f" and incur a fee of {impact.amount:.2f}"
    return [
        finding(
            rule,
            "late_cancellation",
            message,
            "Contact the business if you need to discuss the cancellation fee",
            financial_impact=impact,
        )
    ]


def no_show_notice(ctx: ValidationContext, rule: RuleDefinition) -> List[Violation]:
    """A no-show can only be recorded once the grace period after the start has passed."""
    booking = ctx.booking
    if booking is None:
        return []
    grace = _number_param(rule, "grace_period_minutes", required=False) or 0
    marked_from = booking.start_at + timedelta(minutes=grace)
    if ctx.now < marked_from:
        return [
            finding(
                rule,
                "no_show_too_early",
                f"A no-show can only be recorded from {_hhmm(marked_from)}, "
                f"{grace:g} minutes after the booking starts",
                mandatory=True,
            )
        ]
    impact = _policy_fee(rule, booking, "No-show")
    if impact is None:
        return []
    return [
        finding(
            rule,
            "no_show_fee",
            f"Missed bookings incur a fee of {impact.amount:.2f}",
            financial_impact=impact,
        )
    ]


def reschedule_notice(ctx: ValidationContext, rule: RuleDefinition) -> List[Violation]:
    booking = ctx.booking
    if booking is None:
        return []
    findings: List[Violation] = []
    max_reschedules = _number_param(rule, "max_reschedules", required=False)
    if max_reschedules is not None and (booking.reschedule_count or 0) >= max_reschedules:
        findings.append(
            finding(
                rule,
                "reschedule_limit_reached",
                f"This booking has already been rescheduled {booking.reschedule_count} times",
                "Please cancel and make a new booking",
            )
        )
    allowed_until = _number_param(rule, "allowed_until_hours", required=False)
    if allowed_until is not None and booking.start_at - ctx.now < timedelta(hours=allowed_until):
        findings.append(
            finding(
                rule,
                "late_reschedule",
                f"Bookings can only be rescheduled up to {allowed_until:g} hours in advance",
                "Please contact the business directly",
            )
        )
    if not rule.param("same_day_allowed", True) and booking.start_at.date() == ctx.now.date():
        findings.append(
            finding(
                rule,
                "same_day_reschedule",
                "Bookings cannot be rescheduled on the day of the appointment",
                "Please contact the business directly",
            )
        )
    return findings


# Built-in lifecycle check

_TARGET_STATUS: Dict[OperationType, str] = {
    OperationType.CONFIRM: BookingStatus.CONFIRMED.value,
    OperationType.START: BookingStatus.IN_PROGRESS.value,
    OperationType.COMPLETE: BookingStatus.COMPLETED.value,
    OperationType.CANCEL: BookingStatus.CANCELLED.value,
    OperationType.NO_SHOW: BookingStatus.NO_SHOW.value,
}

BOOKING_STATUS_RULE = RuleDefinition(
    name="booking_status",
    family=RuleFamily.POLICY.value,
    evaluator="booking_status",
    priority=1,
    mandatory=True,
    applies_to=frozenset(op.value for op in OperationType if op is not OperationType.CREATE),
    description="The booking's current status allows the operation",
)


def booking_status(ctx: ValidationContext, rule: RuleDefinition) -> List[Violation]:
    booking = ctx.booking
    if booking is None:
        return []
    operation = ctx.operation_type
    status = booking.status
    if operation is OperationType.RESCHEDULE:
        allowed = status in RESCHEDULABLE_STATUSES
    else:
        target = _TARGET_STATUS.get(operation)
        allowed = target is None or can_transition(status, target)
    if allowed:
        return []
    if status == BookingStatus.CANCELLED.value and operation is OperationType.CANCEL:
        return [finding(rule, "already_cancelled", "This booking has already been cancelled")]
    return [
        finding(
            rule,
            "invalid_state_transition",
            f"Cannot {operation.value.replace('_', ' ')} a booking that is {status.replace('_', ' ')}",
        )
    ]


EVALUATORS: Dict[str, Evaluator] = {
    "resource_state": resource_state,
    "booking_conflict": booking_conflict,
    "working_window": working_window,
    "operating_hours": operating_hours,
    "time_range": time_range,
    "advance_window": advance_window,
    "hour_advisory": hour_advisory,
    "weekday_advisory": weekday_advisory,
    "capacity": capacity,
    "venue_ceiling": venue_ceiling,
    "utilization": utilization,
    "concurrency_cap": concurrency_cap,
    "cancellation_notice": cancellation_notice,
    "no_show_notice": no_show_notice,
    "reschedule_notice": reschedule_notice,
    "booking_status": booking_status,
}


def get_evaluator(name: str) -> Optional[Evaluator]:
    return EVALUATORS.get(name)
