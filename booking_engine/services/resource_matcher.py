# booking_engine/services/resource_matcher.py
"""
Resource Matcher.

One parameterised matcher for every request type: filter capable resources,
keep the ones free for the requested window, put an eligible preferred
resource first and rank the rest by a weighted score. An empty result is
data ("no resource available"), never an exception.
"""

from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING, Dict, FrozenSet, Iterable, List, Optional

from sqlalchemy.orm import Session

from ..models.resource import BookableResource
from ..repositories.factory import RepositoryFactory
from ..schemas.matching import MatchResult, RankedResource
from ..utils.time_window import TimeWindow
from .base import BaseService
from .schedule_service import ScheduleService
from .slot_generator import SlotGenerator

if TYPE_CHECKING:
    from .constraints.catalog import RuleCatalog

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MatchWeights:
    quality: float
    experience: float
    cost: float


DEFAULT_WEIGHTS = MatchWeights(quality=0.5, experience=0.3, cost=0.2)
EVENT_WEIGHTS = MatchWeights(quality=0.6, experience=0.4, cost=0.0)

MATCH_WEIGHTS: Dict[str, MatchWeights] = {
    "retail": DEFAULT_WEIGHTS,
    "personal-shopping": DEFAULT_WEIGHTS,
    "styling": DEFAULT_WEIGHTS,
    "fitting": DEFAULT_WEIGHTS,
    "alteration": DEFAULT_WEIGHTS,
    "consultation": DEFAULT_WEIGHTS,
    "event": EVENT_WEIGHTS,
    "event-coordination": EVENT_WEIGHTS,
}

# Request types that map straight onto a staff role
REQUEST_TYPE_ROLES: Dict[str, FrozenSet[str]] = {
    "personal-shopping": frozenset({"personal-shopper"}),
    "styling": frozenset({"stylist"}),
    "fitting": frozenset({"fitter"}),
    "alteration": frozenset({"fitter"}),
    "consultation": frozenset({"consultant"}),
    "event-coordination": frozenset({"event-coordinator", "coordinator"}),
}

MAX_RATING = 5.0
EXPERIENCE_CAP_YEARS = 20


def weights_for(request_type: Optional[str]) -> MatchWeights:
    return MATCH_WEIGHTS.get((request_type or "").lower(), DEFAULT_WEIGHTS)


def score_resource(resource: BookableResource, weights: MatchWeights) -> float:
    """Weighted score in [0, 1]; a missing signal contributes nothing."""
    rating = min(max(resource.rating or 0.0, 0.0), MAX_RATING) / MAX_RATING
    experience = min(max(resource.experience_years or 0, 0), EXPERIENCE_CAP_YEARS) / float(
        EXPERIENCE_CAP_YEARS
    )
    cost = 0.0
    if resource.commission_rate is not None:
        cost = (100.0 - min(max(resource.commission_rate, 0.0), 100.0)) / 100.0
    score = weights.quality * rating + weights.experience * experience + weights.cost * cost
    return round(score, 6)


def is_capable(
    resource: BookableResource, request_type: Optional[str], capability_tags: Iterable[str]
) -> bool:
    """Tags intersect the resource's specializations, or its role serves the request type."""
    tags = {tag.lower() for tag in capability_tags}
    resource_tags = resource.capability_tags
    if tags & resource_tags:
        return True
    normalized = (request_type or "").lower()
    if normalized and normalized in resource_tags:
        return True
    roles = REQUEST_TYPE_ROLES.get(normalized)
    if roles is not None:
        return (resource.role or "").lower() in roles
    # Unknown request type with no tag requirement: any active resource qualifies
    return not tags


class ResourceMatcher(BaseService):
    """Ranks eligible resources for a booking request."""

    def __init__(
        self,
        db: Session,
        schedule_service: Optional[ScheduleService] = None,
        slot_generator: Optional[SlotGenerator] = None,
    ):
        super().__init__(db)
        self.schedule_service = schedule_service or ScheduleService(db)
        self.slot_generator = slot_generator or SlotGenerator(db, self.schedule_service)
        self.resource_repository = RepositoryFactory.create_resource_repository(db)
        self.booking_repository = RepositoryFactory.create_booking_repository(db)

    @BaseService.measure_operation("match_resources")
    def match_resources(
        self,
        tenant_id: str,
        request_type: Optional[str],
        window: TimeWindow,
        capability_tags: Iterable[str] = (),
        preferred_resource_id: Optional[str] = None,
        catalog: Optional["RuleCatalog"] = None,
    ) -> MatchResult:
        """
        Rank resources able to take the request.

        Args:
            tenant_id: Tenant whose resources are considered
            request_type: e.g. "styling", "event"; selects weights and role mapping
            window: Requested [start, end)
            capability_tags: Required specializations (any one suffices)
            preferred_resource_id: Returned first when it is eligible
            catalog: Supplies the effective buffer per resource

        Returns:
            MatchResult; empty ranking means no resource is available
        """
        tags = list(capability_tags)
        eligible = [
            resource
            for resource in self.resource_repository.list_active_for_tenant(tenant_id)
            if resource.is_reservable
            and is_capable(resource, request_type, tags)
            and self._is_available(resource, window, catalog)
        ]

        weights = weights_for(request_type)
        ranked = sorted(
            (
                RankedResource(
                    resource_id=resource.id,
                    name=resource.name,
                    score=score_resource(resource, weights),
                    rating=resource.rating,
                    experience_years=resource.experience_years,
                    commission_rate=resource.commission_rate,
                )
                for resource in eligible
            ),
            key=lambda entry: (-entry.score, entry.resource_id),
        )

        preferred_unavailable = False
        if preferred_resource_id:
            preferred = next((r for r in ranked if r.resource_id == preferred_resource_id), None)
            if preferred is None:
                preferred_unavailable = True
            else:
                ranked.remove(preferred)
                ranked.insert(0, preferred.model_copy(update={"is_preferred": True}))

        self.log_operation(
            "match_resources",
            tenant_id=tenant_id,
            request_type=request_type,
            candidates=len(ranked),
            preferred_unavailable=preferred_unavailable,
        )
        return MatchResult(ranked=ranked, preferred_resource_unavailable=preferred_unavailable)

    def _is_available(
        self,
        resource: BookableResource,
        window: TimeWindow,
        catalog: Optional["RuleCatalog"],
    ) -> bool:
        working = self.schedule_service.working_window(resource, window.start.date())
        if working is None or not working.covers(window):
            return False

        cap = resource.max_concurrent_assignments
        if cap is not None and self.booking_repository.count_active_on_day(
            resource.id, window.start.date()
        ) >= cap:
            return False

        buffer = catalog.buffer_minutes_for(resource) if catalog else resource.buffer_minutes
        return self.slot_generator.is_window_available(resource, window, buffer)
