# booking_engine/services/schedule_service.py
"""
Schedule Model for bookable resources.

A resource's working window for a date comes from a dated shift assignment
when one exists (a leave template means not working), otherwise from the
weekly window for that weekday. No window means no slots and no bookings.
"""

from dataclasses import dataclass, field
from datetime import date
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..models.resource import BookableResource
from ..repositories.factory import RepositoryFactory
from ..utils.time_window import TimeWindow, any_overlap, parse_breaks
from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WorkingWindow:
    """One resource's working hours for one date."""

    day: date
    window: TimeWindow
    breaks: List[TimeWindow] = field(default_factory=list)
    source: str = "weekly"  # "weekly" | "shift"

    def covers(self, requested: TimeWindow) -> bool:
        """Requested window lies inside working hours and clear of every break."""
        return self.window.contains(requested) and not any_overlap(requested, self.breaks)

    def break_overlapping(self, requested: TimeWindow) -> Optional[TimeWindow]:
        for window in self.breaks:
            if window.overlaps(requested):
                return window
        return None


class ScheduleService(BaseService):
    """Resolves working windows for resources."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.resource_repository = RepositoryFactory.create_resource_repository(db)
        self.schedule_repository = RepositoryFactory.create_schedule_repository(db)

    def working_window(self, resource: BookableResource, day: date) -> Optional[WorkingWindow]:
        """
        Working window for a resource on a date.

        Args:
            resource: The resource
            day: Calendar date in tenant wall-clock time

        Returns:
            WorkingWindow, or None when the resource does not work that date
        """
        assignment = self.schedule_repository.get_assignment(resource.id, day)
        if assignment is not None:
            template = assignment.template
            if template.is_leave or template.start_time is None or template.end_time is None:
                return None
            return self._build(day, template.start_time, template.end_time, template.breaks, "shift")

        weekly = self.resource_repository.get_working_window(resource.id, day.weekday())
        if weekly is None:
            return None
        return self._build(day, weekly.start_time, weekly.end_time, weekly.breaks, "weekly")

    def has_schedule(self, resource: BookableResource) -> bool:
        """False means the schedule is not configured at all (as opposed to a day off)."""
        return self.resource_repository.has_weekly_schedule(
            resource.id
        ) or self.schedule_repository.has_assignments(resource.id)

    @staticmethod
    def _build(day, start_time, end_time, breaks, source: str) -> Optional[WorkingWindow]:
        window = TimeWindow.on(day, start_time, end_time)
        if window.is_empty:
            logger.debug("Ignoring empty working window %s on %s", window, day)
            return None
        return WorkingWindow(day=day, window=window, breaks=parse_breaks(day, breaks), source=source)
