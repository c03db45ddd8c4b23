# booking_engine/repositories/schedule_repository.py
"""
Shift assignment queries for the schedule model.
"""

from datetime import date
import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ..core.exceptions import RepositoryException
from ..models.schedule import ShiftAssignment
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ScheduleRepository(BaseRepository[ShiftAssignment]):
    """Repository for dated shift assignments."""

    def __init__(self, db: Session):
        super().__init__(db, ShiftAssignment)

    def get_assignment(self, resource_id: str, shift_date: date) -> Optional[ShiftAssignment]:
        try:
            return (
                self.db.query(ShiftAssignment)
                .options(joinedload(ShiftAssignment.template))
                .filter(
                    ShiftAssignment.resource_id == resource_id,
                    ShiftAssignment.shift_date == shift_date,
                )
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading shift assignment: {str(e)}")
            raise RepositoryException(f"Failed to load shift assignment: {str(e)}")

    def has_assignments(self, resource_id: str) -> bool:
        return self.exists(resource_id=resource_id)
