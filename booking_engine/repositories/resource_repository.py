# booking_engine/repositories/resource_repository.py
"""
Resource Repository.

Reads resources and their weekly working windows, and takes the per-resource
row lock that serializes booking writes.
"""

import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session, selectinload

from ..core.exceptions import RepositoryException
from ..database.session_utils import supports_row_locks
from ..models.resource import BookableResource, ResourceStatus, WeeklyWorkingWindow
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ResourceRepository(BaseRepository[BookableResource]):
    """Repository for bookable resources."""

    def __init__(self, db: Session):
        super().__init__(db, BookableResource)
        self.logger = logging.getLogger(__name__)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(selectinload(BookableResource.working_windows))

    def get_for_tenant(self, tenant_id: str, resource_id: str) -> Optional[BookableResource]:
        """Resource lookup scoped to a tenant; foreign resources read as missing."""
        return self._apply_eager_loading(
            self._build_query().filter(
                BookableResource.id == resource_id,
                BookableResource.tenant_id == tenant_id,
            )
        ).first()

    def list_active_for_tenant(self, tenant_id: str) -> List[BookableResource]:
        query = (
            self._apply_eager_loading(self._build_query())
            .filter(
                BookableResource.tenant_id == tenant_id,
                BookableResource.status == ResourceStatus.ACTIVE.value,
            )
            .order_by(BookableResource.id)
        )
        return self._execute_query(query)

    def lock_for_update(self, resource_id: str) -> Optional[BookableResource]:
        """
        Lock the resource row for the rest of the transaction.

        Every create/reschedule for the same resource queues on this lock, so
        the overlap re-check that follows sees all committed bookings. SQLite
        serializes writers at the database level and has no row locks.
        """
        try:
            query = self.db.query(BookableResource).filter(BookableResource.id == resource_id)
            if supports_row_locks(self.db):
                query = query.with_for_update()
            return query.one_or_none()
        except SQLAlchemyError as e:
            self.logger.error(f"Error locking resource {resource_id}: {str(e)}")
            raise RepositoryException(f"Failed to lock resource: {str(e)}") from e

    def get_working_window(self, resource_id: str, weekday: int) -> Optional[WeeklyWorkingWindow]:
        try:
            return (
                self.db.query(WeeklyWorkingWindow)
                .filter(
                    WeeklyWorkingWindow.resource_id == resource_id,
                    WeeklyWorkingWindow.weekday == weekday,
                )
                .first()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading working window: {str(e)}")
            raise RepositoryException(f"Failed to load working window: {str(e)}")

    def has_weekly_schedule(self, resource_id: str) -> bool:
        try:
            return (
                self.db.query(WeeklyWorkingWindow.id)
                .filter(WeeklyWorkingWindow.resource_id == resource_id)
                .first()
                is not None
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error checking schedule: {str(e)}")
            raise RepositoryException(f"Failed to check schedule: {str(e)}")
