# booking_engine/repositories/constraint_repository.py
"""
Constraint rule registry queries.
"""

import logging
from typing import Any, Iterable, List, Mapping

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.constraint import ConstraintRule, TenantConstraintOverride
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class ConstraintRepository(BaseRepository[ConstraintRule]):
    """Repository for industry rules and tenant overrides."""

    def __init__(self, db: Session):
        super().__init__(db, ConstraintRule)

    def list_rules_for_industry(self, industry_type: str) -> List[ConstraintRule]:
        query = (
            self._build_query()
            .filter(ConstraintRule.industry_type == industry_type)
            .order_by(ConstraintRule.priority, ConstraintRule.name)
        )
        return self._execute_query(query)

    def list_overrides_for_tenant(self, tenant_id: str) -> List[TenantConstraintOverride]:
        try:
            return (
                self.db.query(TenantConstraintOverride)
                .filter(TenantConstraintOverride.tenant_id == tenant_id)
                .all()
            )
        except SQLAlchemyError as e:
            self.logger.error(f"Error loading overrides for tenant {tenant_id}: {str(e)}")
            raise RepositoryException(f"Failed to load overrides: {str(e)}")

    def upsert_rules(self, industry_type: str, rules: Iterable[Mapping[str, Any]]) -> int:
        """Insert missing rules for an industry; existing rows are left as edited. Returns inserts."""
        existing = {rule.name for rule in self.list_rules_for_industry(industry_type)}
        inserted = 0
        for definition in rules:
            if definition["name"] in existing:
                continue
            self.create(industry_type=industry_type, **definition)
            inserted += 1
        return inserted
