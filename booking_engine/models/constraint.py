# booking_engine/models/constraint.py
"""
Constraint rule registry rows.

Rules are data: one row per (industry, rule name) with the evaluator to run
and its parameters. Tenants layer overrides on top without copying the rule.
"""

from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base
from .types import JSONType


class ConstraintRule(Base):
    """Industry-scoped rule definition."""

    __tablename__ = "constraint_rules"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    name = Column(String(100), nullable=False)
    industry_type = Column(String(30), nullable=False, index=True)
    rule_family = Column(String(20), nullable=False)
    evaluator = Column(String(50), nullable=False)
    description = Column(Text, nullable=True)
    parameters = Column(JSONType, nullable=True)
    priority = Column(Integer, nullable=False, default=5)
    is_mandatory = Column(Boolean, nullable=False, default=True)
    is_active = Column(Boolean, nullable=False, default=True)
    # Operation types the rule applies to, e.g. ["create", "reschedule"]
    applies_to = Column(JSONType, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    overrides = relationship("TenantConstraintOverride", back_populates="rule")

    __table_args__ = (
        UniqueConstraint("industry_type", "name", name="uq_constraint_rules_industry_name"),
        CheckConstraint("priority >= 1 AND priority <= 10", name="ck_constraint_rules_priority"),
        CheckConstraint(
            "rule_family IN ('availability', 'timing', 'capacity', 'policy')",
            name="ck_constraint_rules_family",
        ),
    )

    def __repr__(self) -> str:
        return f"<ConstraintRule {self.industry_type}/{self.name} p={self.priority}>"


class TenantConstraintOverride(Base):
    """Tenant-specific parameters, priority, severity or enablement for a rule."""

    __tablename__ = "tenant_constraint_overrides"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    tenant_id = Column(String(26), ForeignKey("tenants.id"), nullable=False, index=True)
    constraint_id = Column(String(26), ForeignKey("constraint_rules.id"), nullable=False)
    is_enabled = Column(Boolean, nullable=False, default=True)
    custom_parameters = Column(JSONType, nullable=True)
    custom_priority = Column(Integer, nullable=True)
    custom_mandatory = Column(Boolean, nullable=True)
    override_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    rule = relationship("ConstraintRule", back_populates="overrides", lazy="joined")

    __table_args__ = (
        UniqueConstraint("tenant_id", "constraint_id", name="uq_tenant_constraint_override"),
        CheckConstraint(
            "custom_priority IS NULL OR (custom_priority >= 1 AND custom_priority <= 10)",
            name="ck_tenant_override_priority",
        ),
    )

    def merged_parameters(self, base: dict[str, Any]) -> dict[str, Any]:
        merged = dict(base)
        merged.update(self.custom_parameters or {})
        return merged
