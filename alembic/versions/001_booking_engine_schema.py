# alembic/versions/001_booking_engine_schema.py
"""Booking engine schema

Revision ID: 001_booking_engine_schema
Revises:
Create Date: 2026-10-17 00:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

# revision identifiers, used by Alembic.
revision: str = "001_booking_engine_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

NO_OVERLAP_CONSTRAINT = "bookings_no_overlap_per_resource"


def _json_type(is_postgres: bool) -> sa.types.TypeEngine:
    return JSONB(astext_type=sa.Text()) if is_postgres else sa.JSON()


def upgrade() -> None:
    """Create tenant, resource, schedule, rule, booking and audit tables."""
    print("Creating booking engine tables...")

    bind = op.get_bind()
    dialect_name = bind.dialect.name if bind is not None else "postgresql"
    is_postgres = dialect_name == "postgresql"
    json_type = _json_type(is_postgres)

    op.create_table(
        "tenants",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("industry_type", sa.String(30), nullable=False),
        sa.Column("timezone", sa.String(64), nullable=False, server_default="UTC"),
        sa.Column("operating_hours", json_type, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "bookable_resources",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("tenant_id", sa.String(26), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("resource_type", sa.String(20), nullable=False, server_default="staff"),
        sa.Column("role", sa.String(50), nullable=True),
        sa.Column("specializations", json_type, nullable=True),
        sa.Column("min_capacity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("max_capacity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("max_concurrent_assignments", sa.Integer(), nullable=True),
        sa.Column("buffer_minutes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("is_reservable", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("rating", sa.Float(), nullable=True),
        sa.Column("experience_years", sa.Integer(), nullable=True),
        sa.Column("commission_rate", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("min_capacity >= 0", name="ck_resources_min_capacity"),
        sa.CheckConstraint("max_capacity >= min_capacity", name="ck_resources_capacity_range"),
        sa.CheckConstraint("buffer_minutes >= 0", name="ck_resources_buffer_non_negative"),
        sa.CheckConstraint(
            "status IN ('active', 'inactive', 'on_leave')", name="ck_resources_status"
        ),
    )
    op.create_index("ix_bookable_resources_tenant_id", "bookable_resources", ["tenant_id"])
    op.create_index("ix_bookable_resources_status", "bookable_resources", ["status"])

    op.create_table(
        "weekly_working_windows",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("resource_id", sa.String(26), nullable=False),
        sa.Column("weekday", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("breaks", json_type, nullable=True),
        sa.ForeignKeyConstraint(["resource_id"], ["bookable_resources.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("resource_id", "weekday", name="uq_working_window_resource_weekday"),
        sa.CheckConstraint("weekday >= 0 AND weekday <= 6", name="ck_working_window_weekday"),
    )

    op.create_table(
        "shift_templates",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("tenant_id", sa.String(26), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("shift_type", sa.String(20), nullable=False, server_default="regular"),
        sa.Column("start_time", sa.Time(), nullable=True),
        sa.Column("end_time", sa.Time(), nullable=True),
        sa.Column("breaks", json_type, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_shift_templates_tenant_id", "shift_templates", ["tenant_id"])

    op.create_table(
        "shift_assignments",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("resource_id", sa.String(26), nullable=False),
        sa.Column("template_id", sa.String(26), nullable=False),
        sa.Column("shift_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(["resource_id"], ["bookable_resources.id"]),
        sa.ForeignKeyConstraint(["template_id"], ["shift_templates.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("resource_id", "shift_date", name="uq_shift_assignment_resource_date"),
    )
    op.create_index("ix_shift_assignments_resource_id", "shift_assignments", ["resource_id"])
    op.create_index("ix_shift_assignments_shift_date", "shift_assignments", ["shift_date"])

    print("Creating constraint rule registry tables...")
    op.create_table(
        "constraint_rules",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("industry_type", sa.String(30), nullable=False),
        sa.Column("rule_family", sa.String(20), nullable=False),
        sa.Column("evaluator", sa.String(50), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("parameters", json_type, nullable=True),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="5"),
        sa.Column("is_mandatory", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("applies_to", json_type, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("industry_type", "name", name="uq_constraint_rules_industry_name"),
        sa.CheckConstraint(
            "priority >= 1 AND priority <= 10", name="ck_constraint_rules_priority"
        ),
        sa.CheckConstraint(
            "rule_family IN ('availability', 'timing', 'capacity', 'policy')",
            name="ck_constraint_rules_family",
        ),
    )
    op.create_index("ix_constraint_rules_industry_type", "constraint_rules", ["industry_type"])

    op.create_table(
        "tenant_constraint_overrides",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("tenant_id", sa.String(26), nullable=False),
        sa.Column("constraint_id", sa.String(26), nullable=False),
        sa.Column("is_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("custom_parameters", json_type, nullable=True),
        sa.Column("custom_priority", sa.Integer(), nullable=True),
        sa.Column("custom_mandatory", sa.Boolean(), nullable=True),
        sa.Column("override_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
        sa.ForeignKeyConstraint(["constraint_id"], ["constraint_rules.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("tenant_id", "constraint_id", name="uq_tenant_constraint_override"),
        sa.CheckConstraint(
            "custom_priority IS NULL OR (custom_priority >= 1 AND custom_priority <= 10)",
            name="ck_tenant_override_priority",
        ),
    )
    op.create_index(
        "ix_tenant_constraint_overrides_tenant_id", "tenant_constraint_overrides", ["tenant_id"]
    )

    print("Creating bookings table...")
    op.create_table(
        "bookings",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("tenant_id", sa.String(26), nullable=False),
        sa.Column("resource_id", sa.String(26), nullable=False),
        sa.Column("request_type", sa.String(50), nullable=True),
        sa.Column("start_at", sa.DateTime(), nullable=False),
        sa.Column("end_at", sa.DateTime(), nullable=False),
        sa.Column("buffer_minutes", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("occupied_start", sa.DateTime(), nullable=False),
        sa.Column("occupied_end", sa.DateTime(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("party_size", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("requester_name", sa.String(255), nullable=True),
        sa.Column("requester_phone", sa.String(50), nullable=True),
        sa.Column("requester_email", sa.String(255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("internal_notes", sa.Text(), nullable=True),
        sa.Column("priority", sa.String(20), nullable=True),
        sa.Column("total_price", sa.Numeric(10, 2), nullable=True),
        sa.Column("reschedule_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("no_show_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_by_role", sa.String(20), nullable=True),
        sa.Column("cancelled_by_id", sa.String(26), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["tenant_id"], ["tenants.id"]),
        sa.ForeignKeyConstraint(["resource_id"], ["bookable_resources.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'in_progress', 'completed', 'cancelled', 'no_show')",
            name="ck_bookings_status",
        ),
        sa.CheckConstraint("end_at > start_at", name="check_time_order"),
        sa.CheckConstraint("party_size > 0", name="check_party_size_positive"),
        sa.CheckConstraint("buffer_minutes >= 0", name="check_buffer_non_negative"),
        sa.CheckConstraint(
            "total_price IS NULL OR total_price >= 0", name="check_price_non_negative"
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_tenant_id", "bookings", ["tenant_id"])
    op.create_index("ix_bookings_status", "bookings", ["status"])
    op.create_index(
        "ix_bookings_resource_occupied",
        "bookings",
        ["resource_id", "occupied_start", "occupied_end"],
    )

    if is_postgres:
        print("Adding no-overlap exclusion constraint...")
        op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")
        op.execute(
            f"""
            ALTER TABLE bookings
              ADD CONSTRAINT {NO_OVERLAP_CONSTRAINT}
              EXCLUDE USING gist (
                resource_id WITH =,
                tsrange(occupied_start, occupied_end, '[)') WITH &&
              )
              WHERE (status IN ('pending', 'confirmed', 'in_progress'))
            """
        )

    print("Creating booking_operations audit table...")
    op.create_table(
        "booking_operations",
        sa.Column("id", sa.String(26), nullable=False),
        sa.Column("booking_id", sa.String(26), nullable=True),
        sa.Column("tenant_id", sa.String(26), nullable=True),
        sa.Column("resource_id", sa.String(26), nullable=True),
        sa.Column("operation_type", sa.String(20), nullable=False),
        sa.Column("actor_role", sa.String(20), nullable=False),
        sa.Column("actor_id", sa.String(26), nullable=True),
        sa.Column("outcome", sa.String(20), nullable=False),
        sa.Column("payload", json_type, nullable=True),
        sa.Column("previous_state", json_type, nullable=True),
        sa.Column("new_state", json_type, nullable=True),
        sa.Column("constraints_evaluated", json_type, nullable=True),
        sa.Column("violations", json_type, nullable=True),
        sa.Column("warnings", json_type, nullable=True),
        sa.Column("constraints_passed", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("financial_impact", json_type, nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_booking_operations_booking_id", "booking_operations", ["booking_id"])
    op.create_index("ix_booking_operations_tenant_id", "booking_operations", ["tenant_id"])

    print("Booking engine tables created successfully!")


def downgrade() -> None:
    """Drop booking engine tables."""
    print("Dropping booking engine tables...")

    bind = op.get_bind()
    dialect_name = bind.dialect.name if bind is not None else "postgresql"

    op.drop_index("ix_booking_operations_tenant_id", table_name="booking_operations")
    op.drop_index("ix_booking_operations_booking_id", table_name="booking_operations")
    op.drop_table("booking_operations")

    if dialect_name == "postgresql":
        op.execute(f"ALTER TABLE bookings DROP CONSTRAINT IF EXISTS {NO_OVERLAP_CONSTRAINT}")
    op.drop_index("ix_bookings_resource_occupied", table_name="bookings")
    op.drop_index("ix_bookings_status", table_name="bookings")
    op.drop_index("ix_bookings_tenant_id", table_name="bookings")
    op.drop_index("ix_bookings_id", table_name="bookings")
    op.drop_table("bookings")

    op.drop_index(
        "ix_tenant_constraint_overrides_tenant_id", table_name="tenant_constraint_overrides"
    )
    op.drop_table("tenant_constraint_overrides")
    op.drop_index("ix_constraint_rules_industry_type", table_name="constraint_rules")
    op.drop_table("constraint_rules")

    op.drop_index("ix_shift_assignments_shift_date", table_name="shift_assignments")
    op.drop_index("ix_shift_assignments_resource_id", table_name="shift_assignments")
    op.drop_table("shift_assignments")
    op.drop_index("ix_shift_templates_tenant_id", table_name="shift_templates")
    op.drop_table("shift_templates")
    op.drop_table("weekly_working_windows")
    op.drop_index("ix_bookable_resources_status", table_name="bookable_resources")
    op.drop_index("ix_bookable_resources_tenant_id", table_name="bookable_resources")
    op.drop_table("bookable_resources")
    op.drop_table("tenants")

    print("Booking engine tables dropped.")
