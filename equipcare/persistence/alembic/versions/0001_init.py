"""init

Revision ID: 0001_init
Revises:
Create Date: 2026-03-02 09:00:00.000000
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "vendors",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("company_name", sa.String(), nullable=False),
        sa.Column("contact_email", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "clients",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("contact_email", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="active"),
        sa.Column(
            "created_by_vendor_id",
            sa.String(),
            sa.ForeignKey("vendors.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_clients_vendor_status", "clients", ["created_by_vendor_id", "status"])

    op.create_table(
        "users",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("email", sa.String(), nullable=False, unique=True),
        sa.Column("display_name", sa.String(), nullable=True),
        sa.Column("role", sa.String(), nullable=False),
        # Avoid index=True here because we create explicit indexes below.
        sa.Column("vendor_id", sa.String(), sa.ForeignKey("vendors.id", ondelete="SET NULL"), nullable=True),
        sa.Column("client_id", sa.String(), sa.ForeignKey("clients.id", ondelete="SET NULL"), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_users_vendor_id", "users", ["vendor_id"])
    op.create_index("ix_users_client_id", "users", ["client_id"])

    op.create_table(
        "equipment_types",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("category", sa.String(), nullable=True),
        sa.Column("maintenance_interval_days", sa.Integer(), nullable=False, server_default="90"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "equipment_instances",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("serial_number", sa.String(), nullable=False, unique=True),
        sa.Column("equipment_type_id", sa.String(), sa.ForeignKey("equipment_types.id"), nullable=False),
        sa.Column("vendor_id", sa.String(), sa.ForeignKey("vendors.id", ondelete="SET NULL"), nullable=True),
        sa.Column(
            "assigned_client_id",
            sa.String(),
            sa.ForeignKey("clients.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("location", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="active"),
        sa.Column("last_maintenance_date", sa.Date(), nullable=True),
        sa.Column("next_maintenance_date", sa.Date(), nullable=True),
        sa.Column("expiration_date", sa.Date(), nullable=True),
        sa.Column("compliance_status", sa.String(), nullable=False, server_default="compliant"),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_equipment_next_maintenance", "equipment_instances", ["next_maintenance_date"])
    op.create_index("ix_equipment_expiration", "equipment_instances", ["expiration_date"])
    op.create_index("ix_equipment_vendor", "equipment_instances", ["vendor_id"])
    op.create_index("ix_equipment_assigned_client", "equipment_instances", ["assigned_client_id"])

    op.create_table(
        "equipment_assignments",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column(
            "equipment_id",
            sa.String(),
            sa.ForeignKey("equipment_instances.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("client_id", sa.String(), sa.ForeignKey("clients.id", ondelete="SET NULL"), nullable=True),
        sa.Column("vendor_id", sa.String(), sa.ForeignKey("vendors.id", ondelete="SET NULL"), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="active"),
        sa.Column("assigned_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("returned_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_assignments_vendor_status", "equipment_assignments", ["vendor_id", "status"])
    op.create_index("ix_assignments_client_status", "equipment_assignments", ["client_id", "status"])

    op.create_table(
        "maintenance_tickets",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("ticket_number", sa.String(), nullable=False, unique=True),
        sa.Column(
            "equipment_id",
            sa.String(),
            sa.ForeignKey("equipment_instances.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("client_id", sa.String(), sa.ForeignKey("clients.id", ondelete="SET NULL"), nullable=True),
        sa.Column("vendor_id", sa.String(), sa.ForeignKey("vendors.id", ondelete="SET NULL"), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="open"),
        sa.Column("support_type", sa.String(), nullable=False, server_default="maintenance"),
        sa.Column("priority", sa.String(), nullable=False, server_default="normal"),
        sa.Column("category", sa.String(), nullable=True),
        sa.Column("issue_description", sa.Text(), nullable=False),
        sa.Column("resolution_description", sa.Text(), nullable=True),
        sa.Column("scheduled_date", sa.Date(), nullable=True),
        sa.Column("calculated_hours", sa.Float(), nullable=True),
        sa.Column("cost", sa.Numeric(10, 2), nullable=True),
        sa.Column("created_by_user_id", sa.String(), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_tickets_vendor_status", "maintenance_tickets", ["vendor_id", "status"])
    op.create_index("ix_tickets_client_status", "maintenance_tickets", ["client_id", "status"])
    op.create_index("ix_tickets_equipment_status", "maintenance_tickets", ["equipment_id", "status"])

    op.create_table(
        "reminder_records",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column(
            "equipment_id",
            sa.String(),
            sa.ForeignKey("equipment_instances.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("kind", sa.String(), nullable=False),
        sa.Column("period_key", sa.String(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="pending"),
        sa.Column("attempt_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("delivered_to", postgresql.JSONB(), nullable=True),
        sa.Column("claimed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("dispatched_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint(
            "equipment_id",
            "kind",
            "period_key",
            name="uq_reminder_records_equipment_kind_period",
        ),
    )
    op.create_index("ix_reminder_records_status", "reminder_records", ["status"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("user_id", sa.String(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("category", sa.String(), nullable=False),
        sa.Column("priority", sa.String(), nullable=False, server_default="normal"),
        sa.Column("action_url", sa.String(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("metadata_json", postgresql.JSONB(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_notifications_user_read", "notifications", ["user_id", "is_read"])


def downgrade() -> None:
    op.drop_index("ix_notifications_user_read", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_reminder_records_status", table_name="reminder_records")
    op.drop_table("reminder_records")
    op.drop_index("ix_tickets_equipment_status", table_name="maintenance_tickets")
    op.drop_index("ix_tickets_client_status", table_name="maintenance_tickets")
    op.drop_index("ix_tickets_vendor_status", table_name="maintenance_tickets")
    op.drop_table("maintenance_tickets")
    op.drop_index("ix_assignments_client_status", table_name="equipment_assignments")
    op.drop_index("ix_assignments_vendor_status", table_name="equipment_assignments")
    op.drop_table("equipment_assignments")
    op.drop_index("ix_equipment_assigned_client", table_name="equipment_instances")
    op.drop_index("ix_equipment_vendor", table_name="equipment_instances")
    op.drop_index("ix_equipment_expiration", table_name="equipment_instances")
    op.drop_index("ix_equipment_next_maintenance", table_name="equipment_instances")
    op.drop_table("equipment_instances")
    op.drop_table("equipment_types")
    op.drop_index("ix_users_client_id", table_name="users")
    op.drop_index("ix_users_vendor_id", table_name="users")
    op.drop_table("users")
    op.drop_index("ix_clients_vendor_status", table_name="clients")
    op.drop_table("clients")
    op.drop_table("vendors")
