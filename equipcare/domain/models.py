from __future__ import annotations

from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# JSONB on Postgres, plain JSON elsewhere so SQLite test databases still work.
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    pass


class Vendor(Base):
    __tablename__ = "vendors"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    company_name: Mapped[str] = mapped_column(String)
    contact_email: Mapped[str | None] = mapped_column(String, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Client(Base):
    __tablename__ = "clients"
    __table_args__ = (Index("ix_clients_vendor_status", "created_by_vendor_id", "status"),)

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String)
    contact_email: Mapped[str | None] = mapped_column(String, nullable=True)
    # active | inactive | pending; only active clients block vendor deletion.
    status: Mapped[str] = mapped_column(String, default="active", nullable=False)
    created_by_vendor_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("vendors.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    email: Mapped[str] = mapped_column(String, unique=True)
    display_name: Mapped[str | None] = mapped_column(String, nullable=True)
    # admin | vendor | client; stored as a plain string for migration safety.
    role: Mapped[str] = mapped_column(String)
    vendor_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("vendors.id", ondelete="SET NULL"), nullable=True, index=True
    )
    client_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("clients.id", ondelete="SET NULL"), nullable=True, index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class EquipmentType(Base):
    __tablename__ = "equipment_types"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String)
    category: Mapped[str | None] = mapped_column(String, nullable=True)
    maintenance_interval_days: Mapped[int] = mapped_column(Integer, default=90, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class EquipmentInstance(Base):
    __tablename__ = "equipment_instances"
    __table_args__ = (
        Index("ix_equipment_next_maintenance", "next_maintenance_date"),
        Index("ix_equipment_expiration", "expiration_date"),
        Index("ix_equipment_vendor", "vendor_id"),
        Index("ix_equipment_assigned_client", "assigned_client_id"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True)
    serial_number: Mapped[str] = mapped_column(String, unique=True)
    equipment_type_id: Mapped[str] = mapped_column(String, ForeignKey("equipment_types.id"))
    vendor_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("vendors.id", ondelete="SET NULL"), nullable=True
    )
    assigned_client_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("clients.id", ondelete="SET NULL"), nullable=True
    )
    location: Mapped[str | None] = mapped_column(String, nullable=True)
    # active | maintenance | retired
    status: Mapped[str] = mapped_column(String, default="active", nullable=False)
    last_maintenance_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    next_maintenance_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    expiration_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    # Cached projection of the dates; recomputed whenever they change.
    compliance_status: Mapped[str] = mapped_column(String, default="compliant", nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class EquipmentAssignment(Base):
    __tablename__ = "equipment_assignments"
    __table_args__ = (
        Index("ix_assignments_vendor_status", "vendor_id", "status"),
        Index("ix_assignments_client_status", "client_id", "status"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True)
    equipment_id: Mapped[str] = mapped_column(
        String, ForeignKey("equipment_instances.id", ondelete="CASCADE")
    )
    client_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("clients.id", ondelete="SET NULL"), nullable=True
    )
    vendor_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("vendors.id", ondelete="SET NULL"), nullable=True
    )
    # active | completed | cancelled
    status: Mapped[str] = mapped_column(String, default="active", nullable=False)
    assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    returned_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class MaintenanceTicket(Base):
    __tablename__ = "maintenance_tickets"
    __table_args__ = (
        Index("ix_tickets_vendor_status", "vendor_id", "status"),
        Index("ix_tickets_client_status", "client_id", "status"),
        Index("ix_tickets_equipment_status", "equipment_id", "status"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True)
    ticket_number: Mapped[str] = mapped_column(String, unique=True)
    equipment_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("equipment_instances.id", ondelete="SET NULL"), nullable=True
    )
    client_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("clients.id", ondelete="SET NULL"), nullable=True
    )
    vendor_id: Mapped[str | None] = mapped_column(
        String, ForeignKey("vendors.id", ondelete="SET NULL"), nullable=True
    )
    # open -> resolved -> closed; tickets are never deleted.
    status: Mapped[str] = mapped_column(String, default="open", nullable=False)
    support_type: Mapped[str] = mapped_column(String, default="maintenance", nullable=False)
    priority: Mapped[str] = mapped_column(String, default="normal", nullable=False)
    category: Mapped[str | None] = mapped_column(String, nullable=True)
    issue_description: Mapped[str] = mapped_column(Text)
    resolution_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    scheduled_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    calculated_hours: Mapped[float | None] = mapped_column(Float, nullable=True)
    cost: Mapped[float | None] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=True)
    created_by_user_id: Mapped[str | None] = mapped_column(String, nullable=True)
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class ReminderRecord(Base):
    __tablename__ = "reminder_records"
    __table_args__ = (
        # Authoritative dedup gate: one record per equipment, kind and period ever.
        UniqueConstraint("equipment_id", "kind", "period_key", name="uq_reminder_records_equipment_kind_period"),
        Index("ix_reminder_records_status", "status"),
    )

    id: Mapped[str] = mapped_column(String, primary_key=True)
    equipment_id: Mapped[str] = mapped_column(
        String, ForeignKey("equipment_instances.id", ondelete="CASCADE")
    )
    # maintenance_due | expiration
    kind: Mapped[str] = mapped_column(String)
    period_key: Mapped[str] = mapped_column(String)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    # pending | dispatched | failed
    status: Mapped[str] = mapped_column(String, default="pending", nullable=False)
    attempt_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Channels already delivered for this record ("email:addr", "inapp:user"); retries skip them.
    delivered_to: Mapped[list[str] | None] = mapped_column(JSONType, nullable=True)
    claimed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    dispatched_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (Index("ix_notifications_user_read", "user_id", "is_read"),)

    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str] = mapped_column(String, ForeignKey("users.id", ondelete="CASCADE"))
    title: Mapped[str] = mapped_column(String)
    message: Mapped[str] = mapped_column(Text)
    category: Mapped[str] = mapped_column(String)
    priority: Mapped[str] = mapped_column(String, default="normal", nullable=False)
    action_url: Mapped[str] = mapped_column(String)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    metadata_json: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
