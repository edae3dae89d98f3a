"""Manifest and manifest item models."""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from sqlalchemy import (
    String, Integer, DateTime, ForeignKey, Numeric, Text, JSON,
    Enum as SQLEnum, Index, UniqueConstraint
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
import uuid

from cargo_manifest.core.database import Base
from cargo_manifest.core.enums import ManifestStatus, ManifestType, ShipmentStatus


class Manifest(Base):
    """Manifest model: one vehicle/flight leg between two hubs."""

    __tablename__ = "manifests"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    manifest_no: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    type: Mapped[ManifestType] = mapped_column(SQLEnum(ManifestType), nullable=False)
    from_hub_id: Mapped[str] = mapped_column(String(36), nullable=False)
    to_hub_id: Mapped[str] = mapped_column(String(36), nullable=False)
    status: Mapped[ManifestStatus] = mapped_column(
        SQLEnum(ManifestStatus),
        default=ManifestStatus.DRAFT,
        nullable=False
    )
    vehicle_meta: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Aggregates (updated with atomic increments)
    total_shipments: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_packages: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_weight: Mapped[Decimal] = mapped_column(Numeric(14, 3), default=0, nullable=False)
    total_cod: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0, nullable=False)

    created_by_staff_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    closed_by_staff_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    closed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    departed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    arrived_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    reconciled_by_staff_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    reconciled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    items = relationship("ManifestItem", back_populates="manifest", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_manifest_status", "status"),
        Index("ix_manifest_route", "from_hub_id", "to_hub_id"),
    )


class ManifestItem(Base):
    """A shipment attached to a manifest."""

    __tablename__ = "manifest_items"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    manifest_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("manifests.id", ondelete="CASCADE"),
        nullable=False
    )
    shipment_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("shipments.id", ondelete="CASCADE"),
        nullable=False
    )
    scanned_by_staff_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    scanned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    previous_shipment_status: Mapped[Optional[ShipmentStatus]] = mapped_column(
        SQLEnum(ShipmentStatus),
        nullable=True
    )
    # Contribution to the manifest totals at attach time; removal subtracts these
    package_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    weight: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=0, nullable=False)
    cod_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0, nullable=False)

    # Relationships
    manifest = relationship("Manifest", back_populates="items")
    shipment = relationship("Shipment", lazy="joined")

    __table_args__ = (
        # One item per (manifest, shipment): idempotent attach
        UniqueConstraint("manifest_id", "shipment_id", name="uq_manifest_item_shipment"),
        Index("ix_manifest_item_manifest", "manifest_id"),
        Index("ix_manifest_item_shipment", "shipment_id"),
    )
