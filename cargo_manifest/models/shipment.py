"""Shipment model."""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from sqlalchemy import String, Integer, DateTime, ForeignKey, Numeric, Enum as SQLEnum, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
import uuid

from cargo_manifest.core.database import Base
from cargo_manifest.core.enums import ShipmentStatus


class Shipment(Base):
    """Shipment as seen by the manifest workflow."""

    __tablename__ = "shipments"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    awb_number: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    status: Mapped[ShipmentStatus] = mapped_column(
        SQLEnum(ShipmentStatus),
        default=ShipmentStatus.CREATED,
        nullable=False
    )
    origin_hub_id: Mapped[str] = mapped_column(String(36), nullable=False)
    destination_hub_id: Mapped[str] = mapped_column(String(36), nullable=False)
    package_count: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    total_weight: Mapped[Decimal] = mapped_column(Numeric(12, 3), default=0, nullable=False)
    cod_amount: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    receiver_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    sender_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    manifest_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("manifests.id", ondelete="SET NULL"),
        nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    # Relationships
    tracking_events = relationship("TrackingEvent", back_populates="shipment", cascade="all, delete-orphan")

    __table_args__ = (
        Index("ix_shipment_status", "status"),
        Index("ix_shipment_destination", "destination_hub_id"),
    )
