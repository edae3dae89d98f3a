"""TrackingEvent model."""
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, DateTime, ForeignKey, Text, JSON, Enum as SQLEnum, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
import uuid

from cargo_manifest.core.database import Base
from cargo_manifest.core.enums import TrackingEventSource


class TrackingEvent(Base):
    """A shipment tracking event, written on every status change and scan."""

    __tablename__ = "tracking_events"

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4())
    )
    shipment_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("shipments.id", ondelete="CASCADE"),
        nullable=False
    )
    awb_number: Mapped[str] = mapped_column(String(20), nullable=False)
    event_code: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    hub_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    actor_staff_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    source: Mapped[TrackingEventSource] = mapped_column(
        SQLEnum(TrackingEventSource),
        default=TrackingEventSource.SYSTEM,
        nullable=False
    )
    meta: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)
    event_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False
    )

    # Relationships
    shipment = relationship("Shipment", back_populates="tracking_events")

    __table_args__ = (
        Index("ix_tracking_shipment_time", "shipment_id", "event_time"),
        Index("ix_tracking_awb", "awb_number"),
    )
