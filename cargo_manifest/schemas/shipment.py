"""Shipment schemas."""
from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from cargo_manifest.core.enums import ShipmentStatus


class ShipmentSnapshot(BaseModel):
    """Read-only view of a shipment used for manifest decisions."""
    id: str
    awb_number: str
    status: ShipmentStatus
    origin_hub_id: str
    destination_hub_id: str
    package_count: int = 1
    total_weight: float = 0.0
    cod_amount: Optional[float] = None
    receiver_name: Optional[str] = None
    sender_name: Optional[str] = None
    manifest_id: Optional[str] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @property
    def has_cod(self) -> bool:
        return bool(self.cod_amount)
