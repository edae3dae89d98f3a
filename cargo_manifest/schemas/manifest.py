"""Manifest schemas."""
from datetime import datetime, date
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, model_validator

from cargo_manifest.core.enums import ManifestStatus, ManifestType, ShipmentStatus


class ManifestRules(BaseModel):
    """Scan rules carried by a build session."""
    only_ready: bool = True
    match_destination: bool = True
    exclude_cod: bool = False

    @property
    def validate_status(self) -> bool:
        return self.only_ready

    @property
    def validate_destination(self) -> bool:
        return self.match_destination


class ManifestSettings(BaseModel):
    """Route and transport settings used to create a manifest."""
    type: ManifestType
    from_hub_id: str = Field(..., min_length=1)
    to_hub_id: str = Field(..., min_length=1)
    status: ManifestStatus = ManifestStatus.BUILDING
    # AIR specific
    flight_number: Optional[str] = None
    flight_date: Optional[date] = None
    airline_code: Optional[str] = None
    etd: Optional[datetime] = None
    eta: Optional[datetime] = None
    # TRUCK specific
    vehicle_number: Optional[str] = None
    driver_name: Optional[str] = None
    driver_phone: Optional[str] = None
    dispatch_at: Optional[datetime] = None
    # Common
    notes: Optional[str] = None
    created_by_staff_id: Optional[str] = None
    rules: ManifestRules = Field(default_factory=ManifestRules)

    @model_validator(mode="after")
    def check_route(self):
        if self.from_hub_id == self.to_hub_id:
            raise ValueError("Origin and destination hub must differ")
        if self.status not in (ManifestStatus.DRAFT, ManifestStatus.OPEN, ManifestStatus.BUILDING):
            raise ValueError(f"A manifest cannot be created as {self.status.value}")
        return self

    def vehicle_meta(self) -> Dict[str, Any]:
        """Mode-specific metadata, stored opaquely on the manifest."""
        if self.type == ManifestType.AIR:
            meta = {
                "flight_no": self.flight_number,
                "flight_date": self.flight_date.isoformat() if self.flight_date else None,
                "airline_code": self.airline_code,
                "etd": self.etd.isoformat() if self.etd else None,
                "eta": self.eta.isoformat() if self.eta else None,
            }
        else:
            meta = {
                "vehicle_no": self.vehicle_number,
                "driver_name": self.driver_name,
                "driver_phone": self.driver_phone,
                "dispatch_at": self.dispatch_at.isoformat() if self.dispatch_at else None,
            }
        return {k: v for k, v in meta.items() if v is not None}


class ManifestTotals(BaseModel):
    """Running aggregates of a manifest."""
    shipments: int = 0
    packages: int = 0
    weight: float = 0.0
    cod_amount: float = 0.0


class ManifestSnapshot(BaseModel):
    """Manifest response schema and read-only snapshot."""
    id: str
    manifest_no: str
    type: ManifestType
    from_hub_id: str
    to_hub_id: str
    status: ManifestStatus
    vehicle_meta: Dict[str, Any] = Field(default_factory=dict)
    notes: Optional[str] = None
    total_shipments: int = 0
    total_packages: int = 0
    total_weight: float = 0.0
    total_cod: float = 0.0
    created_by_staff_id: Optional[str] = None
    created_at: datetime
    closed_by_staff_id: Optional[str] = None
    closed_at: Optional[datetime] = None
    departed_at: Optional[datetime] = None
    arrived_at: Optional[datetime] = None
    reconciled_by_staff_id: Optional[str] = None
    reconciled_at: Optional[datetime] = None

    class Config:
        from_attributes = True

    @property
    def totals(self) -> ManifestTotals:
        return ManifestTotals(
            shipments=self.total_shipments,
            packages=self.total_packages,
            weight=self.total_weight,
            cod_amount=self.total_cod,
        )


class ManifestItemShipment(BaseModel):
    """Shipment columns joined onto a manifest item for display."""
    id: str
    awb_number: str
    status: ShipmentStatus
    receiver_name: Optional[str] = None
    sender_name: Optional[str] = None
    destination_hub_id: str
    package_count: int
    total_weight: float
    cod_amount: Optional[float] = None

    class Config:
        from_attributes = True


class ManifestItemResponse(BaseModel):
    """Manifest item with joined shipment data."""
    id: str
    manifest_id: str
    shipment_id: str
    scanned_by_staff_id: Optional[str] = None
    scanned_at: datetime
    previous_shipment_status: Optional[ShipmentStatus] = None
    shipment: Optional[ManifestItemShipment] = None

    class Config:
        from_attributes = True


class ManifestListResponse(BaseModel):
    """List of manifests response."""
    manifests: List[ManifestSnapshot]
    total: int
    page: int
    page_size: int


class ManifestStatusUpdateRequest(BaseModel):
    """Request to move a manifest to another status."""
    status: ManifestStatus
    staff_id: Optional[str] = None


class QRPayloadResponse(BaseModel):
    """QR payload to be rendered by a label printer."""
    payload: str


class ManifestItemRemovedResponse(BaseModel):
    """Result of removing a shipment from a manifest."""
    removed: bool
    manifest: ManifestSnapshot
