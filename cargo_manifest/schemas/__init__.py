"""Pydantic schemas."""
from cargo_manifest.schemas.shipment import ShipmentSnapshot
from cargo_manifest.schemas.manifest import (
    ManifestRules, ManifestSettings, ManifestSnapshot, ManifestItemResponse,
    ManifestListResponse, ManifestStatusUpdateRequest, ManifestTotals,
    QRPayloadResponse, ManifestItemRemovedResponse,
)
from cargo_manifest.schemas.scan import (
    ScanToken, ScanResult, ScanRequest, ParseRequest, QueuedScanEvent,
)

__all__ = [
    "ShipmentSnapshot",
    "ManifestRules", "ManifestSettings", "ManifestSnapshot", "ManifestItemResponse",
    "ManifestListResponse", "ManifestStatusUpdateRequest", "ManifestTotals",
    "QRPayloadResponse", "ManifestItemRemovedResponse",
    "ScanToken", "ScanResult", "ScanRequest", "ParseRequest", "QueuedScanEvent",
]
