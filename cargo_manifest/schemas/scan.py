"""Scan schemas: parsed tokens, scan results and queued scan intents."""
from datetime import datetime, timezone
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field
import uuid

from cargo_manifest.core.enums import (
    ScanType, ScanSource, ScanErrorCode, ShipmentStatus, RETRYABLE_ERRORS,
)
from cargo_manifest.schemas.manifest import ManifestRules


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ScanToken(BaseModel):
    """A classified, normalized scan token."""
    type: ScanType
    awb: Optional[str] = None
    manifest_id: Optional[str] = None
    manifest_no: Optional[str] = None
    package_id: Optional[str] = None
    route: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None
    raw: str


class ScanResult(BaseModel):
    """Outcome of one scan attempt. Never persisted."""
    success: bool
    duplicate: bool = False
    awb_number: Optional[str] = None
    consignee_name: Optional[str] = None
    error: Optional[ScanErrorCode] = None
    message: str = ""
    shipment_id: Optional[str] = None
    manifest_item_id: Optional[str] = None
    current_status: Optional[ShipmentStatus] = None
    source: Optional[ScanSource] = None
    timestamp: datetime = Field(default_factory=_utcnow)

    @property
    def retryable(self) -> bool:
        return self.error in RETRYABLE_ERRORS

    @classmethod
    def failure(cls, error: ScanErrorCode, message: str, **kwargs) -> "ScanResult":
        return cls(success=False, duplicate=False, error=error, message=message, **kwargs)


class ScanRequest(BaseModel):
    """Scan submitted against a manifest."""
    token: str = Field(..., min_length=1, max_length=500)
    source: ScanSource = ScanSource.MANUAL
    staff_id: Optional[str] = None
    rules: ManifestRules = Field(default_factory=ManifestRules)


class ParseRequest(BaseModel):
    """Raw input to classify without side effects."""
    raw: str = Field(..., max_length=2000)


class QueuedScanEvent(BaseModel):
    """A scan intent waiting to be applied against the server."""
    id: str = Field(default_factory=lambda: f"scan_{uuid.uuid4().hex[:12]}")
    type: ScanType = ScanType.SHIPMENT
    code: str = Field(..., min_length=1, max_length=500)
    source: ScanSource = ScanSource.MANUAL
    hub_id: Optional[str] = None
    staff_id: Optional[str] = None
    manifest_id: Optional[str] = None
    rules: ManifestRules = Field(default_factory=ManifestRules)
    created_at: datetime = Field(default_factory=_utcnow)
    synced: bool = False
    synced_at: Optional[datetime] = None
    error: Optional[str] = None
    attempts: int = 0
    retryable: bool = True
