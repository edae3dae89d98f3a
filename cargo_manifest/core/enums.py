"""Enum definitions for the application."""
from enum import Enum


class ManifestType(str, Enum):
    """Transport mode of a manifest."""
    AIR = "AIR"
    TRUCK = "TRUCK"


class ManifestStatus(str, Enum):
    """Manifest lifecycle status."""
    DRAFT = "DRAFT"
    OPEN = "OPEN"
    BUILDING = "BUILDING"
    CLOSED = "CLOSED"
    DEPARTED = "DEPARTED"
    ARRIVED = "ARRIVED"
    RECONCILED = "RECONCILED"


class ShipmentStatus(str, Enum):
    """Shipment lifecycle status."""
    CREATED = "CREATED"
    RECEIVED = "RECEIVED"
    PICKED_UP = "PICKED_UP"
    RECEIVED_AT_ORIGIN_HUB = "RECEIVED_AT_ORIGIN_HUB"
    LOADED_FOR_LINEHAUL = "LOADED_FOR_LINEHAUL"
    IN_TRANSIT_TO_DESTINATION = "IN_TRANSIT_TO_DESTINATION"
    RECEIVED_AT_DEST_HUB = "RECEIVED_AT_DEST_HUB"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    EXCEPTION_RAISED = "EXCEPTION_RAISED"
    EXCEPTION_RESOLVED = "EXCEPTION_RESOLVED"
    CANCELLED = "CANCELLED"


class ScanType(str, Enum):
    """What a scan token refers to."""
    SHIPMENT = "shipment"
    MANIFEST = "manifest"
    PACKAGE = "package"


class ScanSource(str, Enum):
    """Device that produced a scan."""
    CAMERA = "camera"
    BARCODE_SCANNER = "barcode-scanner"
    MANUAL = "manual"


class ScanMode(str, Enum):
    """Input mode of a scanning session."""
    MANUAL = "manual"
    SCANNER = "scanner"
    CAMERA = "camera"


class TrackingEventSource(str, Enum):
    """Origin of a tracking event."""
    SCAN = "SCAN"
    MANUAL = "MANUAL"
    SYSTEM = "SYSTEM"


class ScanErrorCode(str, Enum):
    """Error codes carried by scan results."""
    INVALID_SCAN = "INVALID_SCAN"
    INVALID_SCAN_TYPE = "INVALID_SCAN_TYPE"
    MANIFEST_NOT_FOUND = "MANIFEST_NOT_FOUND"
    SHIPMENT_NOT_FOUND = "SHIPMENT_NOT_FOUND"
    MANIFEST_CLOSED = "MANIFEST_CLOSED"
    DESTINATION_MISMATCH = "DESTINATION_MISMATCH"
    INVALID_STATUS = "INVALID_STATUS"
    COD_EXCLUDED = "COD_EXCLUDED"
    ALREADY_IN_MANIFEST = "ALREADY_IN_MANIFEST"
    REQUEST_CANCELLED = "REQUEST_CANCELLED"
    NETWORK_TIMEOUT = "NETWORK_TIMEOUT"
    NETWORK_ERROR = "NETWORK_ERROR"
    SYSTEM_ERROR = "SYSTEM_ERROR"


# Transport-level failures; SYSTEM_ERROR is never retried
RETRYABLE_ERRORS = frozenset({
    ScanErrorCode.REQUEST_CANCELLED,
    ScanErrorCode.NETWORK_TIMEOUT,
    ScanErrorCode.NETWORK_ERROR,
})
