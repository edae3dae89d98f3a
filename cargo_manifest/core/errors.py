"""Domain exceptions."""
from typing import Optional


class ManifestError(Exception):
    """Base class for errors raised by the manifest core."""

    code = "MANIFEST_ERROR"
    status_code = 400

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ValidationError(ManifestError):
    """Malformed or unrecognized input (scan token, payload, settings)."""

    code = "INVALID_SCAN"
    status_code = 422


class IllegalTransitionError(ManifestError):
    """Requested manifest status change is not in the transition table."""

    code = "ILLEGAL_TRANSITION"
    status_code = 409

    def __init__(self, from_status: str, to_status: str):
        super().__init__(f"Invalid status transition: {from_status} -> {to_status}")
        self.from_status = from_status
        self.to_status = to_status


class ManifestNotEditableError(ManifestError):
    """Manifest no longer accepts item changes."""

    code = "MANIFEST_CLOSED"
    status_code = 409


class EmptyManifestError(ManifestError):
    """A manifest cannot be closed without items."""

    code = "EMPTY_MANIFEST"
    status_code = 409


class ManifestNotFoundError(ManifestError):
    code = "MANIFEST_NOT_FOUND"
    status_code = 404


class ShipmentNotFoundError(ManifestError):
    code = "SHIPMENT_NOT_FOUND"
    status_code = 404


class GatewayError(ManifestError):
    """Transport failure talking to the remote manifest API."""

    code = "NETWORK_ERROR"
    status_code = 502

    def __init__(self, message: str, code: Optional[str] = None, retryable: bool = True):
        super().__init__(message, code)
        self.retryable = retryable


class GatewayTimeoutError(GatewayError):
    """Remote manifest API did not answer in time."""

    code = "NETWORK_TIMEOUT"
    status_code = 504
