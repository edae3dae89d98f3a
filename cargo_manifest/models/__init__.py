"""SQLAlchemy models."""
from cargo_manifest.models.shipment import Shipment
from cargo_manifest.models.manifest import Manifest, ManifestItem
from cargo_manifest.models.tracking_event import TrackingEvent

__all__ = ["Shipment", "Manifest", "ManifestItem", "TrackingEvent"]
