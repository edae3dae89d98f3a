"""Collaborator contracts consumed by the manifest core."""
from typing import Any, Dict, List, Optional, Protocol, Tuple

from cargo_manifest.core.enums import ManifestStatus, ShipmentStatus, TrackingEventSource
from cargo_manifest.schemas.manifest import ManifestItemResponse, ManifestSettings, ManifestSnapshot
from cargo_manifest.schemas.shipment import ShipmentSnapshot


class ShipmentRepository(Protocol):

    async def find_by_awb(self, awb: str) -> Optional[ShipmentSnapshot]:
        ...

    async def find_by_id(self, shipment_id: str) -> Optional[ShipmentSnapshot]:
        ...

    async def update_status(
        self,
        shipment_id: str,
        status: ShipmentStatus,
        description: str,
        hub_id: Optional[str] = None,
        staff_id: Optional[str] = None,
    ) -> None:
        """Change the shipment status and record a tracking event."""
        ...

    async def record_scan(
        self,
        shipment_id: str,
        event_code: str,
        hub_id: Optional[str] = None,
        staff_id: Optional[str] = None,
        source: TrackingEventSource = TrackingEventSource.SCAN,
        meta: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Record a tracking event without changing the shipment status."""
        ...


class ManifestRepository(Protocol):

    async def create(self, settings: ManifestSettings) -> ManifestSnapshot:
        ...

    async def find_by_id(self, manifest_id: str) -> Optional[ManifestSnapshot]:
        ...

    async def find_by_manifest_no(self, manifest_no: str) -> Optional[ManifestSnapshot]:
        ...

    async def find_item(self, manifest_id: str, shipment_id: str) -> Optional[ManifestItemResponse]:
        ...

    async def find_active_item_for_shipment(
        self,
        shipment_id: str,
        exclude_manifest_id: Optional[str] = None,
    ) -> Optional[ManifestItemResponse]:
        """Item holding the shipment on another still-editable manifest."""
        ...

    async def add_item(
        self,
        manifest_id: str,
        shipment: ShipmentSnapshot,
        staff_id: Optional[str] = None,
    ) -> Tuple[ManifestItemResponse, bool]:
        """Insert the item and apply the shipment's contribution to the totals.

        Returns (item, duplicate). A duplicate leaves totals untouched.
        """
        ...

    async def remove_item(
        self,
        manifest_id: str,
        shipment: ShipmentSnapshot,
    ) -> Optional[ManifestItemResponse]:
        """Delete the item and subtract its contribution. None when absent."""
        ...

    async def update_status(
        self,
        manifest_id: str,
        new_status: ManifestStatus,
        staff_id: Optional[str] = None,
    ) -> ManifestSnapshot:
        ...

    async def list_items(self, manifest_id: str) -> List[ManifestItemResponse]:
        ...


class UnitOfWork(Protocol):
    shipments: ShipmentRepository
    manifests: ManifestRepository

    async def commit(self) -> None:
        ...

    async def rollback(self) -> None:
        ...
