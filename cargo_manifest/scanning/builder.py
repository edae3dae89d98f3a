"""Manifest build session: settings, scanning, review and the terminal action."""
from enum import Enum
from typing import List, Optional

from cargo_manifest.core.enums import ManifestStatus, ScanSource, ShipmentStatus
from cargo_manifest.core.errors import (
    EmptyManifestError, ManifestNotFoundError,
)
from cargo_manifest.core.logging import get_logger
from cargo_manifest.repositories.base import UnitOfWork
from cargo_manifest.schemas.manifest import (
    ManifestItemResponse, ManifestRules, ManifestSettings, ManifestSnapshot, ManifestTotals,
)
from cargo_manifest.schemas.scan import ScanResult
from cargo_manifest.scanning.attacher import ManifestItemAttacher
from cargo_manifest.scanning.service import ScanService
from cargo_manifest.scanning.state_machine import assert_transition, is_editable


logger = get_logger(__name__)

# Shipment status applied to every item when the manifest reaches these statuses
SHIPMENT_STATUS_ON = {
    ManifestStatus.DEPARTED: ShipmentStatus.IN_TRANSIT_TO_DESTINATION,
    ManifestStatus.ARRIVED: ShipmentStatus.RECEIVED_AT_DEST_HUB,
}


class BuilderPhase(str, Enum):
    SETTINGS = "settings"
    BUILD = "build"
    REVIEW = "review"
    CLOSED = "closed"


class ManifestBuilder:
    """
    One manifest build session.

    The manifest is created at most once per session; submitting settings
    again only moves the session back to scanning. Every status change goes
    through the transition table.
    """

    def __init__(self, uow: UnitOfWork, attacher: Optional[ManifestItemAttacher] = None):
        self.uow = uow
        self.attacher = attacher or ManifestItemAttacher(uow.manifests, uow.shipments)
        self._scanner = ScanService(uow, attacher=self.attacher)
        self.phase = BuilderPhase.SETTINGS
        self.settings: Optional[ManifestSettings] = None
        self.manifest: Optional[ManifestSnapshot] = None
        self._rules = ManifestRules()

    @property
    def manifest_id(self) -> Optional[str]:
        return self.manifest.id if self.manifest else None

    @property
    def rules(self) -> ManifestRules:
        return self._rules

    def update_rules(self, **changes) -> ManifestRules:
        self._rules = self._rules.model_copy(update=changes)
        return self._rules

    @property
    def totals(self) -> ManifestTotals:
        return self.manifest.totals if self.manifest else ManifestTotals()

    def _require_manifest(self) -> ManifestSnapshot:
        if self.manifest is None:
            raise ManifestNotFoundError("No manifest has been created in this session")
        return self.manifest

    async def _refresh(self) -> ManifestSnapshot:
        manifest = await self.uow.manifests.find_by_id(self._require_manifest().id)
        if manifest is None:
            raise ManifestNotFoundError(f"Manifest {self.manifest.id} not found")
        self.manifest = manifest
        return manifest

    async def create_manifest(self, settings: ManifestSettings) -> ManifestSnapshot:
        self.settings = settings
        self._rules = settings.rules
        if self.manifest is not None:
            logger.info(
                "Manifest already created for this session, resuming scanning",
                extra={"manifest_id": self.manifest.id},
            )
            self.phase = BuilderPhase.BUILD
            return self.manifest

        try:
            self.manifest = await self.uow.manifests.create(settings)
            await self.uow.commit()
        except Exception:
            await self.uow.rollback()
            raise
        self.phase = BuilderPhase.BUILD
        return self.manifest

    async def resume(self, manifest_id: str) -> ManifestSnapshot:
        """Attach this session to an existing manifest."""
        manifest = await self.uow.manifests.find_by_id(manifest_id)
        if manifest is None:
            raise ManifestNotFoundError(f"Manifest {manifest_id} not found")
        self.manifest = manifest
        if is_editable(manifest.status):
            self.phase = BuilderPhase.BUILD
        else:
            self.phase = BuilderPhase.CLOSED
        return manifest

    async def scan(
        self,
        token: str,
        staff_id: Optional[str] = None,
        source: ScanSource = ScanSource.MANUAL,
    ) -> ScanResult:
        manifest = self._require_manifest()
        result = await self._scanner.submit_scan(
            manifest.id, token, source=source, staff_id=staff_id, rules=self._rules
        )
        await self._refresh()
        return result

    async def remove_shipment(self, shipment_id: str, staff_id: Optional[str] = None) -> bool:
        manifest = self._require_manifest()
        try:
            removed = await self.attacher.remove(manifest.id, shipment_id, staff_id=staff_id)
            await self.uow.commit()
        except Exception:
            await self.uow.rollback()
            raise
        await self._refresh()
        return removed

    async def review(self) -> List[ManifestItemResponse]:
        manifest = self._require_manifest()
        items = await self.uow.manifests.list_items(manifest.id)
        await self._refresh()
        if self.phase == BuilderPhase.BUILD:
            self.phase = BuilderPhase.REVIEW
        return items

    async def update_status(self, new_status: ManifestStatus, staff_id: Optional[str] = None) -> ManifestSnapshot:
        manifest = await self._refresh()
        assert_transition(manifest.status, new_status)
        try:
            self.manifest = await self.uow.manifests.update_status(manifest.id, new_status, staff_id)
            await self._move_shipments(self.manifest, new_status, staff_id)
            await self.uow.commit()
        except Exception:
            await self.uow.rollback()
            raise
        logger.info(
            f"Manifest status {manifest.status.value} -> {new_status.value}",
            extra={"manifest_id": manifest.id, "staff_id": staff_id},
        )
        if is_editable(new_status):
            self.phase = BuilderPhase.BUILD
        else:
            self.phase = BuilderPhase.CLOSED
        return self.manifest

    async def _move_shipments(
        self,
        manifest: ManifestSnapshot,
        new_status: ManifestStatus,
        staff_id: Optional[str],
    ) -> None:
        shipment_status = SHIPMENT_STATUS_ON.get(new_status)
        if shipment_status is None:
            return
        if new_status == ManifestStatus.DEPARTED:
            hub_id, description = manifest.from_hub_id, f"Departed on manifest {manifest.manifest_no}"
        else:
            hub_id, description = manifest.to_hub_id, f"Arrived on manifest {manifest.manifest_no}"
        items = await self.uow.manifests.list_items(manifest.id)
        for item in items:
            await self.uow.shipments.update_status(
                item.shipment_id, shipment_status, description, hub_id=hub_id, staff_id=staff_id
            )
        logger.info(
            f"Moved {len(items)} shipments to {shipment_status.value}",
            extra={"manifest_id": manifest.id, "staff_id": staff_id},
        )

    async def close_manifest(self, staff_id: Optional[str] = None) -> ManifestSnapshot:
        """Close the manifest. A manifest without items cannot be closed."""
        manifest = await self._refresh()
        if manifest.total_shipments == 0:
            raise EmptyManifestError("Cannot close a manifest with no shipments")
        return await self.update_status(ManifestStatus.CLOSED, staff_id)

    async def save_as_open(self, staff_id: Optional[str] = None) -> ManifestSnapshot:
        """Leave the manifest OPEN for later. Allowed with zero items."""
        manifest = await self._refresh()
        if manifest.status == ManifestStatus.OPEN:
            self.phase = BuilderPhase.BUILD
            return manifest
        return await self.update_status(ManifestStatus.OPEN, staff_id)
