"""Server-side scan handling: token resolution, attach and queued-scan replay."""
from typing import Optional

from cargo_manifest.core.database import async_session_maker
from cargo_manifest.core.enums import ScanErrorCode, ScanSource, ScanType, TrackingEventSource
from cargo_manifest.core.errors import ValidationError
from cargo_manifest.core.logging import get_logger
from cargo_manifest.repositories.base import UnitOfWork
from cargo_manifest.repositories.sql import SqlUnitOfWork
from cargo_manifest.schemas.manifest import ManifestRules
from cargo_manifest.schemas.scan import QueuedScanEvent, ScanResult
from cargo_manifest.schemas.shipment import ShipmentSnapshot
from cargo_manifest.scanning.attacher import AttachResult, ManifestItemAttacher
from cargo_manifest.scanning.parser import classify_scan_input


logger = get_logger(__name__)

SCANNED_EVENT_CODE = "SCANNED"


def _to_scan_result(result: AttachResult, shipment: ShipmentSnapshot, source: ScanSource) -> ScanResult:
    current = result.shipment or shipment
    return ScanResult(
        success=result.success,
        duplicate=result.duplicate,
        awb_number=shipment.awb_number,
        consignee_name=shipment.receiver_name,
        error=result.error,
        message=result.message,
        shipment_id=shipment.id,
        manifest_item_id=result.item_id,
        current_status=current.status,
        source=source,
    )


class ScanService:
    """Resolves scan tokens to shipments and attaches them within one unit of work."""

    def __init__(self, uow: UnitOfWork, attacher: Optional[ManifestItemAttacher] = None):
        self.uow = uow
        self.attacher = attacher or ManifestItemAttacher(uow.manifests, uow.shipments)

    async def submit_scan(
        self,
        manifest_id: str,
        token: str,
        *,
        source: ScanSource = ScanSource.MANUAL,
        staff_id: Optional[str] = None,
        rules: Optional[ManifestRules] = None,
    ) -> ScanResult:
        try:
            parsed = classify_scan_input(token)
        except ValidationError as exc:
            return ScanResult.failure(ScanErrorCode.INVALID_SCAN, exc.message, source=source)

        if parsed.type != ScanType.SHIPMENT:
            return ScanResult.failure(
                ScanErrorCode.INVALID_SCAN_TYPE,
                f"Expected a shipment barcode, got a {parsed.type.value} code",
                source=source,
            )

        shipment = await self.uow.shipments.find_by_awb(parsed.awb)
        if shipment is None:
            return ScanResult.failure(
                ScanErrorCode.SHIPMENT_NOT_FOUND,
                f"Shipment {parsed.awb} not found",
                awb_number=parsed.awb,
                source=source,
            )
        return await self._attach(manifest_id, shipment, staff_id, rules, source)

    async def sync_scan(self, event: QueuedScanEvent) -> ScanResult:
        """Apply one queued scan intent. Queued shipment scans carry only the AWB."""
        if event.type == ScanType.MANIFEST:
            manifest = await self.uow.manifests.find_by_manifest_no(event.code)
            if manifest is None:
                manifest = await self.uow.manifests.find_by_id(event.code)
            if manifest is None:
                return ScanResult.failure(
                    ScanErrorCode.MANIFEST_NOT_FOUND,
                    f"Manifest {event.code} not found",
                    source=event.source,
                )
            return ScanResult(success=True, message="Manifest scan acknowledged", source=event.source)

        if event.type != ScanType.SHIPMENT:
            return ScanResult.failure(
                ScanErrorCode.INVALID_SCAN_TYPE,
                f"{event.type.value} scans cannot be synced",
                source=event.source,
            )

        try:
            parsed = classify_scan_input(event.code)
        except ValidationError as exc:
            return ScanResult.failure(ScanErrorCode.INVALID_SCAN, exc.message, source=event.source)
        if parsed.type != ScanType.SHIPMENT:
            return ScanResult.failure(
                ScanErrorCode.INVALID_SCAN_TYPE,
                f"Expected a shipment barcode, got a {parsed.type.value} code",
                source=event.source,
            )

        shipment = await self.uow.shipments.find_by_awb(parsed.awb)
        if shipment is None:
            return ScanResult.failure(
                ScanErrorCode.SHIPMENT_NOT_FOUND,
                f"Shipment {parsed.awb} not found",
                awb_number=parsed.awb,
                source=event.source,
            )

        if event.manifest_id:
            return await self._attach(event.manifest_id, shipment, event.staff_id, event.rules, event.source)

        try:
            await self.uow.shipments.record_scan(
                shipment.id,
                SCANNED_EVENT_CODE,
                hub_id=event.hub_id,
                staff_id=event.staff_id,
                source=TrackingEventSource.SCAN,
                meta={
                    "scan_id": event.id,
                    "scan_source": event.source.value,
                    "scanned_at": event.created_at.isoformat(),
                },
            )
            await self.uow.commit()
        except Exception:
            await self.uow.rollback()
            raise

        logger.info(
            "Queued scan recorded",
            extra={"shipment_id": shipment.id, "scan_id": event.id, "staff_id": event.staff_id},
        )
        return ScanResult(
            success=True,
            awb_number=shipment.awb_number,
            consignee_name=shipment.receiver_name,
            message="Scan recorded",
            shipment_id=shipment.id,
            current_status=shipment.status,
            source=event.source,
        )

    async def _attach(
        self,
        manifest_id: str,
        shipment: ShipmentSnapshot,
        staff_id: Optional[str],
        rules: Optional[ManifestRules],
        source: ScanSource,
    ) -> ScanResult:
        try:
            result = await self.attacher.attach(manifest_id, shipment.id, staff_id=staff_id, rules=rules)
            await self.uow.commit()
        except Exception:
            await self.uow.rollback()
            raise
        return _to_scan_result(result, shipment, source)


class LocalScanGateway:
    """ScanGateway that runs ScanService in-process, one session per call."""

    def __init__(self, session_factory=async_session_maker):
        self.session_factory = session_factory

    async def submit_scan(
        self,
        manifest_id: str,
        token: str,
        *,
        source: ScanSource = ScanSource.MANUAL,
        staff_id: Optional[str] = None,
        rules: Optional[ManifestRules] = None,
    ) -> ScanResult:
        async with self.session_factory() as session:
            service = ScanService(SqlUnitOfWork(session))
            return await service.submit_scan(
                manifest_id, token, source=source, staff_id=staff_id, rules=rules
            )

    async def sync_scan(self, event: QueuedScanEvent) -> ScanResult:
        async with self.session_factory() as session:
            return await ScanService(SqlUnitOfWork(session)).sync_scan(event)
