"""SQLAlchemy implementations of the manifest core repositories."""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, update, delete, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from cargo_manifest.core.enums import ManifestStatus, ManifestType, ShipmentStatus, TrackingEventSource
from cargo_manifest.core.errors import ManifestError, ManifestNotFoundError, ShipmentNotFoundError
from cargo_manifest.core.logging import get_logger
from cargo_manifest.models.manifest import Manifest, ManifestItem
from cargo_manifest.models.shipment import Shipment
from cargo_manifest.models.tracking_event import TrackingEvent
from cargo_manifest.schemas.manifest import (
    ManifestItemResponse, ManifestItemShipment, ManifestSettings, ManifestSnapshot,
)
from cargo_manifest.schemas.shipment import ShipmentSnapshot
from cargo_manifest.scanning.state_machine import EDITABLE_STATUSES


logger = get_logger(__name__)

MANIFEST_NO_ATTEMPTS = 3


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _decimal(value: Optional[float]) -> Decimal:
    return Decimal(str(value or 0))


def _item_snapshot(item: ManifestItem, shipment: Optional[Shipment] = None) -> ManifestItemResponse:
    # Built by hand so a freshly flushed item never triggers a lazy load.
    return ManifestItemResponse(
        id=item.id,
        manifest_id=item.manifest_id,
        shipment_id=item.shipment_id,
        scanned_by_staff_id=item.scanned_by_staff_id,
        scanned_at=item.scanned_at,
        previous_shipment_status=item.previous_shipment_status,
        shipment=ManifestItemShipment.model_validate(shipment) if shipment is not None else None,
    )


class SqlShipmentRepository:
    """Shipment lookups and status writes backed by an AsyncSession."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _get(self, shipment_id: str) -> Optional[Shipment]:
        result = await self.session.execute(
            select(Shipment)
            .where(Shipment.id == shipment_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def find_by_awb(self, awb: str) -> Optional[ShipmentSnapshot]:
        result = await self.session.execute(
            select(Shipment)
            .where(func.upper(Shipment.awb_number) == awb.strip().upper())
            .execution_options(populate_existing=True)
        )
        shipment = result.scalar_one_or_none()
        return ShipmentSnapshot.model_validate(shipment) if shipment else None

    async def find_by_id(self, shipment_id: str) -> Optional[ShipmentSnapshot]:
        shipment = await self._get(shipment_id)
        return ShipmentSnapshot.model_validate(shipment) if shipment else None

    async def update_status(
        self,
        shipment_id: str,
        status: ShipmentStatus,
        description: str,
        hub_id: Optional[str] = None,
        staff_id: Optional[str] = None,
    ) -> None:
        shipment = await self._get(shipment_id)
        if shipment is None:
            raise ShipmentNotFoundError(f"Shipment {shipment_id} not found")

        previous = shipment.status
        shipment.status = status
        shipment.updated_at = _utcnow()
        self.session.add(TrackingEvent(
            shipment_id=shipment.id,
            awb_number=shipment.awb_number,
            event_code=status.value,
            description=description,
            hub_id=hub_id,
            actor_staff_id=staff_id,
            source=TrackingEventSource.SYSTEM,
            meta={"previous_status": previous.value},
        ))
        await self.session.flush()

    async def record_scan(
        self,
        shipment_id: str,
        event_code: str,
        hub_id: Optional[str] = None,
        staff_id: Optional[str] = None,
        source: TrackingEventSource = TrackingEventSource.SCAN,
        meta: Optional[Dict[str, Any]] = None,
    ) -> None:
        shipment = await self._get(shipment_id)
        if shipment is None:
            raise ShipmentNotFoundError(f"Shipment {shipment_id} not found")

        self.session.add(TrackingEvent(
            shipment_id=shipment.id,
            awb_number=shipment.awb_number,
            event_code=event_code,
            description=f"Scanned {shipment.awb_number}",
            hub_id=hub_id,
            actor_staff_id=staff_id,
            source=source,
            meta=meta or {},
        ))
        await self.session.flush()


class SqlManifestRepository:
    """Manifest and manifest item persistence backed by an AsyncSession.

    Aggregates are maintained with single UPDATE statements
    (``total = total + delta``) so concurrent scans never lose increments.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _get(self, manifest_id: str) -> Optional[Manifest]:
        result = await self.session.execute(
            select(Manifest)
            .where(Manifest.id == manifest_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _next_manifest_no(self) -> str:
        prefix = f"MNF-{_utcnow().year}-"
        result = await self.session.execute(
            select(func.max(Manifest.manifest_no)).where(Manifest.manifest_no.like(f"{prefix}%"))
        )
        last = result.scalar()
        seq = int(last[len(prefix):]) + 1 if last else 1
        return f"{prefix}{seq:06d}"

    async def create(self, settings: ManifestSettings) -> ManifestSnapshot:
        for attempt in range(MANIFEST_NO_ATTEMPTS):
            manifest_no = await self._next_manifest_no()
            try:
                async with self.session.begin_nested():
                    manifest = Manifest(
                        manifest_no=manifest_no,
                        type=settings.type,
                        from_hub_id=settings.from_hub_id,
                        to_hub_id=settings.to_hub_id,
                        status=settings.status,
                        vehicle_meta=settings.vehicle_meta(),
                        notes=settings.notes,
                        created_by_staff_id=settings.created_by_staff_id,
                        total_shipments=0,
                        total_packages=0,
                        total_weight=Decimal("0"),
                        total_cod=Decimal("0"),
                    )
                    self.session.add(manifest)
                    await self.session.flush()
            except IntegrityError:
                # Another writer took this number; pick the next one
                logger.warning(
                    f"Manifest number {manifest_no} taken (attempt {attempt + 1})",
                )
                continue
            logger.info(
                f"Created manifest {manifest_no}",
                extra={"manifest_id": manifest.id},
            )
            return ManifestSnapshot.model_validate(manifest)
        raise ManifestError("Could not allocate a unique manifest number")

    async def find_by_id(self, manifest_id: str) -> Optional[ManifestSnapshot]:
        manifest = await self._get(manifest_id)
        return ManifestSnapshot.model_validate(manifest) if manifest else None

    async def find_by_manifest_no(self, manifest_no: str) -> Optional[ManifestSnapshot]:
        result = await self.session.execute(
            select(Manifest)
            .where(func.upper(Manifest.manifest_no) == manifest_no.strip().upper())
            .execution_options(populate_existing=True)
        )
        manifest = result.scalar_one_or_none()
        return ManifestSnapshot.model_validate(manifest) if manifest else None

    async def list_manifests(
        self,
        status: Optional[ManifestStatus] = None,
        manifest_type: Optional[ManifestType] = None,
        from_hub_id: Optional[str] = None,
        to_hub_id: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Tuple[List[ManifestSnapshot], int]:
        query = select(Manifest)
        if status:
            query = query.where(Manifest.status == status)
        if manifest_type:
            query = query.where(Manifest.type == manifest_type)
        if from_hub_id:
            query = query.where(Manifest.from_hub_id == from_hub_id)
        if to_hub_id:
            query = query.where(Manifest.to_hub_id == to_hub_id)

        count_result = await self.session.execute(
            select(func.count()).select_from(query.subquery())
        )
        total = count_result.scalar()

        query = query.order_by(Manifest.created_at.desc(), Manifest.manifest_no.desc())
        query = query.offset((page - 1) * page_size).limit(page_size)
        result = await self.session.execute(query.execution_options(populate_existing=True))
        manifests = [ManifestSnapshot.model_validate(m) for m in result.scalars().all()]
        return manifests, total

    async def find_item(self, manifest_id: str, shipment_id: str) -> Optional[ManifestItemResponse]:
        result = await self.session.execute(
            select(ManifestItem).where(
                ManifestItem.manifest_id == manifest_id,
                ManifestItem.shipment_id == shipment_id,
            )
        )
        item = result.unique().scalar_one_or_none()
        return _item_snapshot(item) if item else None

    async def find_active_item_for_shipment(
        self,
        shipment_id: str,
        exclude_manifest_id: Optional[str] = None,
    ) -> Optional[ManifestItemResponse]:
        query = (
            select(ManifestItem)
            .join(Manifest, Manifest.id == ManifestItem.manifest_id)
            .where(
                ManifestItem.shipment_id == shipment_id,
                Manifest.status.in_(sorted(EDITABLE_STATUSES)),
            )
        )
        if exclude_manifest_id:
            query = query.where(ManifestItem.manifest_id != exclude_manifest_id)
        result = await self.session.execute(query.limit(1))
        item = result.unique().scalar_one_or_none()
        return _item_snapshot(item) if item else None

    async def add_item(
        self,
        manifest_id: str,
        shipment: ShipmentSnapshot,
        staff_id: Optional[str] = None,
    ) -> Tuple[ManifestItemResponse, bool]:
        # Savepoint per insert: a concurrent scan of the same shipment
        # surfaces as a unique violation, which means "already attached".
        try:
            async with self.session.begin_nested():
                item = ManifestItem(
                    manifest_id=manifest_id,
                    shipment_id=shipment.id,
                    scanned_by_staff_id=staff_id,
                    previous_shipment_status=shipment.status,
                    package_count=shipment.package_count,
                    weight=_decimal(shipment.total_weight),
                    cod_amount=_decimal(shipment.cod_amount),
                )
                self.session.add(item)
                await self.session.flush()
        except IntegrityError:
            existing = await self.find_item(manifest_id, shipment.id)
            if existing is None:
                raise
            logger.info(
                "Concurrent attach resolved as duplicate",
                extra={"manifest_id": manifest_id, "shipment_id": shipment.id},
            )
            return existing, True

        await self._apply_contribution(manifest_id, item.package_count, item.weight, item.cod_amount, 1)
        await self.session.execute(
            update(Shipment)
            .where(Shipment.id == shipment.id)
            .values(manifest_id=manifest_id)
            .execution_options(synchronize_session=False)
        )
        return _item_snapshot(item), False

    async def remove_item(
        self,
        manifest_id: str,
        shipment: ShipmentSnapshot,
    ) -> Optional[ManifestItemResponse]:
        existing = await self.session.execute(
            select(ManifestItem).where(
                ManifestItem.manifest_id == manifest_id,
                ManifestItem.shipment_id == shipment.id,
            )
        )
        item = existing.unique().scalar_one_or_none()
        if item is None:
            return None
        snapshot = _item_snapshot(item)
        packages, weight, cod = item.package_count, item.weight, item.cod_amount

        result = await self.session.execute(
            delete(ManifestItem)
            .where(ManifestItem.id == item.id)
            .execution_options(synchronize_session=False)
        )
        self.session.expunge(item)
        if result.rowcount != 1:
            # Lost a race with another removal
            return None

        await self._apply_contribution(manifest_id, packages, weight, cod, -1)
        await self.session.execute(
            update(Shipment)
            .where(Shipment.id == shipment.id, Shipment.manifest_id == manifest_id)
            .values(manifest_id=None)
            .execution_options(synchronize_session=False)
        )
        return snapshot

    async def _apply_contribution(
        self,
        manifest_id: str,
        packages: int,
        weight: Decimal,
        cod: Decimal,
        sign: int,
    ) -> None:
        await self.session.execute(
            update(Manifest)
            .where(Manifest.id == manifest_id)
            .values(
                total_shipments=Manifest.total_shipments + sign,
                total_packages=Manifest.total_packages + sign * packages,
                total_weight=Manifest.total_weight + sign * _decimal(weight),
                total_cod=Manifest.total_cod + sign * _decimal(cod),
                updated_at=_utcnow(),
            )
            .execution_options(synchronize_session=False)
        )

    async def update_status(
        self,
        manifest_id: str,
        new_status: ManifestStatus,
        staff_id: Optional[str] = None,
    ) -> ManifestSnapshot:
        now = _utcnow()
        values: Dict[str, Any] = {"status": new_status, "updated_at": now}
        if new_status == ManifestStatus.CLOSED:
            values.update(closed_at=now, closed_by_staff_id=staff_id)
        elif new_status == ManifestStatus.DEPARTED:
            values["departed_at"] = now
        elif new_status == ManifestStatus.ARRIVED:
            values["arrived_at"] = now
        elif new_status == ManifestStatus.RECONCILED:
            values.update(reconciled_at=now, reconciled_by_staff_id=staff_id)

        result = await self.session.execute(
            update(Manifest)
            .where(Manifest.id == manifest_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ManifestNotFoundError(f"Manifest {manifest_id} not found")

        manifest = await self._get(manifest_id)
        return ManifestSnapshot.model_validate(manifest)

    async def list_items(self, manifest_id: str) -> List[ManifestItemResponse]:
        result = await self.session.execute(
            select(ManifestItem)
            .where(ManifestItem.manifest_id == manifest_id)
            .order_by(ManifestItem.scanned_at.desc())
            .execution_options(populate_existing=True)
        )
        return [_item_snapshot(item, item.shipment) for item in result.unique().scalars().all()]


class SqlUnitOfWork:
    """Groups the repositories over one session and one transaction."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.shipments = SqlShipmentRepository(session)
        self.manifests = SqlManifestRepository(session)

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()
