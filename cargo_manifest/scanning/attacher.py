"""Idempotent attach/remove of shipments on a manifest."""
from dataclasses import dataclass
from typing import Optional

from cargo_manifest.core.enums import ScanErrorCode, ShipmentStatus
from cargo_manifest.core.errors import (
    ManifestNotEditableError, ManifestNotFoundError, ShipmentNotFoundError,
)
from cargo_manifest.core.logging import get_logger
from cargo_manifest.repositories.base import ManifestRepository, ShipmentRepository
from cargo_manifest.schemas.manifest import ManifestRules
from cargo_manifest.schemas.shipment import ShipmentSnapshot
from cargo_manifest.scanning.rules import validate_with_rules
from cargo_manifest.scanning.state_machine import is_editable


logger = get_logger(__name__)

# Status a shipment falls back to when removed without a recorded prior status
DEFAULT_REVERT_STATUS = ShipmentStatus.RECEIVED_AT_ORIGIN_HUB


@dataclass(frozen=True)
class AttachResult:
    success: bool
    duplicate: bool = False
    item_id: Optional[str] = None
    error: Optional[ScanErrorCode] = None
    message: str = ""
    shipment: Optional[ShipmentSnapshot] = None


class ManifestItemAttacher:
    """
    Attaches shipments to manifests.

    Attaching the same shipment to the same manifest any number of times,
    concurrently or not, leaves exactly one item, and only the first
    attach changes the totals or the shipment status.
    """

    def __init__(self, manifests: ManifestRepository, shipments: ShipmentRepository):
        self.manifests = manifests
        self.shipments = shipments

    async def attach(
        self,
        manifest_id: str,
        shipment_id: str,
        staff_id: Optional[str] = None,
        rules: Optional[ManifestRules] = None,
    ) -> AttachResult:
        rules = rules or ManifestRules()
        log_ctx = {"manifest_id": manifest_id, "shipment_id": shipment_id, "staff_id": staff_id}

        # Duplicate wins over every other check, including a closed manifest
        existing = await self.manifests.find_item(manifest_id, shipment_id)
        if existing is not None:
            logger.info("Duplicate scan ignored", extra=log_ctx)
            return AttachResult(
                success=True,
                duplicate=True,
                item_id=existing.id,
                message="Shipment already in manifest",
            )

        manifest = await self.manifests.find_by_id(manifest_id)
        if manifest is None:
            return AttachResult(
                success=False,
                error=ScanErrorCode.MANIFEST_NOT_FOUND,
                message="Manifest not found",
            )

        shipment = await self.shipments.find_by_id(shipment_id)
        if shipment is None:
            return AttachResult(
                success=False,
                error=ScanErrorCode.SHIPMENT_NOT_FOUND,
                message="Shipment not found",
            )

        outcome = validate_with_rules(shipment, manifest, rules)
        if not outcome.ok:
            logger.info(f"Scan rejected: {outcome.error.value}", extra=log_ctx)
            return AttachResult(
                success=False,
                error=outcome.error,
                message=outcome.message,
                shipment=shipment,
            )

        other = await self.manifests.find_active_item_for_shipment(
            shipment_id, exclude_manifest_id=manifest_id
        )
        if other is not None:
            return AttachResult(
                success=False,
                error=ScanErrorCode.ALREADY_IN_MANIFEST,
                message="Shipment is already on another open manifest",
                shipment=shipment,
            )

        item, duplicate = await self.manifests.add_item(manifest_id, shipment, staff_id)
        if duplicate:
            return AttachResult(
                success=True,
                duplicate=True,
                item_id=item.id,
                message="Shipment already in manifest",
                shipment=shipment,
            )

        await self.shipments.update_status(
            shipment.id,
            ShipmentStatus.LOADED_FOR_LINEHAUL,
            f"Loaded on manifest {manifest.manifest_no}",
            hub_id=manifest.from_hub_id,
            staff_id=staff_id,
        )
        logger.info("Shipment attached", extra=log_ctx)
        return AttachResult(
            success=True,
            duplicate=False,
            item_id=item.id,
            message="Shipment added to manifest",
            shipment=shipment.model_copy(update={
                "status": ShipmentStatus.LOADED_FOR_LINEHAUL,
                "manifest_id": manifest_id,
            }),
        )

    async def remove(
        self,
        manifest_id: str,
        shipment_id: str,
        staff_id: Optional[str] = None,
    ) -> bool:
        """
        Detach a shipment and restore the status it had before loading.

        Returns False when the shipment was not on the manifest.
        """
        manifest = await self.manifests.find_by_id(manifest_id)
        if manifest is None:
            raise ManifestNotFoundError(f"Manifest {manifest_id} not found")
        if not is_editable(manifest.status):
            raise ManifestNotEditableError(
                f"Cannot remove items from a manifest in status {manifest.status.value}"
            )

        shipment = await self.shipments.find_by_id(shipment_id)
        if shipment is None:
            raise ShipmentNotFoundError(f"Shipment {shipment_id} not found")

        removed = await self.manifests.remove_item(manifest_id, shipment)
        if removed is None:
            return False

        await self.shipments.update_status(
            shipment.id,
            removed.previous_shipment_status or DEFAULT_REVERT_STATUS,
            f"Removed from manifest {manifest.manifest_no}",
            hub_id=manifest.from_hub_id,
            staff_id=staff_id,
        )
        logger.info(
            "Shipment removed from manifest",
            extra={"manifest_id": manifest_id, "shipment_id": shipment_id, "staff_id": staff_id},
        )
        return True
