"""Manifest API endpoints."""
from typing import List, Optional
from io import StringIO
import csv

from fastapi import APIRouter, status, Query
from fastapi.responses import StreamingResponse

from cargo_manifest.core.dependencies import StaffId, Uow
from cargo_manifest.core.enums import ManifestStatus, ManifestType
from cargo_manifest.core.errors import ManifestNotFoundError
from cargo_manifest.core.logging import get_logger
from cargo_manifest.schemas.manifest import (
    ManifestItemRemovedResponse, ManifestItemResponse, ManifestListResponse, ManifestSettings,
    ManifestSnapshot, ManifestStatusUpdateRequest, QRPayloadResponse,
)
from cargo_manifest.schemas.scan import ScanRequest, ScanResult
from cargo_manifest.scanning.builder import ManifestBuilder
from cargo_manifest.scanning.parser import generate_manifest_qr_payload
from cargo_manifest.scanning.service import ScanService


router = APIRouter()
logger = get_logger(__name__)


async def _get_manifest(uow: Uow, manifest_id: str) -> ManifestSnapshot:
    manifest = await uow.manifests.find_by_id(manifest_id)
    if manifest is None:
        raise ManifestNotFoundError("Manifest not found")
    return manifest


@router.post("", response_model=ManifestSnapshot, status_code=status.HTTP_201_CREATED)
async def create_manifest(
    request: ManifestSettings,
    uow: Uow,
    staff_id: StaffId,
):
    """Create a manifest for a route. Its status defaults to BUILDING."""
    if request.created_by_staff_id is None and staff_id:
        request = request.model_copy(update={"created_by_staff_id": staff_id})
    builder = ManifestBuilder(uow)
    return await builder.create_manifest(request)


@router.get("", response_model=ManifestListResponse)
async def list_manifests(
    uow: Uow,
    status_filter: Optional[ManifestStatus] = Query(None, alias="status"),
    manifest_type: Optional[ManifestType] = Query(None, alias="type"),
    from_hub_id: Optional[str] = None,
    to_hub_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
):
    """List manifests with optional filters."""
    manifests, total = await uow.manifests.list_manifests(
        status=status_filter,
        manifest_type=manifest_type,
        from_hub_id=from_hub_id,
        to_hub_id=to_hub_id,
        page=page,
        page_size=page_size,
    )
    return ManifestListResponse(
        manifests=manifests,
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{manifest_id}", response_model=ManifestSnapshot)
async def get_manifest(manifest_id: str, uow: Uow):
    """Get a specific manifest by ID."""
    return await _get_manifest(uow, manifest_id)


@router.get("/{manifest_id}/items", response_model=List[ManifestItemResponse])
async def list_manifest_items(manifest_id: str, uow: Uow):
    """Items on the manifest with joined shipment data, newest first."""
    await _get_manifest(uow, manifest_id)
    return await uow.manifests.list_items(manifest_id)


@router.post("/{manifest_id}/scan", response_model=ScanResult)
async def scan_into_manifest(
    manifest_id: str,
    request: ScanRequest,
    uow: Uow,
    staff_id: StaffId,
):
    """
    Scan a shipment onto the manifest.

    Always answers 200 with a ScanResult; rejections are carried in its
    ``error`` code. Re-scanning an attached shipment reports a duplicate.
    """
    return await ScanService(uow).submit_scan(
        manifest_id,
        request.token,
        source=request.source,
        staff_id=request.staff_id or staff_id,
        rules=request.rules,
    )


@router.delete("/{manifest_id}/items/{shipment_id}", response_model=ManifestItemRemovedResponse)
async def remove_manifest_item(
    manifest_id: str,
    shipment_id: str,
    uow: Uow,
    staff_id: StaffId,
):
    """Remove a shipment from an editable manifest. Removing an absent item is a no-op."""
    builder = ManifestBuilder(uow)
    await builder.resume(manifest_id)
    removed = await builder.remove_shipment(shipment_id, staff_id=staff_id)
    return ManifestItemRemovedResponse(removed=removed, manifest=builder.manifest)


@router.post("/{manifest_id}/status", response_model=ManifestSnapshot)
async def update_manifest_status(
    manifest_id: str,
    request: ManifestStatusUpdateRequest,
    uow: Uow,
    staff_id: StaffId,
):
    """Move the manifest to another status. Illegal transitions answer 409."""
    builder = ManifestBuilder(uow)
    await builder.resume(manifest_id)
    return await builder.update_status(request.status, staff_id=request.staff_id or staff_id)


@router.post("/{manifest_id}/close", response_model=ManifestSnapshot)
async def close_manifest(
    manifest_id: str,
    uow: Uow,
    staff_id: StaffId,
):
    """Close a manifest, locking it from further item changes. Empty manifests cannot be closed."""
    builder = ManifestBuilder(uow)
    await builder.resume(manifest_id)
    manifest = await builder.close_manifest(staff_id=staff_id)
    logger.info(
        f"Manifest closed: {manifest.manifest_no}, shipments: {manifest.total_shipments}",
        extra={"manifest_id": manifest_id, "staff_id": staff_id},
    )
    return manifest


@router.post("/{manifest_id}/open", response_model=ManifestSnapshot)
async def save_manifest_as_open(
    manifest_id: str,
    uow: Uow,
    staff_id: StaffId,
):
    """Leave the manifest OPEN to continue later. Allowed with zero items."""
    builder = ManifestBuilder(uow)
    await builder.resume(manifest_id)
    return await builder.save_as_open(staff_id=staff_id)


@router.get("/{manifest_id}/qr", response_model=QRPayloadResponse)
async def manifest_qr_payload(manifest_id: str, uow: Uow):
    """QR payload for the manifest label."""
    manifest = await _get_manifest(uow, manifest_id)
    return QRPayloadResponse(payload=generate_manifest_qr_payload(
        manifest.id, manifest.manifest_no, manifest.from_hub_id, manifest.to_hub_id,
    ))


@router.get("/{manifest_id}/export.csv")
async def export_manifest_csv(manifest_id: str, uow: Uow):
    """Export manifest items as CSV."""
    manifest = await _get_manifest(uow, manifest_id)
    items = await uow.manifests.list_items(manifest_id)

    output = StringIO()
    writer = csv.writer(output)

    # Header
    writer.writerow([
        "awb_number", "receiver_name", "sender_name", "destination_hub_id",
        "package_count", "total_weight", "cod_amount", "shipment_status",
        "scanned_at", "scanned_by_staff_id",
    ])

    # Data rows, oldest scan first
    for item in reversed(items):
        shipment = item.shipment
        writer.writerow([
            shipment.awb_number if shipment else "",
            (shipment.receiver_name or "") if shipment else "",
            (shipment.sender_name or "") if shipment else "",
            shipment.destination_hub_id if shipment else "",
            shipment.package_count if shipment else "",
            shipment.total_weight if shipment else "",
            shipment.cod_amount if shipment and shipment.cod_amount is not None else "",
            shipment.status.value if shipment else "",
            item.scanned_at.isoformat(),
            item.scanned_by_staff_id or "",
        ])

    output.seek(0)

    filename = f"{manifest.manifest_no}.csv"

    return StreamingResponse(
        iter([output.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )
