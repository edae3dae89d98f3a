"""Scan API endpoints: token classification and offline-queue replay."""
from fastapi import APIRouter

from cargo_manifest.core.dependencies import Uow
from cargo_manifest.core.logging import get_logger
from cargo_manifest.schemas.scan import ParseRequest, QueuedScanEvent, ScanResult, ScanToken
from cargo_manifest.scanning.parser import classify_scan_input
from cargo_manifest.scanning.service import ScanService


router = APIRouter()
logger = get_logger(__name__)


@router.post("/parse", response_model=ScanToken)
async def parse_scan(request: ParseRequest):
    """
    Classify raw scanner input without side effects.

    Unrecognized input answers 422 with code INVALID_SCAN.
    """
    return classify_scan_input(request.raw)


@router.post("/sync", response_model=ScanResult)
async def sync_queued_scan(event: QueuedScanEvent, uow: Uow):
    """
    Apply one scan captured offline.

    Replaying an already-applied scan is safe: attaching reports a
    duplicate. Business rejections answer 200 with a failed ScanResult.
    """
    result = await ScanService(uow).sync_scan(event)
    logger.info(
        f"Queued scan replayed: success={result.success}",
        extra={"scan_id": event.id, "manifest_id": event.manifest_id, "staff_id": event.staff_id},
    )
    return result
