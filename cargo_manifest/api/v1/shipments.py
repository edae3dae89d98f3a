"""Shipment lookup endpoints."""
from fastapi import APIRouter

from cargo_manifest.core.dependencies import Uow
from cargo_manifest.core.errors import ShipmentNotFoundError
from cargo_manifest.schemas.shipment import ShipmentSnapshot
from cargo_manifest.scanning.parser import is_valid_awb_format, normalize_scan_token


router = APIRouter()


@router.get("/by-awb/{awb}", response_model=ShipmentSnapshot)
async def get_shipment_by_awb(awb: str, uow: Uow):
    """Look up a shipment by carrier (TAC########) or IATA (NNN-NNNNNNNN) AWB."""
    lookup = normalize_scan_token(awb) if is_valid_awb_format(awb) else awb
    shipment = await uow.shipments.find_by_awb(lookup)
    if shipment is None:
        raise ShipmentNotFoundError(f"Shipment {lookup} not found")
    return shipment
