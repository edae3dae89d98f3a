"""Scan validation rules: pure decisions, no I/O."""
from dataclasses import dataclass
from typing import Optional

from cargo_manifest.core.enums import ScanErrorCode, ShipmentStatus
from cargo_manifest.schemas.manifest import ManifestRules, ManifestSnapshot
from cargo_manifest.schemas.shipment import ShipmentSnapshot
from cargo_manifest.scanning.state_machine import is_editable


# Shipment statuses that may be loaded onto a manifest
READY_STATUSES = frozenset({
    ShipmentStatus.RECEIVED,
    ShipmentStatus.CREATED,
    ShipmentStatus.PICKED_UP,
    ShipmentStatus.RECEIVED_AT_ORIGIN_HUB,
})


@dataclass(frozen=True)
class ValidationOutcome:
    ok: bool
    error: Optional[ScanErrorCode] = None
    message: str = ""

    @classmethod
    def passed(cls) -> "ValidationOutcome":
        return cls(ok=True)

    @classmethod
    def rejected(cls, error: ScanErrorCode, message: str) -> "ValidationOutcome":
        return cls(ok=False, error=error, message=message)


def validate_scan(
    shipment: ShipmentSnapshot,
    manifest: ManifestSnapshot,
    validate_destination: bool = True,
    validate_status: bool = True,
) -> ValidationOutcome:
    """
    Decide whether a shipment may be attached to a manifest.

    Checks short-circuit in this order: manifest editable, destination
    match, shipment status ready.
    """
    if not is_editable(manifest.status):
        return ValidationOutcome.rejected(
            ScanErrorCode.MANIFEST_CLOSED,
            f"Cannot add items to a manifest in status {manifest.status.value}",
        )

    if validate_destination and shipment.destination_hub_id != manifest.to_hub_id:
        return ValidationOutcome.rejected(
            ScanErrorCode.DESTINATION_MISMATCH,
            "Shipment destination does not match manifest destination",
        )

    if validate_status and shipment.status not in READY_STATUSES:
        return ValidationOutcome.rejected(
            ScanErrorCode.INVALID_STATUS,
            f"Shipment status is not eligible for manifesting: {shipment.status.value}",
        )

    return ValidationOutcome.passed()


def validate_with_rules(
    shipment: ShipmentSnapshot,
    manifest: ManifestSnapshot,
    rules: ManifestRules,
) -> ValidationOutcome:
    """validate_scan driven by a rule set, followed by the COD exclusion."""
    outcome = validate_scan(
        shipment,
        manifest,
        validate_destination=rules.validate_destination,
        validate_status=rules.validate_status,
    )
    if not outcome.ok:
        return outcome
    return check_cod_exclusion(shipment, rules)


def check_cod_exclusion(shipment: ShipmentSnapshot, rules: ManifestRules) -> ValidationOutcome:
    if rules.exclude_cod and shipment.has_cod:
        return ValidationOutcome.rejected(
            ScanErrorCode.COD_EXCLUDED,
            f"COD shipments are excluded from this manifest ({shipment.cod_amount:.2f})",
        )
    return ValidationOutcome.passed()
