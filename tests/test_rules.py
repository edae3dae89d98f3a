"""Scan validation rule tests."""
from datetime import datetime, timezone

from cargo_manifest.core.enums import ManifestStatus, ManifestType, ScanErrorCode, ShipmentStatus
from cargo_manifest.schemas.manifest import ManifestRules, ManifestSnapshot
from cargo_manifest.schemas.shipment import ShipmentSnapshot
from cargo_manifest.scanning.rules import validate_scan, validate_with_rules


def _manifest(status=ManifestStatus.BUILDING, to_hub_id="hub-bom"):
    return ManifestSnapshot(
        id="m-1",
        manifest_no="MNF-2026-000001",
        type=ManifestType.TRUCK,
        from_hub_id="hub-del",
        to_hub_id=to_hub_id,
        status=status,
        created_at=datetime.now(timezone.utc),
    )


def _shipment(status=ShipmentStatus.RECEIVED_AT_ORIGIN_HUB, destination_hub_id="hub-bom", cod_amount=None):
    return ShipmentSnapshot(
        id="s-1",
        awb_number="TAC00000001",
        status=status,
        origin_hub_id="hub-del",
        destination_hub_id=destination_hub_id,
        cod_amount=cod_amount,
    )


def test_ready_shipment_passes():
    assert validate_scan(_shipment(), _manifest()).ok


def test_closed_manifest_checked_first():
    outcome = validate_scan(
        _shipment(destination_hub_id="hub-blr", status=ShipmentStatus.DELIVERED),
        _manifest(status=ManifestStatus.CLOSED),
    )
    assert not outcome.ok
    assert outcome.error == ScanErrorCode.MANIFEST_CLOSED


def test_closed_manifest_rejects_with_checks_disabled():
    outcome = validate_scan(
        _shipment(), _manifest(status=ManifestStatus.DEPARTED),
        validate_destination=False, validate_status=False,
    )
    assert outcome.error == ScanErrorCode.MANIFEST_CLOSED


def test_destination_before_status():
    outcome = validate_scan(
        _shipment(destination_hub_id="hub-blr", status=ShipmentStatus.DELIVERED),
        _manifest(),
    )
    assert outcome.error == ScanErrorCode.DESTINATION_MISMATCH


def test_destination_check_can_be_bypassed():
    assert validate_scan(_shipment(destination_hub_id="hub-blr"), _manifest(), validate_destination=False).ok


def test_status_not_ready():
    outcome = validate_scan(_shipment(status=ShipmentStatus.LOADED_FOR_LINEHAUL), _manifest())
    assert outcome.error == ScanErrorCode.INVALID_STATUS
    assert validate_scan(
        _shipment(status=ShipmentStatus.LOADED_FOR_LINEHAUL), _manifest(), validate_status=False
    ).ok


def test_rules_map_onto_checks():
    rules = ManifestRules(only_ready=False, match_destination=False)
    shipment = _shipment(destination_hub_id="hub-blr", status=ShipmentStatus.EXCEPTION_RAISED)
    assert validate_with_rules(shipment, _manifest(), rules).ok


def test_cod_excluded():
    rules = ManifestRules(exclude_cod=True)
    outcome = validate_with_rules(_shipment(cod_amount=1250.0), _manifest(), rules)
    assert outcome.error == ScanErrorCode.COD_EXCLUDED
    assert "1250.00" in outcome.message


def test_cod_allowed_by_default():
    assert validate_with_rules(_shipment(cod_amount=1250.0), _manifest(), ManifestRules()).ok


def test_cod_checked_after_other_rules():
    rules = ManifestRules(exclude_cod=True)
    outcome = validate_with_rules(
        _shipment(cod_amount=10.0, destination_hub_id="hub-blr"), _manifest(), rules
    )
    assert outcome.error == ScanErrorCode.DESTINATION_MISMATCH
