"""
Scan token parsing.

Two independent grammars live here:

* the carrier's own tokens - raw ``TAC########`` AWBs, version-1 JSON QR
  payloads and ``MNF-YYYY-NNNNNN`` manifest numbers (``parse_scan_input``);
* IATA air waybill numbers - 3-digit airline prefix plus 8-digit serial
  (``normalize_scan_token`` / ``is_valid_awb_format``).
"""
import json
import re
from typing import Any, Dict, Optional

from cargo_manifest.core.enums import ScanType
from cargo_manifest.core.errors import ValidationError
from cargo_manifest.schemas.scan import ScanToken


AWB_PATTERN = re.compile(r"^TAC\d{8}$", re.IGNORECASE)
MANIFEST_NO_PATTERN = re.compile(r"^MNF-\d{4}-\d{6}$", re.IGNORECASE)
IATA_AWB_PATTERN = re.compile(r"^(\d{3})(\d{8})$")
IATA_AWB_FORMAT = re.compile(r"^\d{3}-?\d{8}$")
_IATA_STRIP = re.compile(r"[\s\-_]")

PAYLOAD_VERSION = 1
ECHO_LIMIT = 20


def parse_scan_input(raw: str) -> ScanToken:
    """
    Classify raw scanner or keyboard input.

    Tried in order, first match wins:
    1. Raw AWB: TAC12345678
    2. JSON payload: {"v":1,"awb":"TAC12345678"}, {"v":1,"type":"manifest",...},
       {"v":1,"type":"package","packageId":"PKG-001"}
    3. Manifest number: MNF-2024-000123

    Raises:
        ValidationError: input is empty or matches none of the formats
    """
    trimmed = (raw or "").strip()
    if not trimmed:
        raise ValidationError("Empty scan input")

    if AWB_PATTERN.match(trimmed):
        return ScanToken(type=ScanType.SHIPMENT, awb=trimmed.upper(), raw=trimmed)

    if trimmed.startswith("{"):
        return _parse_payload(trimmed)

    if MANIFEST_NO_PATTERN.match(trimmed):
        return ScanToken(type=ScanType.MANIFEST, manifest_no=trimmed.upper(), raw=trimmed)

    suffix = "..." if len(trimmed) > ECHO_LIMIT else ""
    raise ValidationError(f"Invalid scan format: {trimmed[:ECHO_LIMIT]}{suffix}")


def _parse_payload(trimmed: str) -> ScanToken:
    try:
        payload = json.loads(trimmed)
    except json.JSONDecodeError:
        raise ValidationError("Invalid JSON in scan input")

    if not isinstance(payload, dict):
        raise ValidationError("Invalid scan payload structure")

    # bool is an int subclass; {"v": true} must not pass as version 1
    version = payload.get("v")
    if type(version) is not int or version != PAYLOAD_VERSION:
        raise ValidationError("Unsupported scan payload version")

    metadata = payload.get("metadata")
    if metadata is not None and not isinstance(metadata, dict):
        raise ValidationError("Scan payload metadata must be an object")

    scan_type = payload.get("type")

    if scan_type == ScanType.MANIFEST.value:
        manifest_id = _optional_str(payload, "id")
        manifest_no = _optional_str(payload, "manifestNo")
        if not manifest_id and not manifest_no:
            raise ValidationError("Manifest scan requires id or manifestNo")
        return ScanToken(
            type=ScanType.MANIFEST,
            manifest_id=manifest_id,
            manifest_no=manifest_no.upper() if manifest_no else None,
            route=_optional_str(payload, "route"),
            metadata=metadata,
            raw=trimmed,
        )

    if scan_type == ScanType.PACKAGE.value:
        package_id = _optional_str(payload, "packageId")
        if not package_id:
            raise ValidationError("Package scan requires packageId")
        awb = _optional_str(payload, "awb")
        return ScanToken(
            type=ScanType.PACKAGE,
            package_id=package_id,
            awb=awb.upper() if awb else None,
            metadata=metadata,
            raw=trimmed,
        )

    awb = _optional_str(payload, "awb")
    if awb:
        if not AWB_PATTERN.match(awb):
            raise ValidationError("Invalid AWB format in payload")
        return ScanToken(type=ScanType.SHIPMENT, awb=awb.upper(), metadata=metadata, raw=trimmed)

    raise ValidationError("Invalid scan payload structure")


def _optional_str(payload: Dict[str, Any], key: str) -> Optional[str]:
    value = payload.get(key)
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValidationError(f"Scan payload field '{key}' must be a string")
    return value


def is_valid_awb(code: str) -> bool:
    """True for carrier AWBs (TAC + 8 digits, any case)."""
    return bool(code) and AWB_PATTERN.match(code) is not None


def generate_manifest_qr_payload(
    manifest_id: str,
    manifest_no: str,
    from_hub_code: str,
    to_hub_code: str,
) -> str:
    """Version-1 QR payload identifying a manifest."""
    return json.dumps({
        "v": PAYLOAD_VERSION,
        "type": ScanType.MANIFEST.value,
        "id": manifest_id,
        "manifestNo": manifest_no,
        "route": f"{from_hub_code}-{to_hub_code}",
    })


def generate_shipment_qr_payload(awb: str) -> str:
    """Version-1 QR payload identifying a shipment."""
    return json.dumps({"v": PAYLOAD_VERSION, "awb": awb.upper()})


def normalize_scan_token(token: str) -> str:
    """
    Normalize a raw token for IATA air waybill matching.

    Whitespace, hyphens and underscores are stripped and the result is
    upper-cased. Exactly 11 digits are re-hyphenated as prefix-serial
    (12312345678 -> 123-12345678); anything else is returned cleaned.
    """
    if not token:
        return ""
    normalized = _IATA_STRIP.sub("", token.strip()).upper()
    match = IATA_AWB_PATTERN.match(normalized)
    if match:
        return f"{match.group(1)}-{match.group(2)}"
    return normalized


def is_valid_awb_format(token: str) -> bool:
    """True when the token normalizes to an IATA air waybill number."""
    return IATA_AWB_FORMAT.match(normalize_scan_token(token)) is not None


def classify_scan_input(raw: str) -> ScanToken:
    """
    parse_scan_input, falling back to the IATA grammar.

    An input the carrier grammar rejects but which is a valid IATA air
    waybill number is returned as a shipment token carrying the
    normalized ``NNN-NNNNNNNN`` form.
    """
    try:
        return parse_scan_input(raw)
    except ValidationError:
        if raw and is_valid_awb_format(raw):
            return ScanToken(type=ScanType.SHIPMENT, awb=normalize_scan_token(raw), raw=raw.strip())
        raise
