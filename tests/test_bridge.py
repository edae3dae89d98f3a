"""Remote scan gateway tests."""
import json

import httpx
import pytest

from cargo_manifest.core.enums import ScanSource
from cargo_manifest.core.errors import GatewayError, GatewayTimeoutError
from cargo_manifest.core.bridge import HttpScanGateway
from cargo_manifest.schemas.manifest import ManifestRules
from cargo_manifest.schemas.scan import QueuedScanEvent


BASE_URL = "http://manifest.test"


def _gateway(handler) -> HttpScanGateway:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpScanGateway(base_url=BASE_URL, token="svc-token", client=client)


@pytest.mark.asyncio
async def test_submit_scan_posts_request():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"success": True, "awb_number": "TAC00000001", "message": "ok"})

    result = await _gateway(handler).submit_scan(
        "m-1", "TAC00000001",
        source=ScanSource.CAMERA,
        staff_id="staff-0001",
        rules=ManifestRules(exclude_cod=True),
    )

    assert result.success is True
    assert result.awb_number == "TAC00000001"
    assert seen["url"] == f"{BASE_URL}/api/v1/manifests/m-1/scan"
    assert seen["auth"] == "Bearer svc-token"
    assert seen["body"]["token"] == "TAC00000001"
    assert seen["body"]["source"] == "camera"
    assert seen["body"]["rules"]["exclude_cod"] is True


@pytest.mark.asyncio
async def test_sync_scan_posts_event():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"success": False, "error": "SHIPMENT_NOT_FOUND"})

    event = QueuedScanEvent(code="TAC00000001", manifest_id="m-1")
    result = await _gateway(handler).sync_scan(event)

    assert seen["path"] == "/api/v1/scans/sync"
    assert seen["body"]["id"] == event.id
    assert result.success is False
    assert result.retryable is False


@pytest.mark.asyncio
async def test_timeout_raises_gateway_timeout():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(GatewayTimeoutError) as exc_info:
        await _gateway(handler).submit_scan("m-1", "TAC00000001")
    assert exc_info.value.code == "NETWORK_TIMEOUT"
    assert exc_info.value.retryable is True


@pytest.mark.asyncio
async def test_connect_error_is_retryable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(GatewayError) as exc_info:
        await _gateway(handler).submit_scan("m-1", "TAC00000001")
    assert exc_info.value.code == "NETWORK_ERROR"
    assert exc_info.value.retryable is True


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code, code, retryable", [
    (503, "NETWORK_ERROR", True),
    (422, "SYSTEM_ERROR", False),
])
async def test_error_status_mapping(status_code, code, retryable):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json={"detail": "nope"})

    with pytest.raises(GatewayError) as exc_info:
        await _gateway(handler).submit_scan("m-1", "TAC00000001")
    assert exc_info.value.code == code
    assert exc_info.value.retryable is retryable


def test_requires_base_url(monkeypatch):
    from cargo_manifest.core.config import settings

    monkeypatch.setattr(settings, "MANIFEST_API_URL", None)
    with pytest.raises(GatewayError) as exc_info:
        HttpScanGateway()
    assert exc_info.value.retryable is False
