"""Manifest HTTP API tests."""
import json

import pytest
from httpx import AsyncClient


def _manifest_body(**overrides):
    body = {
        "type": "TRUCK",
        "from_hub_id": "hub-del",
        "to_hub_id": "hub-bom",
        "vehicle_number": "MH-01-AB-1234",
        "driver_name": "Suresh",
    }
    body.update(overrides)
    return body


async def _create(client: AsyncClient, headers: dict, **overrides) -> dict:
    response = await client.post("/api/v1/manifests", headers=headers, json=_manifest_body(**overrides))
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.asyncio
async def test_create_manifest(client: AsyncClient, auth_headers: dict):
    """Test manifest creation stamps the staff id from the token."""
    data = await _create(client, auth_headers)

    assert data["status"] == "BUILDING"
    assert data["type"] == "TRUCK"
    assert data["manifest_no"].startswith("MNF-")
    assert data["created_by_staff_id"] == "staff-0001"
    assert data["vehicle_meta"] == {"vehicle_no": "MH-01-AB-1234", "driver_name": "Suresh"}
    assert data["total_shipments"] == 0


@pytest.mark.asyncio
async def test_create_manifest_anonymous(client: AsyncClient):
    response = await client.post("/api/v1/manifests", json=_manifest_body(status="DRAFT"))
    assert response.status_code == 201
    assert response.json()["status"] == "DRAFT"
    assert response.json()["created_by_staff_id"] is None


@pytest.mark.asyncio
async def test_create_manifest_invalid(client: AsyncClient, auth_headers: dict):
    response = await client.post(
        "/api/v1/manifests", headers=auth_headers, json=_manifest_body(to_hub_id="hub-del")
    )
    assert response.status_code == 422
    assert response.json()["code"] == "INVALID_REQUEST"

    response = await client.post(
        "/api/v1/manifests", headers=auth_headers, json=_manifest_body(status="CLOSED")
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_invalid_token_rejected(client: AsyncClient):
    response = await client.post(
        "/api/v1/manifests",
        headers={"Authorization": "Bearer not-a-token"},
        json=_manifest_body(),
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_get_and_list_manifests(client: AsyncClient, auth_headers: dict):
    created = await _create(client, auth_headers)
    await _create(client, auth_headers, type="AIR", flight_number="AI-887", to_hub_id="hub-blr")

    response = await client.get(f"/api/v1/manifests/{created['id']}")
    assert response.status_code == 200
    assert response.json()["manifest_no"] == created["manifest_no"]

    response = await client.get("/api/v1/manifests")
    assert response.json()["total"] == 2

    response = await client.get("/api/v1/manifests", params={"type": "AIR"})
    data = response.json()
    assert data["total"] == 1
    assert data["manifests"][0]["vehicle_meta"] == {"flight_no": "AI-887"}

    response = await client.get("/api/v1/manifests", params={"to_hub_id": "hub-bom", "status": "BUILDING"})
    assert [m["id"] for m in response.json()["manifests"]] == [created["id"]]


@pytest.mark.asyncio
async def test_get_manifest_not_found(client: AsyncClient):
    response = await client.get("/api/v1/manifests/missing")
    assert response.status_code == 404
    assert response.json()["code"] == "MANIFEST_NOT_FOUND"


@pytest.mark.asyncio
async def test_scan_flow(client: AsyncClient, auth_headers: dict, make_shipment):
    """Scan, re-scan, list items, remove and close."""
    manifest = await _create(client, auth_headers)
    shipment = await make_shipment(awb="TAC00000501", package_count=2, total_weight="5.000")

    response = await client.post(
        f"/api/v1/manifests/{manifest['id']}/scan",
        headers=auth_headers,
        json={"token": "tac00000501", "source": "barcode-scanner"},
    )
    assert response.status_code == 200
    first = response.json()
    assert first["success"] is True
    assert first["duplicate"] is False
    assert first["current_status"] == "LOADED_FOR_LINEHAUL"

    response = await client.post(
        f"/api/v1/manifests/{manifest['id']}/scan",
        headers=auth_headers,
        json={"token": "TAC00000501"},
    )
    second = response.json()
    assert second["success"] is True
    assert second["duplicate"] is True
    assert second["manifest_item_id"] == first["manifest_item_id"]

    response = await client.get(f"/api/v1/manifests/{manifest['id']}")
    assert response.json()["total_shipments"] == 1
    assert response.json()["total_packages"] == 2

    response = await client.get(f"/api/v1/manifests/{manifest['id']}/items")
    items = response.json()
    assert len(items) == 1
    assert items[0]["scanned_by_staff_id"] == "staff-0001"
    assert items[0]["shipment"]["awb_number"] == "TAC00000501"

    response = await client.delete(
        f"/api/v1/manifests/{manifest['id']}/items/{shipment.id}", headers=auth_headers
    )
    assert response.status_code == 200
    assert response.json()["removed"] is True
    assert response.json()["manifest"]["total_shipments"] == 0

    response = await client.delete(f"/api/v1/manifests/{manifest['id']}/items/{shipment.id}")
    assert response.json()["removed"] is False


@pytest.mark.asyncio
async def test_scan_rejections_answer_200(client: AsyncClient, auth_headers: dict, make_shipment):
    manifest = await _create(client, auth_headers)
    await make_shipment(awb="TAC00000601", destination_hub_id="hub-blr")

    response = await client.post(
        f"/api/v1/manifests/{manifest['id']}/scan", json={"token": "TAC00000601"}
    )
    assert response.status_code == 200
    assert response.json()["error"] == "DESTINATION_MISMATCH"

    response = await client.post(
        f"/api/v1/manifests/{manifest['id']}/scan",
        json={"token": "TAC00000601", "rules": {"match_destination": False}},
    )
    assert response.json()["success"] is True

    response = await client.post(f"/api/v1/manifests/{manifest['id']}/scan", json={"token": "garbage"})
    assert response.json()["error"] == "INVALID_SCAN"


@pytest.mark.asyncio
async def test_close_and_lifecycle(client: AsyncClient, auth_headers: dict, make_shipment):
    manifest = await _create(client, auth_headers)

    response = await client.post(f"/api/v1/manifests/{manifest['id']}/close", headers=auth_headers)
    assert response.status_code == 409
    assert response.json()["code"] == "EMPTY_MANIFEST"

    await make_shipment(awb="TAC00000701")
    await client.post(f"/api/v1/manifests/{manifest['id']}/scan", json={"token": "TAC00000701"})

    response = await client.post(f"/api/v1/manifests/{manifest['id']}/close", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "CLOSED"
    assert response.json()["closed_by_staff_id"] == "staff-0001"

    response = await client.post(f"/api/v1/manifests/{manifest['id']}/status", json={"status": "OPEN"})
    assert response.status_code == 409
    assert response.json()["code"] == "ILLEGAL_TRANSITION"

    for next_status in ("DEPARTED", "ARRIVED", "RECONCILED"):
        response = await client.post(
            f"/api/v1/manifests/{manifest['id']}/status",
            headers=auth_headers,
            json={"status": next_status},
        )
        assert response.status_code == 200
        assert response.json()["status"] == next_status

    assert response.json()["reconciled_by_staff_id"] == "staff-0001"


@pytest.mark.asyncio
async def test_save_as_open(client: AsyncClient, auth_headers: dict):
    manifest = await _create(client, auth_headers)
    response = await client.post(f"/api/v1/manifests/{manifest['id']}/open", headers=auth_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "OPEN"


@pytest.mark.asyncio
async def test_qr_and_csv_export(client: AsyncClient, auth_headers: dict, make_shipment):
    manifest = await _create(client, auth_headers)
    await make_shipment(awb="TAC00000801", receiver_name="Meera Iyer")
    await client.post(f"/api/v1/manifests/{manifest['id']}/scan", json={"token": "TAC00000801"})

    response = await client.get(f"/api/v1/manifests/{manifest['id']}/qr")
    payload = json.loads(response.json()["payload"])
    assert payload["type"] == "manifest"
    assert payload["id"] == manifest["id"]
    assert payload["manifestNo"] == manifest["manifest_no"]

    response = await client.get(f"/api/v1/manifests/{manifest['id']}/export.csv")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    lines = response.text.strip().splitlines()
    assert lines[0].startswith("awb_number,receiver_name")
    assert lines[1].startswith("TAC00000801,Meera Iyer")


@pytest.mark.asyncio
async def test_shipment_lookup(client: AsyncClient, make_shipment):
    await make_shipment(awb="607-12345678")

    response = await client.get("/api/v1/shipments/by-awb/60712345678")
    assert response.status_code == 200
    assert response.json()["awb_number"] == "607-12345678"

    response = await client.get("/api/v1/shipments/by-awb/TAC99999999")
    assert response.status_code == 404
    assert response.json()["code"] == "SHIPMENT_NOT_FOUND"


@pytest.mark.asyncio
async def test_parse_endpoint(client: AsyncClient):
    response = await client.post("/api/v1/scans/parse", json={"raw": "607 12345678"})
    assert response.status_code == 200
    assert response.json()["type"] == "shipment"
    assert response.json()["awb"] == "607-12345678"

    response = await client.post("/api/v1/scans/parse", json={"raw": "hello"})
    assert response.status_code == 422
    assert response.json()["code"] == "INVALID_SCAN"


@pytest.mark.asyncio
async def test_sync_endpoint(client: AsyncClient, auth_headers: dict, make_shipment):
    manifest = await _create(client, auth_headers)
    shipment = await make_shipment(awb="TAC00000901")

    event = {"id": "scan_abc123", "code": "tac00000901", "manifest_id": manifest["id"]}
    response = await client.post("/api/v1/scans/sync", json=event)
    assert response.status_code == 200
    assert response.json()["success"] is True
    assert response.json()["shipment_id"] == shipment.id

    response = await client.post("/api/v1/scans/sync", json=event)
    assert response.json()["duplicate"] is True


@pytest.mark.asyncio
async def test_health_check(client: AsyncClient):
    response = await client.get("/api/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
