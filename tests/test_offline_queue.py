"""Offline scan queue tests."""
import asyncio
import json
from typing import List, Optional

import pytest

from cargo_manifest.core.enums import ScanErrorCode, ScanType
from cargo_manifest.core.errors import GatewayError
from cargo_manifest.schemas.scan import QueuedScanEvent, ScanResult
from cargo_manifest.scanning.offline_queue import (
    InMemoryScanQueueStore,
    JsonFileScanQueueStore,
    OfflineScanQueue,
    SyncReport,
)
from cargo_manifest.scanning.service import LocalScanGateway


class ScriptedGateway:
    """Replays queued scans, answering from a script of results or errors."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.synced: List[str] = []
        self.release: Optional[asyncio.Event] = None

    async def submit_scan(self, manifest_id, token, **kwargs):
        raise AssertionError("queue must not submit scans directly")

    async def sync_scan(self, event: QueuedScanEvent) -> ScanResult:
        if self.release is not None:
            await self.release.wait()
        self.synced.append(event.code)
        outcome = self.outcomes.pop(0) if self.outcomes else ScanResult(success=True)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _store(*codes):
    return InMemoryScanQueueStore([QueuedScanEvent(code=code) for code in codes])


async def _drain():
    for _ in range(5):
        await asyncio.sleep(0)


@pytest.mark.asyncio
async def test_add_scan_offline_keeps_intent():
    store = InMemoryScanQueueStore()
    queue = OfflineScanQueue(ScriptedGateway(), store=store, online=False)

    event = queue.add_scan("TAC00000001", manifest_id="m-1", staff_id="staff-0001")

    assert queue.get_pending_scans() == [event]
    assert [s.id for s in store.load()] == [event.id]
    assert await queue.retry_sync() is None


@pytest.mark.asyncio
async def test_newest_scan_first():
    queue = OfflineScanQueue(ScriptedGateway(), online=False)
    queue.add_scan("TAC00000001")
    queue.add_scan("TAC00000002")
    assert [s.code for s in queue.scans] == ["TAC00000002", "TAC00000001"]


@pytest.mark.asyncio
async def test_sync_pass_marks_synced():
    gateway = ScriptedGateway()
    queue = OfflineScanQueue(gateway, online=False)
    queue.add_scan("TAC00000001")
    queue.add_scan("TAC00000002")
    queue.set_online(True)
    await _drain()

    assert sorted(gateway.synced) == ["TAC00000001", "TAC00000002"]
    assert queue.get_pending_scans() == []
    assert all(s.synced_at is not None for s in queue.get_synced_scans())

    assert queue.clear_synced() == 2
    assert queue.scans == []


@pytest.mark.asyncio
async def test_add_scan_online_triggers_sync():
    gateway = ScriptedGateway()
    queue = OfflineScanQueue(gateway)
    queue.add_scan("TAC00000001")
    await _drain()
    assert gateway.synced == ["TAC00000001"]
    assert len(queue.get_synced_scans()) == 1


@pytest.mark.asyncio
async def test_concurrent_sync_pass_is_skipped():
    gateway = ScriptedGateway()
    gateway.release = asyncio.Event()
    queue = OfflineScanQueue(gateway, online=False)
    queue.add_scan("TAC00000001")
    queue.set_online(True)
    await asyncio.sleep(0)

    assert queue.sync_in_progress is True
    assert await queue.retry_sync() is None

    gateway.release.set()
    await _drain()
    assert queue.sync_in_progress is False
    assert gateway.synced == ["TAC00000001"]


@pytest.mark.asyncio
async def test_business_rejection_is_not_retried():
    rejection = ScanResult.failure(ScanErrorCode.SHIPMENT_NOT_FOUND, "Shipment TAC00000001 not found")
    gateway = ScriptedGateway(rejection)
    queue = OfflineScanQueue(gateway, store=_store("TAC00000001"))

    report = await queue.retry_sync()
    assert report == SyncReport(synced=0, failed=1)

    failed = queue.get_failed_scans()
    assert len(failed) == 1
    assert failed[0].error == "Shipment TAC00000001 not found"
    assert failed[0].retryable is False
    assert queue.has_due_scans() is False

    assert await queue.retry_sync() == SyncReport()
    assert gateway.synced == ["TAC00000001"]


@pytest.mark.asyncio
async def test_transport_failures_retried_up_to_max_attempts():
    gateway = ScriptedGateway(*[GatewayError("Network error: refused")] * 3)
    queue = OfflineScanQueue(gateway, store=_store("TAC00000001"), max_attempts=2)

    assert await queue.retry_sync() == SyncReport(synced=0, failed=1)
    assert queue.has_due_scans() is True
    assert await queue.retry_sync() == SyncReport(synced=0, failed=1)
    assert queue.has_due_scans() is False
    assert queue.scans[0].attempts == 2

    # Explicit retry resets the counters; the next attempt succeeds
    gateway.outcomes = []
    report = await queue.retry_failed()
    assert report == SyncReport(synced=1, failed=0)
    assert queue.get_failed_scans() == []


@pytest.mark.asyncio
async def test_unexpected_error_keeps_scan():
    gateway = ScriptedGateway(RuntimeError("boom"))
    queue = OfflineScanQueue(gateway, store=_store("TAC00000001"))

    await queue.retry_sync()
    assert queue.get_failed_scans()[0].error == "boom"
    assert queue.get_failed_scans()[0].retryable is True


def test_json_store_survives_restart(tmp_path):
    path = tmp_path / "queue" / "scans.json"
    queue = OfflineScanQueue(ScriptedGateway(), store=JsonFileScanQueueStore(path), online=False)
    first = queue.add_scan("TAC00000001", manifest_id="m-1")
    second = queue.add_scan("MNF-2026-000001", type=ScanType.MANIFEST)

    document = json.loads(path.read_text(encoding="utf-8"))
    assert document["version"] == 1
    assert len(document["scans"]) == 2

    reloaded = OfflineScanQueue(ScriptedGateway(), store=JsonFileScanQueueStore(path), online=False)
    assert [s.id for s in reloaded.scans] == [second.id, first.id]
    assert reloaded.scans[1].manifest_id == "m-1"
    assert reloaded.scans[0].type == ScanType.MANIFEST


def test_json_store_moves_corrupt_file_aside(tmp_path):
    path = tmp_path / "scans.json"
    path.write_text("{not json", encoding="utf-8")

    store = JsonFileScanQueueStore(path)
    assert store.load() == []
    assert not path.exists()
    assert (tmp_path / "scans.json.corrupt").read_text(encoding="utf-8") == "{not json"


def test_json_store_missing_file(tmp_path):
    assert JsonFileScanQueueStore(tmp_path / "absent.json").load() == []


@pytest.mark.asyncio
async def test_start_stop():
    gateway = ScriptedGateway()
    queue = OfflineScanQueue(gateway, store=_store("TAC00000001"), sync_interval=0.01)

    await queue.start()
    await asyncio.sleep(0.05)
    await queue.stop()

    assert gateway.synced == ["TAC00000001"]
    assert len(queue.get_synced_scans()) == 1


@pytest.mark.asyncio
async def test_replay_through_local_gateway(session_factory, uow, make_manifest, make_shipment):
    """Queued AWBs are joined to the shipment id on replay; replays stay idempotent."""
    manifest = await make_manifest()
    shipment = await make_shipment(awb="TAC00000321")
    store = InMemoryScanQueueStore([
        QueuedScanEvent(code="TAC00000321", manifest_id=manifest.id),
        QueuedScanEvent(code="tac00000321", manifest_id=manifest.id),
    ])
    queue = OfflineScanQueue(LocalScanGateway(session_factory), store=store)

    report = await queue.retry_sync()
    assert report == SyncReport(synced=2, failed=0)

    items = await uow.manifests.list_items(manifest.id)
    assert [item.shipment_id for item in items] == [shipment.id]
    assert (await uow.manifests.find_by_id(manifest.id)).total_shipments == 1


@pytest.mark.asyncio
async def test_scan_added_during_pass_is_synced_by_that_pass():
    gateway = ScriptedGateway()
    gateway.release = asyncio.Event()
    queue = OfflineScanQueue(gateway)

    queue.add_scan("TAC00000001")
    await asyncio.sleep(0)
    assert queue.sync_in_progress is True

    queue.add_scan("TAC00000002")
    await asyncio.sleep(0)

    gateway.release.set()
    for _ in range(10):
        await asyncio.sleep(0)

    assert gateway.synced == ["TAC00000001", "TAC00000002"]
    assert queue.get_pending_scans() == []
    assert queue.sync_in_progress is False


@pytest.mark.asyncio
async def test_system_error_result_is_not_retried():
    gateway = ScriptedGateway(ScanResult.failure(ScanErrorCode.SYSTEM_ERROR, "Manifest API returned 400"))
    queue = OfflineScanQueue(gateway, store=_store("TAC00000001"))

    await queue.retry_sync()

    assert queue.get_failed_scans()[0].retryable is False
    assert queue.has_due_scans() is False


@pytest.mark.parametrize("content", [
    "[]",
    '{"version": 1, "scans": [{"code": ""}]}',
    '{"version": 1, "scans": "TAC00000001"}',
])
def test_json_store_moves_wrong_shape_aside(tmp_path, content):
    path = tmp_path / "scans.json"
    path.write_text(content, encoding="utf-8")

    queue = OfflineScanQueue(ScriptedGateway(), store=JsonFileScanQueueStore(path), online=False)

    assert queue.scans == []
    assert not path.exists()
    assert (tmp_path / "scans.json.corrupt").read_text(encoding="utf-8") == content
