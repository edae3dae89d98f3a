"""
Durable queue of scan intents captured while a scanning client cannot
confirm them against the server.

Every intent is appended synchronously and persisted before any network
activity. Sync passes replay pending intents through a ScanGateway; attach
is idempotent on the server, so replaying an intent that did reach the
server is harmless.
"""
import asyncio
import json
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Protocol, Set, Union

from pydantic import ValidationError

from cargo_manifest.core.config import settings
from cargo_manifest.core.enums import ScanSource, ScanType
from cargo_manifest.core.errors import GatewayError
from cargo_manifest.core.logging import get_logger
from cargo_manifest.schemas.manifest import ManifestRules
from cargo_manifest.schemas.scan import QueuedScanEvent
from cargo_manifest.scanning.gateway import ScanGateway


logger = get_logger(__name__)

STORE_VERSION = 1


class ScanQueueStore(Protocol):
    """Persistence port: read once at startup, written after every mutation."""

    def load(self) -> List[QueuedScanEvent]:
        ...

    def save(self, scans: List[QueuedScanEvent]) -> None:
        ...


class InMemoryScanQueueStore:
    """Non-durable store, for tests and short-lived clients."""

    def __init__(self, scans: Optional[List[QueuedScanEvent]] = None):
        self._scans = [s.model_copy() for s in scans or []]

    def load(self) -> List[QueuedScanEvent]:
        return [s.model_copy() for s in self._scans]

    def save(self, scans: List[QueuedScanEvent]) -> None:
        self._scans = [s.model_copy() for s in scans]


class JsonFileScanQueueStore:
    """Queue persisted as a JSON document, replaced atomically on each save."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def load(self) -> List[QueuedScanEvent]:
        if not self.path.exists():
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return [QueuedScanEvent.model_validate(item) for item in data.get("scans", [])]
        except (json.JSONDecodeError, AttributeError, TypeError, ValidationError) as e:
            # Keep the unreadable file for manual recovery instead of overwriting it
            corrupt_path = self.path.with_suffix(self.path.suffix + ".corrupt")
            os.replace(self.path, corrupt_path)
            logger.error(f"Unreadable scan queue {self.path}, moved to {corrupt_path}: {e}")
            return []

    def save(self, scans: List[QueuedScanEvent]) -> None:
        data = {
            "version": STORE_VERSION,
            "saved_at": datetime.now(timezone.utc).isoformat(),
            "scans": [s.model_dump(mode="json") for s in scans],
        }
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="w",
            dir=self.path.parent,
            prefix=".tmp_scan_queue_",
            suffix=".json",
            delete=False,
            encoding="utf-8",
        ) as tmp_file:
            json.dump(data, tmp_file, indent=2)
            tmp_path = tmp_file.name
        os.replace(tmp_path, self.path)


@dataclass(frozen=True)
class SyncReport:
    synced: int = 0
    failed: int = 0


class OfflineScanQueue:
    """
    Offline scan queue.

    Args:
        gateway: Where queued intents are replayed
        store: Persistence port (defaults to non-durable memory)
        online: Whether the client currently believes it is online
        sync_interval: Seconds between scheduled sync passes
        max_attempts: Automatic attempts before a retryable failure waits
            for an explicit retry_failed()
    """

    def __init__(
        self,
        gateway: ScanGateway,
        store: Optional[ScanQueueStore] = None,
        online: bool = True,
        sync_interval: Optional[float] = None,
        max_attempts: Optional[int] = None,
    ):
        self.gateway = gateway
        self.store = store or InMemoryScanQueueStore()
        self.sync_interval = sync_interval if sync_interval is not None else settings.OFFLINE_SYNC_INTERVAL_SECONDS
        self.max_attempts = max_attempts if max_attempts is not None else settings.OFFLINE_MAX_SYNC_ATTEMPTS
        self._online = online
        self._scans: List[QueuedScanEvent] = self.store.load()
        self._sync_in_progress = False
        self._resync_requested = False
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._background: Set[asyncio.Task] = set()

    @property
    def is_online(self) -> bool:
        return self._online

    @property
    def sync_in_progress(self) -> bool:
        return self._sync_in_progress

    @property
    def scans(self) -> List[QueuedScanEvent]:
        return list(self._scans)

    def add_scan(
        self,
        code: str,
        type: ScanType = ScanType.SHIPMENT,
        source: ScanSource = ScanSource.MANUAL,
        hub_id: Optional[str] = None,
        staff_id: Optional[str] = None,
        manifest_id: Optional[str] = None,
        rules: Optional[ManifestRules] = None,
    ) -> QueuedScanEvent:
        """Append a scan intent. Never waits on the network."""
        event = QueuedScanEvent(
            type=type,
            code=code,
            source=source,
            hub_id=hub_id,
            staff_id=staff_id,
            manifest_id=manifest_id,
            rules=rules or ManifestRules(),
        )
        self._scans.insert(0, event)
        self._persist()
        logger.info(
            f"Queued {type.value} scan",
            extra={"scan_id": event.id, "manifest_id": manifest_id, "staff_id": staff_id},
        )

        if self._online:
            self._schedule_sync()
        return event

    def get_pending_scans(self) -> List[QueuedScanEvent]:
        return [s for s in self._scans if not s.synced and s.error is None]

    def get_failed_scans(self) -> List[QueuedScanEvent]:
        return [s for s in self._scans if not s.synced and s.error is not None]

    def get_synced_scans(self) -> List[QueuedScanEvent]:
        return [s for s in self._scans if s.synced]

    def clear_synced(self) -> int:
        before = len(self._scans)
        self._scans = [s for s in self._scans if not s.synced]
        removed = before - len(self._scans)
        if removed:
            self._persist()
        return removed

    def set_online(self, online: bool) -> None:
        was_online = self._online
        self._online = online
        if online and not was_online:
            logger.info("Back online, syncing queued scans")
            self._schedule_sync()
        elif not online and was_online:
            logger.info("Offline, scans will be queued")

    def _is_due(self, scan: QueuedScanEvent) -> bool:
        if scan.synced:
            return False
        if scan.error is None:
            return True
        return scan.retryable and scan.attempts < self.max_attempts

    def has_due_scans(self) -> bool:
        return any(self._is_due(s) for s in self._scans)

    async def retry_sync(self) -> Optional[SyncReport]:
        """
        Run one sync pass over every due scan.

        Returns None without doing anything when offline or when another
        pass is already running. A pass skipped because another one is
        running makes that pass pick up scans added in the meantime.
        """
        if not self._online:
            return None
        if self._sync_in_progress:
            self._resync_requested = True
            return None

        self._sync_in_progress = True
        synced = 0
        failed = 0
        attempted: Set[str] = set()
        try:
            while True:
                self._resync_requested = False
                batch = [s for s in self._scans if self._is_due(s) and s.id not in attempted]
                for scan in batch:
                    attempted.add(scan.id)
                    if await self._sync_one(scan):
                        synced += 1
                    else:
                        failed += 1
                    self._persist()
                if not (self._resync_requested and self._online):
                    break
        finally:
            self._sync_in_progress = False
            self._resync_requested = False

        if synced or failed:
            logger.info(f"Scan sync pass finished: {synced} synced, {failed} failed")
        return SyncReport(synced=synced, failed=failed)

    async def _sync_one(self, scan: QueuedScanEvent) -> bool:
        scan.attempts += 1
        try:
            result = await self.gateway.sync_scan(scan)
        except GatewayError as e:
            logger.warning(f"Transport failure syncing scan {scan.id}: {e.message}", extra={"scan_id": scan.id})
            scan.error = e.message
            scan.retryable = e.retryable
            return False
        except Exception as e:
            logger.error(f"Failed to sync scan {scan.id}: {str(e)}", exc_info=True, extra={"scan_id": scan.id})
            scan.error = str(e) or e.__class__.__name__
            scan.retryable = True
            return False

        if result.success:
            scan.synced = True
            scan.synced_at = datetime.now(timezone.utc)
            scan.error = None
            return True

        scan.error = result.message or (result.error.value if result.error else "Scan rejected")
        scan.retryable = result.retryable
        return False

    async def retry_failed(self) -> Optional[SyncReport]:
        """Clear every failure marker and run a sync pass."""
        reset = 0
        for scan in self._scans:
            if not scan.synced and scan.error is not None:
                scan.error = None
                scan.attempts = 0
                scan.retryable = True
                reset += 1
        if reset:
            self._persist()
            logger.info(f"Reset {reset} failed scans for retry")
        return await self.retry_sync()

    def _persist(self) -> None:
        try:
            self.store.save(self._scans)
        except OSError as e:
            # The in-memory queue still holds every intent; the next save retries
            logger.error(f"CRITICAL: Failed to persist scan queue: {e}", exc_info=True)

    def _schedule_sync(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop: the next explicit or scheduled pass picks the scan up
            return
        task = loop.create_task(self.retry_sync())
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def start(self):
        """Start the periodic sync timer."""
        if self._running:
            logger.warning("Offline scan queue already running")
            return

        self._running = True
        self._task = asyncio.create_task(self._periodic_sync())
        logger.info("Offline scan queue started")

    async def stop(self):
        """Stop the periodic sync timer and wait for scheduled passes."""
        if not self._running:
            return

        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
        logger.info("Offline scan queue stopped")

    async def _periodic_sync(self):
        while self._running:
            await asyncio.sleep(self.sync_interval)
            if not (self._online and self.has_due_scans()):
                continue
            try:
                await self.retry_sync()
            except Exception as e:
                logger.error(f"Error in scheduled scan sync: {str(e)}", exc_info=True)
