"""Contract between scanning clients and whatever applies their scans."""
from typing import Optional, Protocol

from cargo_manifest.core.enums import ScanSource
from cargo_manifest.schemas.manifest import ManifestRules
from cargo_manifest.schemas.scan import QueuedScanEvent, ScanResult


class ScanGateway(Protocol):
    """Applies scans in-process (LocalScanGateway) or over HTTP (HttpScanGateway).

    Business rejections come back as failed ScanResults; transport
    failures are raised as GatewayError.
    """

    async def submit_scan(
        self,
        manifest_id: str,
        token: str,
        *,
        source: ScanSource = ScanSource.MANUAL,
        staff_id: Optional[str] = None,
        rules: Optional[ManifestRules] = None,
    ) -> ScanResult:
        ...

    async def sync_scan(self, event: QueuedScanEvent) -> ScanResult:
        ...
