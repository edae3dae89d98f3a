import httpx
from typing import Optional

from cargo_manifest.core.config import settings
from cargo_manifest.core.enums import ScanSource
from cargo_manifest.core.errors import GatewayError, GatewayTimeoutError
from cargo_manifest.core.logging import get_logger
from cargo_manifest.schemas.manifest import ManifestRules
from cargo_manifest.schemas.scan import QueuedScanEvent, ScanRequest, ScanResult

logger = get_logger(__name__)


class HttpScanGateway:
    """
    ScanGateway talking to a remote Cargo Manifest API.

    No retries here: a timeout or transport failure is raised as a
    GatewayError and left to the caller (controller result or offline queue).
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url or settings.MANIFEST_API_URL or "").rstrip("/")
        self.token = token if token is not None else settings.MANIFEST_API_TOKEN
        self.timeout = timeout if timeout is not None else settings.SCAN_REQUEST_TIMEOUT_SECONDS
        self._client = client
        if not self.base_url and client is None:
            raise GatewayError("MANIFEST_API_URL not set", retryable=False)

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def submit_scan(
        self,
        manifest_id: str,
        token: str,
        *,
        source: ScanSource = ScanSource.MANUAL,
        staff_id: Optional[str] = None,
        rules: Optional[ManifestRules] = None,
    ) -> ScanResult:
        body = ScanRequest(
            token=token,
            source=source,
            staff_id=staff_id,
            rules=rules or ManifestRules(),
        )
        return await self._post(
            f"{settings.API_V1_PREFIX}/manifests/{manifest_id}/scan",
            body.model_dump(mode="json"),
        )

    async def sync_scan(self, event: QueuedScanEvent) -> ScanResult:
        return await self._post(
            f"{settings.API_V1_PREFIX}/scans/sync",
            event.model_dump(mode="json"),
        )

    async def _post(self, path: str, payload: dict) -> ScanResult:
        url = f"{self.base_url}{path}"
        try:
            if self._client is not None:
                response = await self._client.post(url, json=payload, headers=self._headers(), timeout=self.timeout)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(url, json=payload, headers=self._headers(), timeout=self.timeout)
        except httpx.TimeoutException:
            logger.warning(f"Timeout calling manifest API: {path}")
            raise GatewayTimeoutError(f"Request timed out after {self.timeout:g}s")
        except httpx.TransportError as e:
            logger.error(f"Transport error calling manifest API {path}: {e}")
            raise GatewayError(f"Network error: {e}")

        if response.is_error:
            logger.error(f"Manifest API {path} failed with status {response.status_code}. Response: {response.text}")
            # 4xx means the request itself is wrong; resending it will not help
            raise GatewayError(
                f"Manifest API returned {response.status_code}",
                code="NETWORK_ERROR" if response.status_code >= 500 else "SYSTEM_ERROR",
                retryable=response.status_code >= 500,
            )

        return ScanResult.model_validate(response.json())
