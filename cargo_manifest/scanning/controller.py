"""
Scan input controller: drives one scan input box for one manifest session.

Holds the observable state a scanning screen renders (input value, in-flight
flag, last result, counters and a bounded history) and notifies subscribers
with an immutable snapshot after every change.
"""
import asyncio
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from cargo_manifest.core.config import settings
from cargo_manifest.core.enums import ScanErrorCode, ScanMode, ScanSource, ScanType
from cargo_manifest.core.errors import GatewayError, ValidationError
from cargo_manifest.core.logging import get_logger
from cargo_manifest.schemas.manifest import ManifestRules
from cargo_manifest.schemas.scan import ScanResult
from cargo_manifest.scanning.gateway import ScanGateway
from cargo_manifest.scanning.offline_queue import OfflineScanQueue
from cargo_manifest.scanning.parser import classify_scan_input


logger = get_logger(__name__)


class ScanCue(str, Enum):
    SUCCESS = "success"
    DUPLICATE = "duplicate"
    ERROR = "error"


# Tone frequencies (Hz) for audio adapters that synthesize the cues
CUE_FREQUENCIES: Dict[ScanCue, int] = {
    ScanCue.SUCCESS: 880,
    ScanCue.DUPLICATE: 440,
    ScanCue.ERROR: 220,
}

MODE_SOURCES: Dict[ScanMode, ScanSource] = {
    ScanMode.MANUAL: ScanSource.MANUAL,
    ScanMode.SCANNER: ScanSource.BARCODE_SCANNER,
    ScanMode.CAMERA: ScanSource.CAMERA,
}


class AudioFeedback(Protocol):
    def play(self, cue: ScanCue) -> None:
        ...


class InputFocus(Protocol):
    """The scan input field, as far as focus handling is concerned."""

    def focus(self) -> None:
        ...

    def add_blur_listener(self, listener: Callable[[], None]) -> None:
        ...

    def remove_blur_listener(self, listener: Callable[[], None]) -> None:
        ...


@dataclass(frozen=True)
class ScanCounters:
    success_count: int = 0
    duplicate_count: int = 0
    error_count: int = 0


@dataclass(frozen=True)
class ScanControllerState:
    input_value: str = ""
    is_scanning: bool = False
    last_result: Optional[ScanResult] = None
    counters: ScanCounters = field(default_factory=ScanCounters)
    scan_history: Tuple[ScanResult, ...] = ()
    mode: ScanMode = ScanMode.MANUAL
    can_retry: bool = False


Subscriber = Callable[[ScanControllerState], None]


class ScanInputController:
    """
    At most one scan is in flight per controller. Submits made while one
    is in flight are ignored, not queued.

    Every accepted submit yields exactly one ScanResult: parse failures,
    business rejections, timeouts, transport failures and cancellations
    included.
    """

    def __init__(
        self,
        gateway: ScanGateway,
        manifest_id: str,
        staff_id: Optional[str] = None,
        rules: Optional[ManifestRules] = None,
        mode: ScanMode = ScanMode.MANUAL,
        audio: Optional[AudioFeedback] = None,
        focus: Optional[InputFocus] = None,
        offline_queue: Optional[OfflineScanQueue] = None,
        sound_enabled: bool = True,
        timeout: Optional[float] = None,
        history_limit: Optional[int] = None,
    ):
        self.gateway = gateway
        self.manifest_id = manifest_id
        self.staff_id = staff_id
        self.rules = rules or ManifestRules()
        self.audio = audio
        self.focus = focus
        self.offline_queue = offline_queue
        self.sound_enabled = sound_enabled
        self.timeout = timeout if timeout is not None else settings.SCAN_REQUEST_TIMEOUT_SECONDS
        self.history_limit = history_limit if history_limit is not None else settings.SCAN_HISTORY_LIMIT

        self._state = ScanControllerState(mode=mode)
        self._subscribers: List[Subscriber] = []
        self._last_input: Optional[str] = None
        self._request: Optional[asyncio.Task] = None
        self._cancel_requested = False
        self._wedge_installed = False
        self._closed = False

        if mode == ScanMode.SCANNER:
            self._install_wedge()

    @property
    def state(self) -> ScanControllerState:
        return self._state

    @property
    def last_input(self) -> Optional[str]:
        return self._last_input

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a state listener. Returns the matching unsubscribe function."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _set_state(self, **changes) -> None:
        self._state = replace(self._state, **changes)
        for callback in list(self._subscribers):
            try:
                callback(self._state)
            except Exception:
                logger.exception("Scan state subscriber failed")

    def set_input(self, value: str) -> None:
        if self._state.is_scanning:
            return
        self._set_state(input_value=value)

    def set_rules(self, rules: ManifestRules) -> None:
        self.rules = rules

    def set_sound_enabled(self, enabled: bool) -> None:
        self.sound_enabled = enabled

    def set_mode(self, mode: ScanMode) -> None:
        if mode == self._state.mode:
            return
        if mode == ScanMode.SCANNER:
            self._install_wedge()
        else:
            self._remove_wedge()
        self._set_state(mode=mode)

    def reset_stats(self) -> None:
        self._set_state(counters=ScanCounters(), scan_history=(), last_result=None, can_retry=False)

    async def submit_scan(self, raw: Optional[str] = None) -> Optional[ScanResult]:
        """
        Submit the current input (or ``raw``).

        Returns None when the input is blank, a scan is already in flight
        or the controller is closed.
        """
        if self._closed or self._state.is_scanning:
            return None
        value = (raw if raw is not None else self._state.input_value).strip()
        if not value:
            return None

        self._last_input = value
        self._set_state(is_scanning=True, can_retry=False)
        try:
            result = await self._process(value)
        finally:
            self._request = None
            self._cancel_requested = False
            self._set_state(is_scanning=False)

        self._record(result)
        return result

    async def retry_last(self) -> Optional[ScanResult]:
        if not self._last_input:
            return None
        return await self.submit_scan(self._last_input)

    def abort(self) -> bool:
        """Cancel the in-flight request. It resolves to REQUEST_CANCELLED."""
        if self._request is None or self._request.done():
            return False
        self._cancel_requested = True
        self._request.cancel()
        return True

    def close(self) -> None:
        """Tear down: cancel any request and remove the focus listener."""
        self.abort()
        self._remove_wedge()
        self._subscribers.clear()
        self._closed = True

    async def _process(self, value: str) -> ScanResult:
        source = MODE_SOURCES[self._state.mode]
        try:
            token = classify_scan_input(value)
        except ValidationError as e:
            return ScanResult.failure(ScanErrorCode.INVALID_SCAN, e.message, source=source)

        if token.type != ScanType.SHIPMENT:
            return ScanResult.failure(
                ScanErrorCode.INVALID_SCAN_TYPE,
                f"Expected a shipment barcode, got a {token.type.value} code",
                source=source,
            )

        if self.offline_queue is not None and not self.offline_queue.is_online:
            self._enqueue(token.awb, source)
            return ScanResult.failure(
                ScanErrorCode.NETWORK_ERROR,
                "Offline: scan queued for sync",
                awb_number=token.awb,
                source=source,
            )

        self._request = asyncio.ensure_future(asyncio.wait_for(
            self.gateway.submit_scan(
                self.manifest_id,
                token.awb,
                source=source,
                staff_id=self.staff_id,
                rules=self.rules,
            ),
            timeout=self.timeout,
        ))
        try:
            return await self._request
        except asyncio.CancelledError:
            if not self._cancel_requested:
                raise
            logger.info("Scan request cancelled", extra={"manifest_id": self.manifest_id})
            return ScanResult.failure(
                ScanErrorCode.REQUEST_CANCELLED,
                "Scan cancelled, tap retry to resend",
                awb_number=token.awb,
                source=source,
            )
        except asyncio.TimeoutError:
            logger.warning(
                f"Scan request timed out after {self.timeout:g}s",
                extra={"manifest_id": self.manifest_id},
            )
            self._enqueue(token.awb, source)
            return ScanResult.failure(
                ScanErrorCode.NETWORK_TIMEOUT,
                "Request timed out",
                awb_number=token.awb,
                source=source,
            )
        except GatewayError as e:
            if e.retryable:
                self._enqueue(token.awb, source)
            return ScanResult.failure(
                ScanErrorCode(e.code),
                e.message,
                awb_number=token.awb,
                source=source,
            )
        except Exception:
            logger.exception("Scan failed", extra={"manifest_id": self.manifest_id})
            return ScanResult.failure(
                ScanErrorCode.SYSTEM_ERROR,
                "Failed to process scan",
                awb_number=token.awb,
                source=source,
            )

    def _enqueue(self, awb: str, source: ScanSource) -> None:
        if self.offline_queue is None:
            return
        self.offline_queue.add_scan(
            awb,
            type=ScanType.SHIPMENT,
            source=source,
            staff_id=self.staff_id,
            manifest_id=self.manifest_id,
            rules=self.rules,
        )

    def _record(self, result: ScanResult) -> None:
        counters = self._state.counters
        if result.success and result.duplicate:
            counters = replace(counters, duplicate_count=counters.duplicate_count + 1)
            cue = ScanCue.DUPLICATE
        elif result.success:
            counters = replace(counters, success_count=counters.success_count + 1)
            cue = ScanCue.SUCCESS
        else:
            counters = replace(counters, error_count=counters.error_count + 1)
            cue = ScanCue.ERROR

        history = ((result,) + self._state.scan_history)[:self.history_limit]
        self._set_state(
            input_value="",
            last_result=result,
            counters=counters,
            scan_history=history,
            can_retry=result.error == ScanErrorCode.REQUEST_CANCELLED,
        )
        self._play(cue)
        self._refocus()

    def _play(self, cue: ScanCue) -> None:
        if not (self.sound_enabled and self.audio):
            return
        # Fire and forget: playback runs after the result is published
        asyncio.get_running_loop().call_soon(self._play_now, cue)

    def _play_now(self, cue: ScanCue) -> None:
        try:
            self.audio.play(cue)
        except Exception:
            logger.warning("Audio feedback failed", exc_info=True)

    def _refocus(self) -> None:
        if self.focus is not None and not self._closed:
            self.focus.focus()

    # Keyboard wedge: scanner keystrokes must always land in the input

    def _on_blur(self) -> None:
        if self.focus is not None:
            self.focus.focus()

    def _install_wedge(self) -> None:
        if self.focus is None or self._wedge_installed:
            return
        self.focus.add_blur_listener(self._on_blur)
        self.focus.focus()
        self._wedge_installed = True

    def _remove_wedge(self) -> None:
        if self.focus is None or not self._wedge_installed:
            return
        self.focus.remove_blur_listener(self._on_blur)
        self._wedge_installed = False
