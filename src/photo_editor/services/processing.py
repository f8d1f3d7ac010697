"""Background removal client with retry and synthesized progress."""

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

import httpx

from photo_editor.adapters.pillow_codec import ImageCodec
from photo_editor.adapters.segmentation_client import SegmentationProcessor
from photo_editor.domain.errors import ProcessingError
from photo_editor.services.progress import (
    ProgressCallback,
    ProgressEstimator,
    SyntheticProgress,
)

_logger = logging.getLogger(__name__)

PROGRESS_STARTED = 5.0
PROGRESS_SENT = 15.0
PROGRESS_RECEIVED = 90.0
PROGRESS_DONE = 100.0

_CAPABILITY_MESSAGE = (
    "Your system does not support the required imaging features. "
    "Please check the installation and try again."
)
_MEMORY_MESSAGE = "The image is too large to process. Please try a smaller image."
_NETWORK_MESSAGE = (
    "Network error occurred. Please check your connection and try again."
)
_FALLBACK_MESSAGE = "Failed to remove background. Please try again."

_MESSAGE_RULES: tuple[tuple[str, str], ...] = (
    ("webgl", _CAPABILITY_MESSAGE),
    ("memory", _MEMORY_MESSAGE),
    ("network", _NETWORK_MESSAGE),
)


@dataclass
class BackgroundRemovalClient:
    """Submit working images to the segmentation processor."""

    processor: SegmentationProcessor
    codec: ImageCodec
    progress: ProgressEstimator = field(default_factory=SyntheticProgress)
    max_retries: int = 2
    backoff_base_ms: int = 1000
    backoff_cap_ms: int = 5000
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    async def submit(
        self,
        image_bytes: bytes,
        on_progress: ProgressCallback | None = None,
        max_retries: int | None = None,
    ) -> bytes:
        """Return the processed image bytes, retrying failed attempts."""
        report = on_progress or _ignore_progress
        attempts = self.max_retries if max_retries is None else max_retries
        last_error: BaseException | None = None
        for attempt in range(1, attempts + 1):
            try:
                return await self._attempt(image_bytes, report)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                last_error = exc
                _logger.warning(
                    "Background removal failed (attempt %s/%s, status=%s): %s",
                    attempt,
                    attempts,
                    _status_code_from_exception(exc),
                    exc,
                )
                if attempt >= attempts:
                    break
                await self.sleep(self.backoff_delay_ms(attempt) / 1000)

        raise ProcessingError(
            classify_failure(last_error), cause=last_error, attempts=attempts
        )

    def backoff_delay_ms(self, attempt: int) -> int:
        """Return the wait before the attempt following ``attempt``."""
        return min(self.backoff_base_ms * 2 ** (attempt - 1), self.backoff_cap_ms)

    async def _attempt(self, image_bytes: bytes, report: ProgressCallback) -> bytes:
        report(PROGRESS_STARTED)
        report(PROGRESS_SENT)
        ticker = asyncio.create_task(self.progress.run(report))
        try:
            result = await self.processor.remove_background(image_bytes)
        finally:
            ticker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await ticker
        if not result:
            raise RuntimeError("Background removal produced empty result")
        report(PROGRESS_RECEIVED)
        self.codec.verify(result)
        report(PROGRESS_DONE)
        return result


def classify_failure(error: BaseException | None) -> str:
    """Map an underlying failure to a user-facing message."""
    if error is None:
        return _FALLBACK_MESSAGE
    if isinstance(error, httpx.TransportError):
        return _NETWORK_MESSAGE
    if isinstance(error, MemoryError):
        return _MEMORY_MESSAGE
    text = str(error)
    lowered = text.lower()
    for needle, message in _MESSAGE_RULES:
        if needle in lowered:
            return message
    return text or _FALLBACK_MESSAGE


def _status_code_from_exception(exc: BaseException) -> str:
    """Extract HTTP status code from an exception, if available."""
    status_code = getattr(exc, "status_code", None)
    if status_code is None:
        response = getattr(exc, "response", None)
        status_code = getattr(response, "status_code", None)
    if isinstance(status_code, int):
        return str(status_code)
    return "n/a"


def _ignore_progress(progress: float) -> None:
    return None
