"""Segmentation processor HTTP client."""

from dataclasses import dataclass
from typing import Protocol

import httpx
from pydantic import ValidationError

from photo_editor.domain.processing import ProcessorErrorPayload


class SegmentationProcessor(Protocol):
    """Interface for the external background removal processor."""

    async def remove_background(self, image_bytes: bytes) -> bytes:
        """Return the image with its background removed."""


class ProcessorResponseError(RuntimeError):
    """Raised when the processor answers with a non-success status."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass
class HttpxSegmentationProcessor(SegmentationProcessor):
    """Segmentation processor reached over HTTP with httpx."""

    url: str
    http_client: httpx.AsyncClient
    timeout_seconds: float = 60.0

    @classmethod
    def create(
        cls, url: str, timeout_seconds: float = 60.0
    ) -> "HttpxSegmentationProcessor":
        """Create a processor client with a managed httpx session."""
        return cls(
            url=url, http_client=httpx.AsyncClient(), timeout_seconds=timeout_seconds
        )

    async def remove_background(self, image_bytes: bytes) -> bytes:
        """Post the image as multipart form data and return the result body."""
        response = await self.http_client.post(
            self.url,
            files={"image": ("image", image_bytes, "application/octet-stream")},
            timeout=self.timeout_seconds,
        )
        if response.is_error:
            raise ProcessorResponseError(
                _error_message(response), status_code=response.status_code
            )
        return response.content

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()


def _error_message(response: httpx.Response) -> str:
    """Read the processor error payload, falling back to the status code."""
    try:
        payload = ProcessorErrorPayload.model_validate_json(response.content)
    except ValidationError:
        payload = ProcessorErrorPayload()
    return payload.error or f"HTTP error! status: {response.status_code}"
