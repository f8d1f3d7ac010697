"""Tests for HTTP-based adapters."""

import asyncio

import httpx
import pytest

from photo_editor.adapters.segmentation_client import (
    HttpxSegmentationProcessor,
    ProcessorResponseError,
)


def _processor(handler) -> HttpxSegmentationProcessor:  # type: ignore[no-untyped-def]
    transport = httpx.MockTransport(handler)
    return HttpxSegmentationProcessor(
        url="https://processor.test/api/remove-background",
        http_client=httpx.AsyncClient(transport=transport),
    )


def test_processor_posts_multipart_image() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "POST"
        assert request.url.path == "/api/remove-background"
        assert b'name="image"' in request.content
        assert b"image-bytes" in request.content
        return httpx.Response(200, content=b"result-bytes")

    processor = _processor(handler)

    result = asyncio.run(processor.remove_background(b"image-bytes"))

    assert result == b"result-bytes"


def test_processor_error_payload_is_surfaced() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": "CUDA out of memory"})

    processor = _processor(handler)

    with pytest.raises(ProcessorResponseError) as exc_info:
        asyncio.run(processor.remove_background(b"image-bytes"))

    assert str(exc_info.value) == "CUDA out of memory"
    assert exc_info.value.status_code == 500


def test_processor_error_without_payload_uses_status() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="<html>Bad gateway</html>")

    processor = _processor(handler)

    with pytest.raises(ProcessorResponseError) as exc_info:
        asyncio.run(processor.remove_background(b"image-bytes"))

    assert str(exc_info.value) == "HTTP error! status: 502"


def test_processor_close_closes_session() -> None:
    processor = _processor(lambda request: httpx.Response(200))

    asyncio.run(processor.close())

    assert processor.http_client.is_closed
