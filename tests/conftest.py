"""Shared test fixtures."""

import asyncio
import io
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

import pytest
from PIL import Image

from photo_editor.adapters.pillow_codec import PillowImageCodec
from photo_editor.adapters.segmentation_client import SegmentationProcessor
from photo_editor.adapters.warm_flag_store import WarmFlagStore
from photo_editor.config import Settings
from photo_editor.services.capabilities import ProcessorWarmFlag
from photo_editor.services.composition import CompositionEngine, RecenterPolicy
from photo_editor.services.export import ExportEncoder
from photo_editor.services.processing import BackgroundRemovalClient
from photo_editor.services.progress import ProgressCallback, ProgressEstimator
from photo_editor.services.resources import ResourceTracker
from photo_editor.services.sessions import EditingSessionService
from photo_editor.services.uploads import UploadValidator


def make_png(
    width: int = 40, height: int = 30, color: str = "red", mode: str = "RGBA"
) -> bytes:
    """Return PNG bytes for a solid image."""
    buffer = io.BytesIO()
    Image.new(mode, (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


@dataclass
class FakeSegmentationProcessor(SegmentationProcessor):
    """Processor that replays scripted results; the last one repeats."""

    responses: list[bytes | Exception] = field(
        default_factory=lambda: [make_png(40, 30, "green")]
    )
    calls: list[bytes] = field(default_factory=list)

    async def remove_background(self, image_bytes: bytes) -> bytes:
        self.calls.append(image_bytes)
        if len(self.responses) > 1:
            response = self.responses.pop(0)
        else:
            response = self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


@dataclass
class BlockingProcessor(SegmentationProcessor):
    """Processor that holds its response until ``release`` is set."""

    result: bytes = field(default_factory=lambda: make_png(40, 30, "green"))
    started: asyncio.Event = field(default_factory=asyncio.Event)
    release: asyncio.Event = field(default_factory=asyncio.Event)
    calls: int = 0

    async def remove_background(self, image_bytes: bytes) -> bytes:
        self.calls += 1
        self.started.set()
        await self.release.wait()
        return self.result


@dataclass
class IdleProgress(ProgressEstimator):
    """Progress estimator that never reports."""

    async def run(self, report: ProgressCallback) -> None:
        await asyncio.Event().wait()


@dataclass
class RecordingSleep:
    """Sleep replacement that records delays without waiting."""

    delays: list[float] = field(default_factory=list)

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@dataclass
class InMemoryWarmFlagStore(WarmFlagStore):
    """Warm flag kept in memory."""

    value: bool = False
    fail: bool = False

    def read(self) -> bool:
        if self.fail:
            raise OSError("storage unavailable")
        return self.value

    def write(self, value: bool) -> None:
        if self.fail:
            raise OSError("storage unavailable")
        self.value = value


def build_removal_client(
    processor: SegmentationProcessor,
    sleep: Callable[[float], object] | None = None,
    max_retries: int = 2,
) -> BackgroundRemovalClient:
    """Build a removal client that never waits for real."""
    return BackgroundRemovalClient(
        processor=processor,
        codec=PillowImageCodec(),
        progress=IdleProgress(),
        max_retries=max_retries,
        sleep=sleep or RecordingSleep(),
    )


def build_service(
    processor: SegmentationProcessor | None = None,
    *,
    warm_store: InMemoryWarmFlagStore | None = None,
    max_working_dimension: int = 2048,
    recenter_policy: RecenterPolicy = RecenterPolicy.EVERY_COMPOSE,
) -> EditingSessionService:
    """Build a session service wired with in-memory fakes."""
    codec = PillowImageCodec()
    return EditingSessionService(
        tracker=ResourceTracker(),
        removal_client=build_removal_client(processor or FakeSegmentationProcessor()),
        codec=codec,
        engine=CompositionEngine(recenter_policy=recenter_policy),
        exporter=ExportEncoder(codec),
        upload_validator=UploadValidator(),
        warm_flag=ProcessorWarmFlag(warm_store or InMemoryWarmFlagStore()),
        max_working_dimension=max_working_dimension,
    )


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings pointing at test-only locations."""
    return Settings(
        processor_url="http://processor.test/api/remove-background",
        warm_flag_path=str(tmp_path / "warm.json"),
    )
