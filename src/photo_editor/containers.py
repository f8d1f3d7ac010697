"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path

from photo_editor.adapters.pillow_codec import PillowImageCodec
from photo_editor.adapters.segmentation_client import HttpxSegmentationProcessor
from photo_editor.adapters.warm_flag_store import FileWarmFlagStore
from photo_editor.config import Settings, parse_accepted_formats
from photo_editor.services.capabilities import ProcessorWarmFlag
from photo_editor.services.composition import CompositionEngine, RecenterPolicy
from photo_editor.services.export import ExportEncoder
from photo_editor.services.interaction import TransformEditor
from photo_editor.services.processing import BackgroundRemovalClient
from photo_editor.services.progress import SyntheticProgress
from photo_editor.services.resources import ResourceTracker
from photo_editor.services.sessions import EditingSessionService
from photo_editor.services.uploads import UploadValidator


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    session_service: EditingSessionService
    transform_editor: TransformEditor
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    codec = PillowImageCodec()
    processor = HttpxSegmentationProcessor.create(
        resolved_settings.processor_url,
        timeout_seconds=resolved_settings.processor_timeout_seconds,
    )
    removal_client = BackgroundRemovalClient(
        processor=processor,
        codec=codec,
        progress=SyntheticProgress(
            interval_seconds=resolved_settings.progress_interval_seconds
        ),
        max_retries=resolved_settings.processing_max_retries,
        backoff_base_ms=resolved_settings.backoff_base_ms,
        backoff_cap_ms=resolved_settings.backoff_cap_ms,
    )
    engine = CompositionEngine(
        width=resolved_settings.canvas_width,
        height=resolved_settings.canvas_height,
        recenter_policy=RecenterPolicy(resolved_settings.recenter_policy),
    )
    session_service = EditingSessionService(
        tracker=ResourceTracker(),
        removal_client=removal_client,
        codec=codec,
        engine=engine,
        exporter=ExportEncoder(codec),
        upload_validator=UploadValidator(
            accepted_formats=parse_accepted_formats(resolved_settings.accepted_formats),
            max_upload_mb=resolved_settings.max_upload_mb,
        ),
        warm_flag=ProcessorWarmFlag(
            FileWarmFlagStore(Path(resolved_settings.warm_flag_path))
        ),
        max_working_dimension=resolved_settings.max_working_dimension,
    )
    transform_editor = TransformEditor(
        on_change=session_service.apply_transform_delta
    )

    async def close_resources() -> None:
        transform_editor.close()
        session_service.close()
        await processor.close()

    return AppContainer(
        settings=resolved_settings,
        session_service=session_service,
        transform_editor=transform_editor,
        close_resources=close_resources,
    )
