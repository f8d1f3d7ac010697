"""Editing session orchestration."""

import asyncio
import dataclasses
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field

from PIL import Image, ImageColor

from photo_editor.adapters.pillow_codec import ImageCodec
from photo_editor.domain.errors import (
    CapabilityError,
    DecodeError,
    ExportError,
    InvalidTransitionError,
    ProcessingError,
    UploadError,
)
from photo_editor.domain.session import (
    ColorBackground,
    EditingSession,
    ImageBackground,
    NoBackground,
    SessionError,
    SessionOperation,
    Transform,
    TransformDelta,
)
from photo_editor.services.capabilities import (
    CapabilityReport,
    ProcessorWarmFlag,
    check_capabilities,
)
from photo_editor.services.composition import BackgroundFill, CompositionEngine
from photo_editor.services.export import ExportEncoder
from photo_editor.services.processing import BackgroundRemovalClient
from photo_editor.services.resources import ResourceTracker
from photo_editor.services.transitions import (
    DismissError,
    ProgressTick,
    RemovalFailed,
    RemovalSucceeded,
    ReportError,
    RequestRemoval,
    Reset,
    SessionEvent,
    SetBackground,
    SourceDecoded,
    TransitionResult,
    UpdateTransform,
    UploadSource,
    accepts_background,
    is_current_request,
    transition,
)
from photo_editor.services.uploads import UploadValidator, prepare_working_image

_logger = logging.getLogger(__name__)

_NO_SOURCE_MESSAGE = "Please upload an image first."
_SOURCE_DECODE_MESSAGE = "Failed to load image. Please try another file."
_RESULT_DECODE_MESSAGE = "Failed to load processed image. Please try again."
_BACKGROUND_DECODE_MESSAGE = "Failed to load background image. Please try another file."
_BACKGROUND_STATE_MESSAGE = "Remove the background before choosing a replacement."


@dataclass(frozen=True)
class RenderResult:
    """Surface drawn for the current session and the transform it used."""

    surface: Image.Image
    transform: Transform | None


@dataclass
class EditingSessionService:
    """Own the editing session and run the side effects of its transitions.

    All mutations go through ``transitions.transition``. Asynchronous work is
    tagged with the generation (and request id for removals) that was current
    when it started; results arriving for an older tag are discarded without
    ever entering the resource tracker.
    """

    tracker: ResourceTracker
    removal_client: BackgroundRemovalClient
    codec: ImageCodec
    engine: CompositionEngine
    exporter: ExportEncoder
    upload_validator: UploadValidator
    warm_flag: ProcessorWarmFlag
    max_working_dimension: int = 2048
    session: EditingSession = field(default_factory=EditingSession)
    capabilities: CapabilityReport | None = None
    _retry_operation: Callable[[], Awaitable[None]] | None = None

    def start(
        self, probe: Callable[[], CapabilityReport] = check_capabilities
    ) -> CapabilityReport:
        """Run the capability probe once and record a blocking issue."""
        if self.capabilities is not None:
            return self.capabilities
        report = probe()
        self.capabilities = report
        try:
            report.require_processing()
        except CapabilityError as exc:
            self._report(exc.message, SessionOperation.CAPABILITY)
        if self.warm_flag.is_warmed():
            _logger.info("Background removal processor already warmed")
        return report

    @property
    def can_retry(self) -> bool:
        """Return True when a failed operation can be re-invoked."""
        return self._retry_operation is not None

    async def upload_source(self, data: bytes) -> None:
        """Start a new generation from uploaded bytes and decode them."""
        try:
            self.upload_validator.validate(data)
        except UploadError as exc:
            self._report(exc.message, SessionOperation.UPLOAD)
            raise

        self._retry_operation = None
        self.tracker.release_all()
        source_bytes = self.tracker.acquire(
            data, generation=self.session.generation + 1
        )
        self._dispatch(UploadSource(source_bytes))
        generation = self.session.generation

        try:
            working = await asyncio.to_thread(
                prepare_working_image, self.codec, data, self.max_working_dimension
            )
        except DecodeError:
            _logger.warning("Source decode failed: generation=%s", generation)
            self._report(
                _SOURCE_DECODE_MESSAGE, SessionOperation.DECODE, generation=generation
            )
            return

        if generation != self.session.generation:
            _logger.info("Discarding stale source decode: generation=%s", generation)
            working.image.close()
            return
        image = self.tracker.acquire(working.image, generation=generation)
        working_bytes = None
        if working.working_bytes is not None:
            working_bytes = self.tracker.acquire(
                working.working_bytes, generation=generation
            )
        self._dispatch(
            SourceDecoded(
                image=image, generation=generation, working_bytes=working_bytes
            )
        )
        self._apply_default_transform(working.image)

    async def remove_background(self) -> None:
        """Submit the working image for background removal."""
        if self.capabilities is not None:
            try:
                self.capabilities.require_processing()
            except CapabilityError as exc:
                self._report(exc.message, SessionOperation.CAPABILITY)
                return
        if self.session.source_bytes is None:
            self._report(_NO_SOURCE_MESSAGE, SessionOperation.REMOVE_BACKGROUND)
            return
        try:
            self._dispatch(RequestRemoval())
        except InvalidTransitionError as exc:
            _logger.warning("Ignoring removal request: %s", exc)
            return

        self._retry_operation = self.remove_background
        generation = self.session.generation
        request_id = self.session.request_id
        source = self.tracker.resolve_bytes(self.session.source_bytes)

        def on_progress(progress: float) -> None:
            self._dispatch(ProgressTick(progress, generation, request_id))

        try:
            result = await self.removal_client.submit(source, on_progress=on_progress)
        except ProcessingError as exc:
            self._dispatch(RemovalFailed(exc.message, generation, request_id))
            return

        if not is_current_request(self.session, generation, request_id):
            _logger.info(
                "Discarding stale removal result: generation=%s request=%s",
                generation,
                request_id,
            )
            return
        try:
            decoded = await asyncio.to_thread(self.codec.decode, result)
        except DecodeError:
            _logger.warning("Processed result decode failed: generation=%s", generation)
            self._dispatch(
                RemovalFailed(_RESULT_DECODE_MESSAGE, generation, request_id)
            )
            return
        if not is_current_request(self.session, generation, request_id):
            _logger.info("Discarding stale processed decode: generation=%s", generation)
            decoded.close()
            return

        image = self.tracker.acquire(decoded, generation=generation)
        image_bytes = self.tracker.acquire(result, generation=generation)
        self._dispatch(RemovalSucceeded(image, image_bytes, generation, request_id))
        self._retry_operation = None
        self.warm_flag.mark_warmed()
        self._apply_default_transform(decoded)

    async def set_background_image(self, data: bytes) -> None:
        """Decode an uploaded background image and make it active."""
        try:
            self.upload_validator.validate(data)
        except UploadError as exc:
            self._report(exc.message, SessionOperation.SET_BACKGROUND)
            raise
        generation = self.session.generation
        if not accepts_background(self.session, generation):
            self._report(_BACKGROUND_STATE_MESSAGE, SessionOperation.SET_BACKGROUND)
            return

        try:
            decoded = await asyncio.to_thread(self.codec.decode, data)
        except DecodeError:
            self._report(
                _BACKGROUND_DECODE_MESSAGE,
                SessionOperation.SET_BACKGROUND,
                generation=generation,
            )
            return
        if not accepts_background(self.session, generation):
            _logger.info(
                "Discarding stale background decode: generation=%s", generation
            )
            decoded.close()
            return
        handle = self.tracker.acquire(decoded, generation=generation)
        self._dispatch(SetBackground(ImageBackground(handle)))

    def set_background_color(self, color: str) -> None:
        """Make a solid color the active background."""
        try:
            ImageColor.getrgb(color)
        except ValueError:
            self._report(f"Unknown color: {color}", SessionOperation.SET_BACKGROUND)
            return
        self._set_background(ColorBackground(color))

    def clear_background(self) -> None:
        """Return to a transparent background."""
        self._set_background(NoBackground())

    def update_transform(self, changes: Mapping[str, float]) -> None:
        """Merge transform fields reported by the interactive editor."""
        try:
            self._dispatch(UpdateTransform(dict(changes)))
        except InvalidTransitionError as exc:
            _logger.warning("Ignoring transform update: %s", exc)

    def apply_transform_delta(self, delta: TransformDelta) -> None:
        """Apply an interactive edit to the current transform."""
        transform = delta.apply(self.session.transform)
        self.update_transform(dataclasses.asdict(transform))

    def set_scale(self, scale: float) -> None:
        """Set the foreground scale from a slider."""
        self.update_transform({"scale": scale})

    def reset(self) -> None:
        """Drop processing results and background, keeping the source."""
        self._retry_operation = None
        self._dispatch(Reset())
        if self.session.source_image is not None:
            self._apply_default_transform(
                self.tracker.resolve_image(self.session.source_image)
            )

    def dismiss_error(self) -> None:
        """Clear the visible error, leaving everything else untouched."""
        self._dispatch(DismissError())

    async def retry(self) -> None:
        """Re-run the operation bound to the last retryable error."""
        operation = self._retry_operation
        if operation is None:
            return
        await operation()

    def render(self, surface: Image.Image | None = None) -> RenderResult:
        """Compose the current session onto a surface."""
        target = surface or self.engine.create_surface()
        session = self.session
        foreground_handle = session.processed_image or session.source_image
        if foreground_handle is None:
            self.engine.clear(target)
            return RenderResult(surface=target, transform=None)
        applied = self.engine.compose(
            target,
            self.tracker.resolve_image(foreground_handle),
            self._background_fill(),
            session.transform,
            generation=session.generation,
        )
        return RenderResult(surface=target, transform=applied)

    def export(self, export_format: str = "png", quality: float = 0.9) -> bytes:
        """Render the session and encode it for download."""
        if self.session.processed_image is None and self.session.source_image is None:
            raise ExportError("Nothing to export yet. Please upload an image first.")
        rendered = self.render()
        try:
            return self.exporter.encode(rendered.surface, export_format, quality)
        finally:
            rendered.surface.close()

    def close(self) -> None:
        """Release every resource held by the session."""
        self._retry_operation = None
        self.tracker.release_all()
        self.session = EditingSession()

    def _set_background(self, background: ColorBackground | NoBackground) -> None:
        try:
            self._dispatch(SetBackground(background))
        except InvalidTransitionError as exc:
            _logger.warning("Ignoring background change: %s", exc)
            self._report(_BACKGROUND_STATE_MESSAGE, SessionOperation.SET_BACKGROUND)

    def _background_fill(self) -> BackgroundFill:
        background = self.session.background
        if isinstance(background, ColorBackground):
            return background.color
        if isinstance(background, ImageBackground):
            return self.tracker.resolve_image(background.handle)
        return None

    def _apply_default_transform(self, image: Image.Image) -> None:
        default = self.engine.default_transform(image)
        self.update_transform(dataclasses.asdict(default))

    def _report(
        self,
        message: str,
        operation: SessionOperation,
        *,
        generation: int | None = None,
    ) -> None:
        self._dispatch(
            ReportError(
                SessionError(message=message, retryable=False, operation=operation),
                generation=generation,
            )
        )

    def _dispatch(self, event: SessionEvent) -> TransitionResult:
        result = transition(self.session, event)
        self.session = result.session
        for handle in result.released:
            self.tracker.release(handle)
        if result.discarded:
            _logger.info("Discarded stale event: %s", type(event).__name__)
        return result
