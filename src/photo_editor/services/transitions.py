"""Pure transition function for the editing session state machine.

Every mutation of ``EditingSession`` goes through ``transition``. It performs no
I/O: handles it supersedes are returned in ``TransitionResult.released`` and the
orchestrating service releases them when it commits the new value.
"""

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field

from photo_editor.domain.errors import InvalidTransitionError
from photo_editor.domain.resources import EphemeralHandle
from photo_editor.domain.session import (
    BackgroundSpec,
    EditingSession,
    ImageBackground,
    NoBackground,
    SessionError,
    SessionOperation,
    SessionStatus,
    Transform,
)

_TRANSFORM_FIELDS = frozenset(f.name for f in dataclasses.fields(Transform))

_REMOVAL_START_STATES = frozenset(
    {
        SessionStatus.SOURCE_READY,
        SessionStatus.PROCESSED,
        SessionStatus.BACKGROUND_SET,
    }
)
_BACKGROUND_STATES = frozenset({SessionStatus.PROCESSED, SessionStatus.BACKGROUND_SET})


@dataclass(frozen=True)
class UploadSource:
    """A new source was uploaded; its raw bytes are already tracked."""

    source_bytes: EphemeralHandle


@dataclass(frozen=True)
class SourceDecoded:
    """The source decode for a generation finished."""

    image: EphemeralHandle
    generation: int
    working_bytes: EphemeralHandle | None = None


@dataclass(frozen=True)
class RequestRemoval:
    """Start a background removal request."""


@dataclass(frozen=True)
class ProgressTick:
    """Progress reported by the processing client."""

    progress: float
    generation: int
    request_id: int


@dataclass(frozen=True)
class RemovalSucceeded:
    """The processor returned a decodable result."""

    image: EphemeralHandle
    image_bytes: EphemeralHandle
    generation: int
    request_id: int


@dataclass(frozen=True)
class RemovalFailed:
    """Background removal failed after every attempt."""

    message: str
    generation: int
    request_id: int


@dataclass(frozen=True)
class SetBackground:
    """Replace the active background."""

    background: BackgroundSpec


@dataclass(frozen=True)
class UpdateTransform:
    """Shallow-merge transform fields."""

    changes: Mapping[str, float]


@dataclass(frozen=True)
class Reset:
    """Drop processing results and background, keeping the source."""


@dataclass(frozen=True)
class ReportError:
    """Record an error without changing the session status.

    ``generation`` of None means the error is not tied to a generation.
    """

    error: SessionError
    generation: int | None = None


@dataclass(frozen=True)
class DismissError:
    """Clear the error field."""


SessionEvent = (
    UploadSource
    | SourceDecoded
    | RequestRemoval
    | ProgressTick
    | RemovalSucceeded
    | RemovalFailed
    | SetBackground
    | UpdateTransform
    | Reset
    | ReportError
    | DismissError
)


@dataclass(frozen=True)
class TransitionResult:
    """New session value plus the handles it no longer references."""

    session: EditingSession
    released: tuple[EphemeralHandle, ...] = field(default_factory=tuple)
    discarded: bool = False


def transition(  # noqa: PLR0911
    session: EditingSession, event: SessionEvent
) -> TransitionResult:
    """Apply an event and return the next session value."""
    if isinstance(event, UploadSource):
        return _upload_source(session, event)
    if isinstance(event, SourceDecoded):
        return _source_decoded(session, event)
    if isinstance(event, RequestRemoval):
        return _request_removal(session)
    if isinstance(event, ProgressTick):
        return _progress_tick(session, event)
    if isinstance(event, RemovalSucceeded):
        return _removal_succeeded(session, event)
    if isinstance(event, RemovalFailed):
        return _removal_failed(session, event)
    if isinstance(event, SetBackground):
        return _set_background(session, event)
    if isinstance(event, UpdateTransform):
        return _update_transform(session, event)
    if isinstance(event, Reset):
        return _reset(session)
    if isinstance(event, ReportError):
        return _report_error(session, event)
    if isinstance(event, DismissError):
        return _dismiss_error(session)
    raise InvalidTransitionError(f"Unknown event {event!r}")


def is_current_request(
    session: EditingSession, generation: int, request_id: int
) -> bool:
    """Return True if a removal result tagged with these tokens still applies."""
    return (
        session.status is SessionStatus.PROCESSING
        and session.generation == generation
        and session.request_id == request_id
    )


def accepts_background(session: EditingSession, generation: int) -> bool:
    """Return True if a background decoded under ``generation`` can be applied."""
    return session.generation == generation and session.status in _BACKGROUND_STATES


def resting_status(session: EditingSession) -> SessionStatus:
    """Return the status implied by the handles the session holds."""
    if session.source_bytes is None:
        return SessionStatus.EMPTY
    if session.processed_image is None:
        return SessionStatus.SOURCE_READY
    if isinstance(session.background, NoBackground):
        return SessionStatus.PROCESSED
    return SessionStatus.BACKGROUND_SET


def _upload_source(session: EditingSession, event: UploadSource) -> TransitionResult:
    # Prior-generation handles are released wholesale by the tracker before the
    # new source bytes are acquired, so nothing is listed here.
    generation = session.generation + 1
    if event.source_bytes.generation != generation:
        raise InvalidTransitionError(
            f"Source handle tagged {event.source_bytes.generation}, "
            f"expected generation {generation}"
        )
    return TransitionResult(
        session=EditingSession(
            status=SessionStatus.SOURCE_READY,
            generation=generation,
            request_id=session.request_id,
            source_bytes=event.source_bytes,
        )
    )


def _source_decoded(session: EditingSession, event: SourceDecoded) -> TransitionResult:
    if event.generation != session.generation or session.source_bytes is None:
        return TransitionResult(session=session, discarded=True)
    released: list[EphemeralHandle] = []
    if session.source_image is not None:
        released.append(session.source_image)
    source_bytes = session.source_bytes
    if event.working_bytes is not None:
        released.append(source_bytes)
        source_bytes = event.working_bytes
    return TransitionResult(
        session=dataclasses.replace(
            session, source_image=event.image, source_bytes=source_bytes
        ),
        released=tuple(released),
    )


def _request_removal(session: EditingSession) -> TransitionResult:
    retrying = (
        session.status is SessionStatus.ERROR
        and session.error is not None
        and session.error.retryable
    )
    if session.source_bytes is None or not (
        session.status in _REMOVAL_START_STATES or retrying
    ):
        raise InvalidTransitionError(
            f"Cannot request background removal while {session.status}"
        )
    return TransitionResult(
        session=dataclasses.replace(
            session,
            status=SessionStatus.PROCESSING,
            request_id=session.request_id + 1,
            progress=0.0,
            error=None,
        )
    )


def _progress_tick(session: EditingSession, event: ProgressTick) -> TransitionResult:
    if not is_current_request(session, event.generation, event.request_id):
        return TransitionResult(session=session, discarded=True)
    progress = min(max(session.progress, float(event.progress)), 100.0)
    return TransitionResult(session=dataclasses.replace(session, progress=progress))


def _removal_succeeded(
    session: EditingSession, event: RemovalSucceeded
) -> TransitionResult:
    if not is_current_request(session, event.generation, event.request_id):
        return TransitionResult(session=session, discarded=True)
    released = tuple(
        handle
        for handle in (session.processed_image, session.processed_bytes)
        if handle is not None
    )
    updated = dataclasses.replace(
        session,
        processed_image=event.image,
        processed_bytes=event.image_bytes,
        progress=0.0,
        error=None,
    )
    return TransitionResult(
        session=dataclasses.replace(updated, status=resting_status(updated)),
        released=released,
    )


def _removal_failed(session: EditingSession, event: RemovalFailed) -> TransitionResult:
    if not is_current_request(session, event.generation, event.request_id):
        return TransitionResult(session=session, discarded=True)
    return TransitionResult(
        session=dataclasses.replace(
            session,
            status=SessionStatus.ERROR,
            progress=0.0,
            error=SessionError(
                message=event.message,
                retryable=True,
                operation=SessionOperation.REMOVE_BACKGROUND,
            ),
        )
    )


def _set_background(session: EditingSession, event: SetBackground) -> TransitionResult:
    if session.status not in _BACKGROUND_STATES:
        raise InvalidTransitionError(f"Cannot set a background while {session.status}")
    released: tuple[EphemeralHandle, ...] = ()
    previous = session.background
    if isinstance(previous, ImageBackground) and previous != event.background:
        released = (previous.handle,)
    updated = dataclasses.replace(session, background=event.background)
    return TransitionResult(
        session=dataclasses.replace(updated, status=resting_status(updated)),
        released=released,
    )


def _update_transform(
    session: EditingSession, event: UpdateTransform
) -> TransitionResult:
    if session.status is SessionStatus.EMPTY or not session.has_image:
        raise InvalidTransitionError("Cannot transform without an image")
    unknown = set(event.changes) - _TRANSFORM_FIELDS
    if unknown:
        raise InvalidTransitionError(f"Unknown transform fields: {sorted(unknown)}")
    try:
        transform = dataclasses.replace(session.transform, **event.changes)
    except ValueError as exc:
        raise InvalidTransitionError(str(exc)) from exc
    return TransitionResult(session=dataclasses.replace(session, transform=transform))


def _reset(session: EditingSession) -> TransitionResult:
    released = [
        handle
        for handle in (session.processed_image, session.processed_bytes)
        if handle is not None
    ]
    if isinstance(session.background, ImageBackground):
        released.append(session.background.handle)
    reset = EditingSession(
        generation=session.generation,
        request_id=session.request_id,
        source_image=session.source_image,
        source_bytes=session.source_bytes,
    )
    return TransitionResult(
        session=dataclasses.replace(reset, status=resting_status(reset)),
        released=tuple(released),
    )


def _report_error(session: EditingSession, event: ReportError) -> TransitionResult:
    if event.generation is not None and event.generation != session.generation:
        return TransitionResult(session=session, discarded=True)
    return TransitionResult(session=dataclasses.replace(session, error=event.error))


def _dismiss_error(session: EditingSession) -> TransitionResult:
    dismissed = dataclasses.replace(session, error=None)
    if session.status is SessionStatus.ERROR:
        dismissed = dataclasses.replace(dismissed, status=resting_status(dismissed))
    return TransitionResult(session=dismissed)
