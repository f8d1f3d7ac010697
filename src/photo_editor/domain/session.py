"""Domain models for the editing session."""

from dataclasses import dataclass, field
from enum import StrEnum

from photo_editor.domain.resources import EphemeralHandle


@dataclass(frozen=True)
class Transform:
    """Position, uniform scale and rotation of the foreground subject."""

    x: float = 0.0
    y: float = 0.0
    scale: float = 1.0
    rotation: float = 0.0

    def __post_init__(self) -> None:
        if not self.scale > 0:
            raise ValueError(f"Transform scale must be positive, got {self.scale}")


@dataclass(frozen=True)
class NoBackground:
    """Transparent background."""


@dataclass(frozen=True)
class ColorBackground:
    """Solid color background, any Pillow color string."""

    color: str


@dataclass(frozen=True)
class ImageBackground:
    """Background image stretched to fill the surface."""

    handle: EphemeralHandle


@dataclass(frozen=True)
class TransformDelta:
    """Relative edit of a transform accumulated from direct manipulation."""

    dx: float = 0.0
    dy: float = 0.0
    scale_factor: float = 1.0
    rotation: float = 0.0

    def __post_init__(self) -> None:
        if not self.scale_factor > 0:
            raise ValueError(
                f"Scale factor must be positive, got {self.scale_factor}"
            )

    @property
    def is_identity(self) -> bool:
        """Return True when applying the delta changes nothing."""
        return self == TransformDelta()

    def combine(self, other: "TransformDelta") -> "TransformDelta":
        """Return the delta equivalent to applying self then other."""
        return TransformDelta(
            dx=self.dx + other.dx,
            dy=self.dy + other.dy,
            scale_factor=self.scale_factor * other.scale_factor,
            rotation=self.rotation + other.rotation,
        )

    def apply(self, transform: Transform) -> Transform:
        """Return ``transform`` moved, scaled and rotated by this delta."""
        return Transform(
            x=transform.x + self.dx,
            y=transform.y + self.dy,
            scale=transform.scale * self.scale_factor,
            rotation=(transform.rotation + self.rotation) % 360,
        )


BackgroundSpec = NoBackground | ColorBackground | ImageBackground


class SessionStatus(StrEnum):
    """States of the editing session."""

    EMPTY = "EMPTY"
    SOURCE_READY = "SOURCE_READY"
    PROCESSING = "PROCESSING"
    PROCESSED = "PROCESSED"
    BACKGROUND_SET = "BACKGROUND_SET"
    ERROR = "ERROR"


class SessionOperation(StrEnum):
    """Operations a session error can be bound to."""

    UPLOAD = "upload"
    DECODE = "decode"
    REMOVE_BACKGROUND = "remove_background"
    SET_BACKGROUND = "set_background"
    CAPABILITY = "capability"


@dataclass(frozen=True)
class SessionError:
    """Most recent user-visible error."""

    message: str
    retryable: bool = False
    operation: SessionOperation | None = None


@dataclass(frozen=True)
class EditingSession:
    """Aggregate value describing one edit in progress."""

    status: SessionStatus = SessionStatus.EMPTY
    generation: int = 0
    request_id: int = 0
    source_image: EphemeralHandle | None = None
    source_bytes: EphemeralHandle | None = None
    processed_image: EphemeralHandle | None = None
    processed_bytes: EphemeralHandle | None = None
    background: BackgroundSpec = field(default_factory=NoBackground)
    transform: Transform = field(default_factory=Transform)
    progress: float = 0.0
    error: SessionError | None = None

    @property
    def has_image(self) -> bool:
        """Return True when the session carries a source image."""
        return self.source_bytes is not None

    def live_handles(self) -> list[EphemeralHandle]:
        """Return every handle currently referenced by the session."""
        handles = [
            self.source_image,
            self.source_bytes,
            self.processed_image,
            self.processed_bytes,
        ]
        if isinstance(self.background, ImageBackground):
            handles.append(self.background.handle)
        return [handle for handle in handles if handle is not None]
