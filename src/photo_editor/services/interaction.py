"""Direct manipulation of the foreground transform."""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field

from photo_editor.domain.session import TransformDelta

TransformListener = Callable[[TransformDelta], None]

FRAME_INTERVAL_SECONDS = 1 / 60
NUDGE_STEP = 1.0
NUDGE_STEP_LARGE = 10.0
SCALE_UP = 1.1
SCALE_DOWN = 0.9

_NUDGES: dict[str, tuple[float, float]] = {
    "ArrowLeft": (-1.0, 0.0),
    "ArrowRight": (1.0, 0.0),
    "ArrowUp": (0.0, -1.0),
    "ArrowDown": (0.0, 1.0),
}
_SCALE_KEYS: dict[str, float] = {
    "+": SCALE_UP,
    "=": SCALE_UP,
    "-": SCALE_DOWN,
    "_": SCALE_DOWN,
}


@dataclass
class TransformEditor:
    """Turn drag, resize, rotate and keyboard edits into transform deltas.

    The editor keeps no copy of the transform. Edits accumulate into a pending
    ``TransformDelta`` that is reported to ``on_change`` at most once per frame,
    so the receiver applies it to whatever transform is current at that time.
    Without a running event loop the pending delta waits for ``flush``.
    """

    on_change: TransformListener
    frame_interval_seconds: float = FRAME_INTERVAL_SECONDS
    _pending: TransformDelta = field(default_factory=TransformDelta)
    _frame: asyncio.TimerHandle | None = None

    def drag(self, dx: float, dy: float) -> None:
        """Move the foreground by a pointer delta."""
        self._update(TransformDelta(dx=dx, dy=dy))

    def resize(self, factor: float) -> None:
        """Scale the foreground from a resize handle."""
        if factor <= 0:
            raise ValueError(f"Resize factor must be positive, got {factor}")
        self._update(TransformDelta(scale_factor=factor))

    def rotate(self, degrees: float) -> None:
        """Rotate the foreground from the rotate handle."""
        self._update(TransformDelta(rotation=degrees))

    def handle_key(self, key: str, *, shift: bool = False) -> bool:
        """Apply a keyboard shortcut; return True if the key was handled."""
        if key in _NUDGES:
            step = NUDGE_STEP_LARGE if shift else NUDGE_STEP
            dx, dy = _NUDGES[key]
            self.drag(dx * step, dy * step)
            return True
        if key in _SCALE_KEYS:
            self.resize(_SCALE_KEYS[key])
            return True
        return False

    def flush(self) -> None:
        """Report the pending delta now."""
        self._cancel_frame()
        delta = self._pending
        self._pending = TransformDelta()
        if not delta.is_identity:
            self.on_change(delta)

    def discard(self) -> None:
        """Drop pending edits, e.g. when the image is replaced."""
        self._cancel_frame()
        self._pending = TransformDelta()

    def close(self) -> None:
        """Drop pending edits and any scheduled report."""
        self.discard()

    def _update(self, delta: TransformDelta) -> None:
        self._pending = self._pending.combine(delta)
        if self._frame is not None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._frame = loop.call_later(self.frame_interval_seconds, self._on_frame)

    def _on_frame(self) -> None:
        self._frame = None
        self.flush()

    def _cancel_frame(self) -> None:
        if self._frame is not None:
            self._frame.cancel()
            self._frame = None
