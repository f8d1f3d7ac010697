"""Lifecycle tracking for ephemeral decoded image resources."""

import itertools
import logging
from dataclasses import dataclass, field

from PIL import Image

from photo_editor.domain.errors import ReleasedHandleError
from photo_editor.domain.resources import EphemeralHandle, ResourceKind

_logger = logging.getLogger(__name__)

Resource = bytes | Image.Image


@dataclass
class ResourceTracker:
    """Owns every live resource and hands out opaque handles to them.

    Release is idempotent: releasing an unknown or already released handle is
    logged and ignored. Dereferencing a released handle raises
    ``ReleasedHandleError`` instead of returning a closed image.
    """

    _resources: dict[int, tuple[EphemeralHandle, Resource]] = field(
        default_factory=dict
    )
    _ids: "itertools.count[int]" = field(default_factory=lambda: itertools.count(1))

    def acquire(self, resource: Resource, *, generation: int) -> EphemeralHandle:
        """Track a resource and return a handle unique to this call."""
        kind = (
            ResourceKind.IMAGE
            if isinstance(resource, Image.Image)
            else ResourceKind.BYTES
        )
        handle = EphemeralHandle(id=next(self._ids), generation=generation, kind=kind)
        self._resources[handle.id] = (handle, resource)
        return handle

    def resolve(self, handle: EphemeralHandle) -> Resource:
        """Return the resource behind a live handle."""
        entry = self._resources.get(handle.id)
        if entry is None:
            raise ReleasedHandleError(f"Handle {handle.id} is not live")
        return entry[1]

    def resolve_image(self, handle: EphemeralHandle) -> Image.Image:
        """Return the decoded image behind a live handle."""
        resource = self.resolve(handle)
        if not isinstance(resource, Image.Image):
            raise ReleasedHandleError(f"Handle {handle.id} does not hold an image")
        return resource

    def resolve_bytes(self, handle: EphemeralHandle) -> bytes:
        """Return the raw bytes behind a live handle."""
        resource = self.resolve(handle)
        if not isinstance(resource, bytes):
            raise ReleasedHandleError(f"Handle {handle.id} does not hold bytes")
        return resource

    def release(self, handle: EphemeralHandle) -> None:
        """Release a handle; unknown or released handles are a no-op."""
        entry = self._resources.pop(handle.id, None)
        if entry is None:
            _logger.warning(
                "Ignoring release of unknown handle: id=%s generation=%s",
                handle.id,
                handle.generation,
            )
            return
        _close(entry[1])

    def release_all(self) -> None:
        """Release every live handle."""
        entries = list(self._resources.values())
        self._resources.clear()
        for _, resource in entries:
            _close(resource)

    def is_live(self, handle: EphemeralHandle) -> bool:
        """Return True while the handle has not been released."""
        return handle.id in self._resources

    def live_handles(self) -> list[EphemeralHandle]:
        """Return handles that are currently live, oldest first."""
        return [handle for handle, _ in self._resources.values()]


def _close(resource: Resource) -> None:
    if isinstance(resource, Image.Image):
        resource.close()
