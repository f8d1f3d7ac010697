"""Domain models for ephemeral image resources."""

from dataclasses import dataclass
from enum import StrEnum


class ResourceKind(StrEnum):
    """What an ephemeral handle points at."""

    BYTES = "bytes"
    IMAGE = "image"


@dataclass(frozen=True)
class EphemeralHandle:
    """Opaque reference to a tracked resource."""

    id: int
    generation: int
    kind: ResourceKind
