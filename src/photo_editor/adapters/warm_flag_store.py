"""Durable storage for the processor warmed indicator."""

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol


class WarmFlagStore(Protocol):
    """Interface for persisting a single boolean across sessions."""

    def read(self) -> bool:
        """Return the stored flag, False when unset."""

    def write(self, value: bool) -> None:
        """Persist the flag."""


@dataclass
class FileWarmFlagStore(WarmFlagStore):
    """Warm flag stored as a small JSON document on disk."""

    path: Path

    def read(self) -> bool:
        """Read the flag; a missing file means not warmed."""
        if not self.path.exists():
            return False
        payload = json.loads(self.path.read_text(encoding="utf-8"))
        return isinstance(payload, dict) and payload.get("warmed") is True

    def write(self, value: bool) -> None:
        """Write the flag, creating parent directories as needed."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps({"warmed": value}), encoding="utf-8")
