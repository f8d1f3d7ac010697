"""Imaging capability probe and processor warm-up bookkeeping."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from PIL import features

from photo_editor.adapters.warm_flag_store import WarmFlagStore
from photo_editor.domain.errors import CapabilityError

_logger = logging.getLogger(__name__)

_REQUIRED_FEATURES: tuple[tuple[str, str], ...] = (
    (
        "zlib",
        "PNG support (zlib) is not available. "
        "This is required for background removal.",
    ),
)
_OPTIONAL_FEATURES: tuple[tuple[str, str], ...] = (
    ("jpg", "JPEG support is not available."),
    ("webp", "WEBP support is not available."),
)


@dataclass(frozen=True)
class CapabilityReport:
    """Outcome of the capability probe."""

    issues: list[str] = field(default_factory=list)
    processing_supported: bool = True

    @property
    def supported(self) -> bool:
        """Return True when no issue was found."""
        return not self.issues

    def require_processing(self) -> None:
        """Raise CapabilityError when background removal cannot run."""
        if not self.processing_supported:
            raise CapabilityError(
                "Your system does not support background removal: "
                + " ".join(self.issues),
                issues=self.issues,
            )


def check_capabilities(
    check_feature: Callable[[str], bool | None] = features.check,
) -> CapabilityReport:
    """Check the imaging features the editor relies on."""
    issues: list[str] = []
    processing_supported = True
    for name, message in _REQUIRED_FEATURES:
        if not check_feature(name):
            issues.append(message)
            processing_supported = False
    for name, message in _OPTIONAL_FEATURES:
        if not check_feature(name):
            issues.append(message)
    for issue in issues:
        _logger.warning("Capability issue: %s", issue)
    return CapabilityReport(issues=issues, processing_supported=processing_supported)


@dataclass
class ProcessorWarmFlag:
    """Best-effort access to the durable processor warmed flag."""

    store: WarmFlagStore

    def is_warmed(self) -> bool:
        """Return the stored flag, or False if it cannot be read."""
        try:
            return self.store.read()
        except (OSError, ValueError):
            _logger.warning("Failed to read processor warm flag", exc_info=True)
            return False

    def mark_warmed(self) -> None:
        """Record that the processor has served a request."""
        try:
            self.store.write(True)
        except OSError:
            _logger.warning("Failed to write processor warm flag", exc_info=True)
