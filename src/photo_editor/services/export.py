"""Encoding of the composed surface for download."""

from dataclasses import dataclass
from datetime import UTC, datetime

from PIL import Image

from photo_editor.adapters.pillow_codec import ImageCodec
from photo_editor.domain.errors import ExportError

_FORMATS: dict[str, tuple[str, str]] = {
    "png": ("PNG", "png"),
    "jpg": ("JPEG", "jpg"),
    "jpeg": ("JPEG", "jpg"),
    "webp": ("WEBP", "webp"),
}
_FLATTEN_COLOR = "#ffffff"


@dataclass
class ExportEncoder:
    """Serialize a surface into an output format."""

    codec: ImageCodec

    def encode(
        self, surface: Image.Image, export_format: str = "png", quality: float = 0.9
    ) -> bytes:
        """Encode the surface; quality is a 0-1 fraction."""
        pillow_format, _ = _resolve_format(export_format)
        if not 0 < quality <= 1:
            raise ExportError(f"Export quality must be in (0, 1], got {quality}")
        image = surface
        if pillow_format == "JPEG":
            image = _flatten(surface)
        try:
            return self.codec.encode(image, pillow_format, round(quality * 100))
        except (OSError, ValueError, KeyError) as exc:
            raise ExportError(f"Failed to export image as {export_format}") from exc


def export_filename(export_format: str, now: datetime | None = None) -> str:
    """Build the download filename for an export."""
    _, extension = _resolve_format(export_format)
    moment = now or datetime.now(tz=UTC)
    return f"edited-photo-{int(moment.timestamp() * 1000)}.{extension}"


def _resolve_format(export_format: str) -> tuple[str, str]:
    resolved = _FORMATS.get(export_format.lower())
    if resolved is None:
        accepted = ", ".join(sorted(_FORMATS))
        raise ExportError(
            f"Unsupported export format {export_format!r}. Accepted: {accepted}"
        )
    return resolved


def _flatten(surface: Image.Image) -> Image.Image:
    flattened = Image.new("RGB", surface.size, _FLATTEN_COLOR)
    rgba = surface.convert("RGBA")
    flattened.paste(rgba, (0, 0), rgba)
    return flattened
