"""Upload validation and working-image preparation."""

from dataclasses import dataclass, field

from PIL import Image

from photo_editor.adapters.pillow_codec import ImageCodec
from photo_editor.domain.errors import UploadError

_BYTES_PER_MB = 1024 * 1024


@dataclass
class UploadValidator:
    """Reject uploads with an unsupported format or size."""

    accepted_formats: set[str] = field(
        default_factory=lambda: {"jpeg", "png", "webp"}
    )
    max_upload_mb: int = 10

    def validate(self, data: bytes) -> str:
        """Return the sniffed format name or raise UploadError."""
        if not data:
            raise UploadError("The selected file is empty. Please try another file.")
        image_format = detect_image_format(data)
        if image_format is None or image_format not in self.accepted_formats:
            accepted = ", ".join(sorted(self.accepted_formats))
            raise UploadError(f"Invalid file format. Accepted formats: {accepted}")
        if len(data) > self.max_upload_mb * _BYTES_PER_MB:
            raise UploadError(f"File size exceeds {self.max_upload_mb}MB limit")
        return image_format


@dataclass(frozen=True)
class WorkingImage:
    """Decoded source plus replacement bytes when it had to be downscaled."""

    image: Image.Image
    working_bytes: bytes | None = None


def detect_image_format(data: bytes) -> str | None:
    """Infer a basic image format from file signatures."""
    if data.startswith(b"\xff\xd8\xff"):
        return "jpeg"
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "png"
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "webp"
    return None


def needs_resize(width: int, height: int, max_dimension: int) -> bool:
    """Return True if either side exceeds the limit."""
    return width > max_dimension or height > max_dimension


def fit_within(width: int, height: int, max_dimension: int) -> tuple[int, int]:
    """Scale dimensions so the longest side equals ``max_dimension``."""
    aspect_ratio = width / height
    if width > height:
        return max_dimension, max(1, round(max_dimension / aspect_ratio))
    return max(1, round(max_dimension * aspect_ratio)), max_dimension


def prepare_working_image(
    codec: ImageCodec, data: bytes, max_dimension: int
) -> WorkingImage:
    """Decode an upload and downscale it when it is larger than the limit."""
    image = codec.decode(data)
    if not needs_resize(image.width, image.height, max_dimension):
        return WorkingImage(image=image)
    size = fit_within(image.width, image.height, max_dimension)
    resized = image.resize(size, Image.Resampling.LANCZOS)
    image.close()
    return WorkingImage(image=resized, working_bytes=codec.encode(resized, "PNG", 90))
