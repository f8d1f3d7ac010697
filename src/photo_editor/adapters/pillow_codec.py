"""Image decode and encode boundary backed by Pillow."""

import io
from dataclasses import dataclass
from typing import Protocol

from PIL import Image, UnidentifiedImageError

from photo_editor.domain.errors import DecodeError


class ImageCodec(Protocol):
    """Interface for turning bytes into images and back."""

    def decode(self, data: bytes) -> Image.Image:
        """Decode bytes into a fully loaded RGBA image."""

    def verify(self, data: bytes) -> None:
        """Raise DecodeError if the bytes are not a readable image."""

    def encode(self, image: Image.Image, image_format: str, quality: int) -> bytes:
        """Encode an image in a Pillow format such as PNG or JPEG."""


@dataclass
class PillowImageCodec(ImageCodec):
    """Pillow implementation of the image codec."""

    def decode(self, data: bytes) -> Image.Image:
        """Decode bytes and convert to RGBA."""
        try:
            with Image.open(io.BytesIO(data)) as opened:
                opened.load()
                return opened.convert("RGBA")
        except (
            UnidentifiedImageError,
            Image.DecompressionBombError,
            OSError,
            ValueError,
        ) as exc:
            raise DecodeError(f"Failed to decode image: {exc}") from exc

    def verify(self, data: bytes) -> None:
        """Check the image header and structure without decoding pixels."""
        try:
            with Image.open(io.BytesIO(data)) as opened:
                opened.verify()
        except (
            UnidentifiedImageError,
            Image.DecompressionBombError,
            OSError,
            ValueError,
            SyntaxError,
        ) as exc:
            raise DecodeError(f"Failed to decode image: {exc}") from exc

    def encode(self, image: Image.Image, image_format: str, quality: int) -> bytes:
        """Encode to bytes; quality is ignored by lossless formats."""
        buffer = io.BytesIO()
        image.save(buffer, format=image_format, quality=quality)
        return buffer.getvalue()
