"""Tests for upload validation and working-image preparation."""

import io

import pytest
from PIL import Image

from photo_editor.adapters.pillow_codec import PillowImageCodec
from photo_editor.domain.errors import DecodeError, UploadError
from photo_editor.services.uploads import (
    UploadValidator,
    detect_image_format,
    fit_within,
    prepare_working_image,
)
from tests.conftest import make_png


def test_detect_image_format_signatures() -> None:
    assert detect_image_format(b"\x89PNG\r\n\x1a\nrest") == "png"
    assert detect_image_format(b"\xff\xd8\xff\xe0rest") == "jpeg"
    assert detect_image_format(b"RIFF\x00\x00\x00\x00WEBPVP8 ") == "webp"
    assert detect_image_format(b"GIF89a") is None


def test_validator_accepts_png() -> None:
    assert UploadValidator().validate(make_png()) == "png"


def test_validator_rejects_unknown_format() -> None:
    with pytest.raises(UploadError) as exc_info:
        UploadValidator().validate(b"GIF89a....")

    assert "Invalid file format" in exc_info.value.message
    assert not exc_info.value.retryable


def test_validator_rejects_format_not_accepted() -> None:
    with pytest.raises(UploadError):
        UploadValidator(accepted_formats={"jpeg"}).validate(make_png())


def test_validator_rejects_oversize_file() -> None:
    data = make_png() + b"\x00" * (1024 * 1024)

    with pytest.raises(UploadError) as exc_info:
        UploadValidator(max_upload_mb=1).validate(data)

    assert exc_info.value.message == "File size exceeds 1MB limit"


def test_validator_rejects_empty_file() -> None:
    with pytest.raises(UploadError):
        UploadValidator().validate(b"")


def test_fit_within_preserves_aspect_ratio() -> None:
    assert fit_within(3000, 1000, 2048) == (2048, 683)
    assert fit_within(1000, 4000, 2048) == (512, 2048)


def test_small_images_are_not_resized() -> None:
    working = prepare_working_image(PillowImageCodec(), make_png(40, 30), 2048)

    assert working.image.size == (40, 30)
    assert working.working_bytes is None


def test_large_images_are_downscaled_to_png() -> None:
    working = prepare_working_image(PillowImageCodec(), make_png(300, 100), 100)

    assert working.image.size == (100, 33)
    assert working.working_bytes is not None
    with Image.open(io.BytesIO(working.working_bytes)) as reopened:
        assert reopened.format == "PNG"
        assert reopened.size == (100, 33)


def test_prepare_working_image_raises_decode_error() -> None:
    with pytest.raises(DecodeError):
        prepare_working_image(PillowImageCodec(), b"\x89PNG\r\n\x1a\ngarbage", 2048)


def test_decompression_bomb_raises_decode_error(monkeypatch) -> None:
    monkeypatch.setattr(Image, "MAX_IMAGE_PIXELS", 100)

    with pytest.raises(DecodeError):
        prepare_working_image(PillowImageCodec(), make_png(40, 30), 2048)
    with pytest.raises(DecodeError):
        PillowImageCodec().verify(make_png(40, 30))
