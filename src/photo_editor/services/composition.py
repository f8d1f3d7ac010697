"""Composition of foreground, background and transform onto a surface."""

import dataclasses
from dataclasses import dataclass
from enum import StrEnum

from PIL import Image

from photo_editor.domain.session import Transform

CANVAS_FILL = "#f3f4f6"
DEFAULT_BACKGROUND = "#ffffff"

BackgroundFill = str | Image.Image | None


class RecenterPolicy(StrEnum):
    """When the foreground is moved back to the surface center."""

    EVERY_COMPOSE = "every_compose"
    FIRST_COMPOSE = "first_compose"


def compute_default_transform(
    image_width: int, image_height: int, canvas_width: int, canvas_height: int
) -> Transform:
    """Fit the image inside the canvas without upscaling, centered."""
    scale = min(canvas_width / image_width, canvas_height / image_height, 1.0)
    return Transform(
        x=canvas_width / 2,
        y=canvas_height / 2,
        scale=scale,
        rotation=0.0,
    )


@dataclass
class CompositionEngine:
    """Render a session onto an RGBA surface.

    ``transform.x``/``transform.y`` name the foreground center. With
    ``RecenterPolicy.EVERY_COMPOSE`` the foreground is re-centered on every call
    and the stored position is ignored; ``FIRST_COMPOSE`` centers only the first
    composition of each generation. Background images are stretched to the
    surface bounds without preserving their aspect ratio.
    """

    width: int = 800
    height: int = 600
    recenter_policy: RecenterPolicy = RecenterPolicy.EVERY_COMPOSE
    _centered_generation: int | None = None

    def create_surface(self) -> Image.Image:
        """Return a blank surface of the configured size."""
        return Image.new("RGBA", (self.width, self.height), CANVAS_FILL)

    def default_transform(self, image: Image.Image) -> Transform:
        """Return the default transform for an image on this surface."""
        return compute_default_transform(
            image.width, image.height, self.width, self.height
        )

    def clear(self, surface: Image.Image) -> None:
        """Fill the surface with the neutral canvas color."""
        surface.paste(CANVAS_FILL, (0, 0, surface.width, surface.height))

    def compose(  # noqa: PLR0913
        self,
        surface: Image.Image,
        foreground: Image.Image,
        background: BackgroundFill,
        transform: Transform,
        *,
        generation: int | None = None,
    ) -> Transform:
        """Draw background then foreground; return the transform actually used."""
        self.clear(surface)
        _draw_background(surface, background)

        applied = transform
        if self._should_recenter(generation):
            applied = dataclasses.replace(
                transform, x=surface.width / 2, y=surface.height / 2
            )

        layer = _transformed(foreground, applied)
        left = round(applied.x - layer.width / 2)
        top = round(applied.y - layer.height / 2)
        surface.paste(layer, (left, top), layer)
        layer.close()
        return applied

    def _should_recenter(self, generation: int | None) -> bool:
        if self.recenter_policy is RecenterPolicy.EVERY_COMPOSE:
            return True
        if generation is not None and generation == self._centered_generation:
            return False
        self._centered_generation = generation
        return True


def _draw_background(surface: Image.Image, background: BackgroundFill) -> None:
    if isinstance(background, Image.Image):
        stretched = background.convert("RGBA").resize(
            surface.size, Image.Resampling.BILINEAR
        )
        surface.paste(stretched, (0, 0), stretched)
        stretched.close()
        return
    fill = background or DEFAULT_BACKGROUND
    surface.paste(fill, (0, 0, surface.width, surface.height))


def _transformed(foreground: Image.Image, transform: Transform) -> Image.Image:
    layer = foreground.convert("RGBA")
    width = max(1, round(layer.width * transform.scale))
    height = max(1, round(layer.height * transform.scale))
    if (width, height) != layer.size:
        layer = layer.resize((width, height), Image.Resampling.LANCZOS)
    if transform.rotation % 360:
        # Pillow rotates counter-clockwise; rotation is clockwise degrees.
        layer = layer.rotate(
            -transform.rotation, resample=Image.Resampling.BICUBIC, expand=True
        )
    return layer
