"""Fixed gallery of placeholder images for the demo/mock path.

The images are rendered with Pillow on first use (a two-colour diagonal
gradient with a title band) and cached as PNG data URIs, so demo mode needs
no network access and no bundled binary assets.
"""

from __future__ import annotations

import io
import logging
import random
from dataclasses import dataclass
from functools import lru_cache

from PIL import Image, ImageDraw

from .transports import to_data_uri

logger = logging.getLogger(__name__)

_TILE_SIZE = 256


@dataclass(frozen=True)
class MockImage:
    """One entry in the demo gallery."""

    title: str
    start: tuple[int, int, int]
    end: tuple[int, int, int]


MOCK_GALLERY: tuple[MockImage, ...] = (
    MockImage("Dusk Harbor", (28, 37, 86), (242, 140, 80)),
    MockImage("Moss Grotto", (14, 58, 44), (166, 212, 120)),
    MockImage("Neon Alley", (40, 10, 70), (0, 220, 230)),
    MockImage("Salt Flats", (210, 205, 190), (120, 150, 190)),
    MockImage("Ember Forge", (60, 12, 8), (250, 190, 60)),
    MockImage("Glacier Hall", (190, 225, 245), (40, 80, 140)),
)


def _render(entry: MockImage) -> Image.Image:
    image = Image.new("RGB", (_TILE_SIZE, _TILE_SIZE))
    pixels = image.load()
    span = 2 * (_TILE_SIZE - 1)
    for y in range(_TILE_SIZE):
        for x in range(_TILE_SIZE):
            t = (x + y) / span
            pixels[x, y] = tuple(
                round(a + (b - a) * t) for a, b in zip(entry.start, entry.end)
            )

    draw = ImageDraw.Draw(image)
    draw.rectangle((0, _TILE_SIZE - 36, _TILE_SIZE, _TILE_SIZE), fill=(0, 0, 0))
    draw.text((10, _TILE_SIZE - 26), f"DEMO - {entry.title}", fill=(255, 255, 255))
    return image


@lru_cache(maxsize=None)
def mock_image_uri(index: int) -> str:
    """Return the PNG data URI for gallery entry *index*."""
    entry = MOCK_GALLERY[index]
    buffer = io.BytesIO()
    _render(entry).save(buffer, format="PNG")
    logger.debug("Rendered demo image '%s'.", entry.title)
    return to_data_uri(buffer.getvalue(), "image/png")


def pick_mock_image(rng: random.Random) -> str:
    """Pseudo-randomly choose one gallery image."""
    return mock_image_uri(rng.randrange(len(MOCK_GALLERY)))
