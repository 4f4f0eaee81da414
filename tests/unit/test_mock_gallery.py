"""Unit tests for the demo image gallery."""

from __future__ import annotations

import base64
import io
import random

from PIL import Image

from musebox.core.mock_gallery import MOCK_GALLERY, mock_image_uri, pick_mock_image
from musebox.core.prompt_compiler import parse_data_uri


def test_gallery_images_are_png_data_uris():
    for index in range(len(MOCK_GALLERY)):
        reference = parse_data_uri(mock_image_uri(index))
        assert reference.mime_type == "image/png"
        image = Image.open(io.BytesIO(base64.b64decode(reference.data)))
        assert image.size == (256, 256)


def test_rendering_is_cached():
    assert mock_image_uri(1) is mock_image_uri(1)


def test_pick_is_reproducible_and_from_gallery():
    gallery = {mock_image_uri(i) for i in range(len(MOCK_GALLERY))}
    first = [pick_mock_image(random.Random(5)) for _ in range(3)]
    assert len(set(first)) == 1
    assert first[0] in gallery
