from __future__ import annotations

import base64
import io

import pytest
from PIL import Image

from social_sync.application.exceptions import ValidationError
from social_sync.infrastructure import imaging


def _b64_png(image: Image.Image) -> str:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return base64.b64encode(buffer.getvalue()).decode("ascii")


@pytest.mark.parametrize("n,expected", [(0, 0), (1, 4), (3, 4), (4, 8), (950, 1268)])
def test_base64_size(n, expected):
    assert imaging.base64_size(n) == expected
    assert imaging.base64_size(n) == len(base64.b64encode(b"x" * n))


def test_downscale_keeps_aspect_ratio():
    image = Image.new("RGB", (3000, 2000))

    assert imaging.downscale_to_fit(image, 240).size == (240, 160)
    small = Image.new("RGB", (100, 50))
    assert imaging.downscale_to_fit(small, 240) is small


def test_encode_under_limit_fits():
    image = Image.effect_noise((800, 600), 64)

    encoded = imaging.encode_under_limit(image, limit_bytes=20_000)

    assert encoded is not None
    assert len(encoded) <= 20_000
    assert max(imaging.decode_image(encoded).size) <= 800


def test_encode_under_limit_gives_up():
    image = Image.effect_noise((400, 400), 64)

    assert imaging.encode_under_limit(image, limit_bytes=10) is None


def test_prepare_upload_converts_to_jpeg():
    image = Image.new("RGBA", (1200, 300), (10, 20, 30, 128))

    encoded = imaging.prepare_upload(_b64_png(image), max_pixel=600, limit_bytes=950_000)

    decoded = imaging.decode_image(encoded)
    assert decoded.format == "JPEG"
    assert decoded.size == (600, 150)


def test_prepare_upload_rejects_garbage():
    with pytest.raises(ValidationError):
        imaging.prepare_upload("bm90IGFuIGltYWdl", max_pixel=600, limit_bytes=950_000)
