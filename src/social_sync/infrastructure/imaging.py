"""JPEG/base64 helpers for images stored inside documents."""
from __future__ import annotations

import base64
import binascii
import io
import logging

from PIL import Image, UnidentifiedImageError

from social_sync.application.exceptions import ValidationError

logger = logging.getLogger(__name__)


def base64_size(n_bytes: int) -> int:
    """Length of the base64 encoding of ``n_bytes`` bytes."""
    return ((n_bytes + 2) // 3) * 4


def decode_image(data: str) -> Image.Image:
    try:
        raw = base64.b64decode(data, validate=False)
        image = Image.open(io.BytesIO(raw))
        image.load()
    except (binascii.Error, UnidentifiedImageError, OSError) as exc:
        raise ValidationError("Image could not be decoded") from exc
    return image


def downscale_to_fit(image: Image.Image, max_pixel: int) -> Image.Image:
    """Shrink so the longer side is at most ``max_pixel``, keeping the aspect ratio."""
    width, height = image.size
    longest = max(width, height)
    if longest <= max_pixel:
        return image
    scale = max_pixel / longest
    size = (max(1, int(width * scale)), max(1, int(height * scale)))
    return image.resize(size, Image.Resampling.LANCZOS)


def jpeg_bytes(image: Image.Image, quality: int) -> bytes:
    if image.mode not in ("RGB", "L"):
        image = image.convert("RGB")
    buffer = io.BytesIO()
    image.save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()


def encode_under_limit(
    image: Image.Image,
    *,
    start_max_dim: int = 2400,
    min_max_dim: int = 160,
    dim_step: float = 0.85,
    quality_start: int = 95,
    quality_min: int = 30,
    quality_step: int = 10,
    limit_bytes: int = 950_000,
) -> str | None:
    """Base64 JPEG no longer than ``limit_bytes``.

    Lowers JPEG quality first, then the dimensions, checking the encoded
    size after every step. Falls back to a tiny low-quality rendition and
    returns ``None`` when even that does not fit.
    """
    max_dim = min(start_max_dim, max(image.size))
    working = downscale_to_fit(image, max_dim)

    while max_dim >= min_max_dim:
        for quality in range(quality_start, quality_min - 1, -quality_step):
            data = jpeg_bytes(working, quality)
            if base64_size(len(data)) <= limit_bytes:
                return base64.b64encode(data).decode("ascii")

        next_dim = int(max_dim * dim_step)
        if next_dim < min_max_dim:
            break
        max_dim = next_dim
        working = downscale_to_fit(working, max_dim)

    tiny = jpeg_bytes(downscale_to_fit(image, min_max_dim), max(1, quality_min))
    if base64_size(len(tiny)) <= limit_bytes:
        return base64.b64encode(tiny).decode("ascii")
    logger.debug("Image does not fit into %d bytes", limit_bytes)
    return None


def prepare_upload(data: str, *, max_pixel: int, limit_bytes: int) -> str:
    """Decode an uploaded base64 image and re-encode it to fit a document."""
    image = downscale_to_fit(decode_image(data), max_pixel)
    encoded = encode_under_limit(image, limit_bytes=limit_bytes)
    if encoded is None:
        raise ValidationError("Image is too large. Please choose a smaller image.")
    return encoded
