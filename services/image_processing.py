"""Pillow helpers for screening images.

Provides `ImageProcessor`, a small wrapper around Pillow that

- downsizes large images before they are sent to the model, and
- renders the PNG thumbnail stored next to each analysis.

Example:
    processor = ImageProcessor()
    thumb_png = processor.create_thumbnail(image_bytes)
"""
from __future__ import annotations

import base64
import io
import logging
from typing import Tuple

from PIL import Image

from utils.media_validation import ValidatedImage

LOGGER = logging.getLogger(__name__)

COMPRESS_THRESHOLD_CHARS = 500_000

_PIL_SAVE_FORMATS = {
    "image/jpeg": "JPEG",
    "image/jpg": "JPEG",
    "image/png": "PNG",
    "image/webp": "WEBP",
    "image/gif": "GIF",
}


class ImageProcessor:
    """Resize and thumbnail validated images.

    Args:
        max_dimension: Longest side, in pixels, of an image sent to the model.
        quality: Encoder quality used when re-encoding lossy formats.
        thumbnail_size: Bounding box for stored thumbnails.
        background: Color used when flattening transparent images.
    """

    def __init__(
        self,
        max_dimension: int = 800,
        quality: int = 80,
        thumbnail_size: Tuple[int, int] = (160, 160),
        background: Tuple[int, int, int] | None = None,
    ):
        self.max_dimension = max_dimension
        self.quality = quality
        self.thumbnail_size = thumbnail_size
        self.background = background or (255, 255, 255)

    def compress(self, image: ValidatedImage, threshold: int = COMPRESS_THRESHOLD_CHARS) -> ValidatedImage:
        """Downscale an image whose base64 payload exceeds `threshold` characters.

        The aspect ratio is preserved. If the image cannot be re-encoded the
        original is returned unchanged.
        """
        if len(image.base64) <= threshold:
            return image

        save_format = _PIL_SAVE_FORMATS.get(image.mime_type, "JPEG")
        try:
            with Image.open(io.BytesIO(image.data)) as src:
                src.load()
                resized = src.copy()
            resized.thumbnail((self.max_dimension, self.max_dimension), Image.LANCZOS)
            if save_format == "JPEG" and resized.mode not in ("RGB", "L"):
                resized = resized.convert("RGB")
            out_io = io.BytesIO()
            params = {"quality": self.quality} if save_format in ("JPEG", "WEBP") else {}
            resized.save(out_io, format=save_format, **params)
        except Exception as exc:  # pylint: disable=broad-exception-caught
            LOGGER.warning("Image compression failed, sending original: %s", exc)
            return image

        data = out_io.getvalue()
        LOGGER.debug("Compressed image from %d to %d bytes", image.size, len(data))
        return ValidatedImage(
            mime_type=image.mime_type,
            data=data,
            base64=base64.b64encode(data).decode("ascii"),
        )

    def create_thumbnail(self, data: bytes) -> bytes:
        """Return PNG thumbnail bytes that fit within `thumbnail_size`.

        Raises:
            ValueError: If the bytes cannot be opened as an image.
        """
        try:
            src = Image.open(io.BytesIO(data))
            src.load()
        except Exception as exc:
            raise ValueError("Decoded bytes are not a supported image format") from exc

        src = src.convert("RGBA")
        src.thumbnail(self.thumbnail_size, Image.LANCZOS)

        # Flatten alpha against the background color
        background = Image.new("RGB", src.size, self.background)
        background.paste(src, mask=src.split()[3])

        out_io = io.BytesIO()
        background.save(out_io, format="PNG", optimize=True)
        return out_io.getvalue()
