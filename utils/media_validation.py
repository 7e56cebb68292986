"""Validation helpers for uploaded and captured oral cavity images."""

from __future__ import annotations

import base64
import binascii
import io
import re
from dataclasses import dataclass
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

SUPPORTED_IMAGE_FORMATS = (
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/webp",
    "image/gif",
)

DEFAULT_MAX_IMAGE_BYTES = 5 * 1024 * 1024

_DATA_URI_RE = re.compile(r"^data:([a-zA-Z0-9]+/[a-zA-Z0-9\-.+]+);base64,(.+)$", re.DOTALL)


class InvalidImageError(ValueError):
    """Raised when an image cannot be accepted for screening."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


@dataclass(frozen=True)
class ValidatedImage:
    """An image that passed intake checks.

    Attributes:
        mime_type: MIME type sniffed from the decoded bytes.
        data: Decoded image bytes.
        base64: Base64 payload without any data-URI header.
    """

    mime_type: str
    data: bytes
    base64: str

    @property
    def data_uri(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64}"

    @property
    def size(self) -> int:
        return len(self.data)


def _supported_formats_text() -> str:
    return ", ".join(SUPPORTED_IMAGE_FORMATS)


def _check_mime(mime_type: Optional[str]) -> None:
    if not mime_type or mime_type.lower() not in SUPPORTED_IMAGE_FORMATS:
        raise InvalidImageError(
            f"Unsupported image format: {mime_type or 'unknown'}. "
            f"Supported formats: {_supported_formats_text()}"
        )


def split_data_uri(payload: str) -> Tuple[Optional[str], str]:
    """Return `(declared_mime, base64_payload)` for a data URI or bare base64 string."""
    payload = payload.strip()
    match = _DATA_URI_RE.match(payload)
    if match:
        return match.group(1).lower(), match.group(2)
    if payload.startswith("data:"):
        raise InvalidImageError("Image must be in base64 format with valid MIME type")
    return None, payload


def sniff_mime_type(data: bytes) -> Optional[str]:
    """Detect the image MIME type from its bytes, or None if unrecognised."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            fmt = img.format
    except (UnidentifiedImageError, OSError):
        return None
    if not fmt:
        return None
    return Image.MIME.get(fmt.upper(), f"image/{fmt.lower()}")


def validate_image_bytes(data: bytes, *, max_bytes: int = DEFAULT_MAX_IMAGE_BYTES) -> ValidatedImage:
    """Validate raw image bytes and return their base64 form.

    Raises:
        InvalidImageError: If the bytes are empty, too large, or not an allowed format.
    """
    if not data:
        raise InvalidImageError("No image provided")
    if len(data) > max_bytes:
        raise InvalidImageError(
            f"Image too large: {len(data)} bytes. Maximum size is {max_bytes // (1024 * 1024)}MB"
        )
    mime_type = sniff_mime_type(data)
    _check_mime(mime_type)
    return ValidatedImage(
        mime_type=mime_type,
        data=data,
        base64=base64.b64encode(data).decode("ascii"),
    )


def validate_image_payload(payload: Optional[str], *, max_bytes: int = DEFAULT_MAX_IMAGE_BYTES) -> ValidatedImage:
    """Validate a data URI or bare base64 image string.

    A declared data-URI MIME type outside the allow-list is rejected before
    the payload is decoded.
    """
    if not payload or not payload.strip():
        raise InvalidImageError("No image provided")

    declared, b64_payload = split_data_uri(payload)
    if declared is not None:
        _check_mime(declared)
    b64_payload = "".join(b64_payload.split())

    # base64 inflates by 4/3; reject obviously oversized payloads without decoding
    if len(b64_payload) * 3 // 4 > max_bytes + 3:
        raise InvalidImageError(
            f"Image too large. Maximum size is {max_bytes // (1024 * 1024)}MB"
        )

    try:
        data = base64.b64decode(b64_payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidImageError("Image is not valid base64 data") from exc

    validated = validate_image_bytes(data, max_bytes=max_bytes)
    # keep the caller's payload so its fingerprint is stable
    return ValidatedImage(mime_type=validated.mime_type, data=data, base64=b64_payload)


def validate_upload(
    raw: bytes,
    content_type: Optional[str],
    *,
    max_bytes: int = DEFAULT_MAX_IMAGE_BYTES,
) -> ValidatedImage:
    """Validate a multipart upload using its declared content type and its bytes."""
    if content_type:
        declared = content_type.lower().split(";", 1)[0].strip()
        _check_mime(declared)
    return validate_image_bytes(raw, max_bytes=max_bytes)
