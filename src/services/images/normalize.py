"""Decoding and validation of inbound screenshot payloads.

Capture clients send the screenshot either as raw base64 or as a
`data:image/...;base64,` URL. This module turns that string into bytes plus
a media type the model provider will accept, without re-encoding the image.
"""

import base64
import binascii
import io
import logging
import re

from PIL import Image, UnidentifiedImageError

from services.answers.prompt import ImagePayload


logger = logging.getLogger(__name__)

# Configuration constants
DEFAULT_MAX_BASE64_CHARS = 100 * 1024 * 1024
FALLBACK_MEDIA_TYPE = "image/png"

# Formats every supported vision provider accepts
ALLOWED_MIME_TYPES = {"image/jpeg", "image/png", "image/webp", "image/gif"}

_DATA_URL = re.compile(
    r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?:;[\w-]+=[\w.-]+)*;base64,(?P<data>.*)$",
    re.DOTALL | re.IGNORECASE,
)
_WHITESPACE = re.compile(r"\s+")


class ImageValidationError(Exception):
    """Raised when image validation fails."""

    pass


class ImageSizeLimitError(ImageValidationError):
    """Raised when the encoded payload exceeds the configured bound."""

    pass


class ImageFormatError(ImageValidationError):
    """Raised when the payload is not base64 or not a supported image."""

    pass


def split_data_url(value: str) -> tuple[str | None, str]:
    """Return (declared media type, base64 body) for a data URL or raw base64."""
    match = _DATA_URL.match(value)
    if not match:
        return None, value
    mime = match.group("mime")
    return (mime.lower() if mime else None), match.group("data")


def validate_payload_size(
    encoded: str, max_chars: int = DEFAULT_MAX_BASE64_CHARS
) -> None:
    """Validate that the encoded payload is within the character bound.

    Raises:
        ImageSizeLimitError: If the payload is longer than `max_chars`
    """
    if len(encoded) > max_chars:
        raise ImageSizeLimitError(
            f"payload of {len(encoded)} characters exceeds limit of {max_chars}"
        )


def detect_media_type(image_bytes: bytes) -> str:
    """Identify the image format from its header.

    Only the header is read; the pixel data is never decoded.

    Raises:
        ImageFormatError: If the bytes are not a supported image
    """
    try:
        with Image.open(io.BytesIO(image_bytes)) as image:
            fmt = image.format
    except (UnidentifiedImageError, Image.DecompressionBombError) as e:
        raise ImageFormatError(f"unrecognized image data ({e})") from e

    media_type = Image.MIME.get(fmt or "", FALLBACK_MEDIA_TYPE)
    if media_type not in ALLOWED_MIME_TYPES:
        raise ImageFormatError(
            f"unsupported image type: {media_type}. "
            f"Only {', '.join(sorted(ALLOWED_MIME_TYPES))} are allowed."
        )
    return media_type


def decode_image_base64(
    value: str,
    max_chars: int = DEFAULT_MAX_BASE64_CHARS,
) -> ImagePayload:
    """Decode a raw-base64 or data-URL screenshot into an `ImagePayload`.

    Args:
        value: The `imageBase64` string from the request
        max_chars: Upper bound on the encoded length

    Returns:
        The decoded bytes with their detected media type

    Raises:
        ImageValidationError: If the payload is oversized, not base64, or
            not a supported image
    """
    declared, body = split_data_url(value.strip())
    validate_payload_size(body, max_chars)

    try:
        image_bytes = base64.b64decode(_WHITESPACE.sub("", body), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ImageFormatError(f"not valid base64 ({e})") from e
    if not image_bytes:
        raise ImageFormatError("empty image")

    media_type = detect_media_type(image_bytes)
    if declared and declared != media_type:
        logger.debug("Declared media type %s but detected %s", declared, media_type)

    logger.debug(
        "Decoded screenshot: %d base64 chars, %d bytes, %s",
        len(body),
        len(image_bytes),
        media_type,
    )
    return ImagePayload(data=image_bytes, media_type=media_type)
