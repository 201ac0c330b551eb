"""Decode, resize and encode primitives built on Pillow.

AIDEV-NOTE: Pixel buffers are plain ``PIL.Image.Image`` objects in RGBA
mode. Every primitive returns a new image and never mutates its input.
"""

import io
import logging
import math

from PIL import Image, ImageOps, UnidentifiedImageError

from ..errors import DecodeError, EncodeError, InvalidParameter
from ..models import MAX_QUALITY, MIN_QUALITY, OutputFormat

logger = logging.getLogger(__name__)

WHITE = (255, 255, 255)


def is_image_mime(mime_type: str | None) -> bool:
    """True for MIME types the intake accepts (``image/*``)."""
    return bool(mime_type) and mime_type.lower().startswith("image/")


def decode(data: bytes, mime_type: str) -> Image.Image:
    """Decode raw bytes into an RGBA pixel buffer.

    Args:
        data: Encoded image bytes
        mime_type: Declared MIME type of ``data``

    Returns:
        PIL Image in RGBA mode with EXIF orientation applied

    Raises:
        DecodeError: If the bytes are not a valid image of a supported type
    """
    if not is_image_mime(mime_type):
        raise DecodeError(f"Unsupported MIME type: {mime_type!r}")
    if not data:
        raise DecodeError("Empty image payload")

    try:
        with Image.open(io.BytesIO(data)) as source:
            source.load()
            image = ImageOps.exif_transpose(source)
            # AIDEV-NOTE: Always convert to RGBA for consistent processing
            if image.mode != "RGBA":
                image = image.convert("RGBA")
    except (UnidentifiedImageError, OSError, ValueError, SyntaxError) as e:
        raise DecodeError(f"Failed to decode image: {e}") from e
    except Image.DecompressionBombError as e:
        raise DecodeError(f"Image too large to decode: {e}") from e

    if image.width == 0 or image.height == 0:
        raise DecodeError("Image has no pixels")

    logger.debug("Decoded %s image of %dx%d", mime_type, image.width, image.height)
    return image


def resize(image: Image.Image, ratio: float) -> Image.Image:
    """Scale both dimensions of ``image`` by ``ratio``.

    A ratio of 1 still returns a new buffer so the pipeline stays uniform.

    Raises:
        InvalidParameter: If ratio is not a finite positive number
    """
    if ratio is None or not math.isfinite(ratio) or ratio <= 0:
        raise InvalidParameter(f"Resize ratio must be a finite number > 0, got {ratio}")

    if ratio == 1:
        return image.copy()

    orig_width, orig_height = image.size
    # Truncate like a canvas does, but never collapse to zero pixels
    new_width = max(1, int(orig_width * ratio))
    new_height = max(1, int(orig_height * ratio))

    logger.debug(
        "Resizing %dx%d -> %dx%d (ratio %.3f)",
        orig_width, orig_height, new_width, new_height, ratio,
    )
    return image.resize((new_width, new_height), Image.Resampling.LANCZOS)


def flatten(image: Image.Image, background: "tuple[int, int, int]" = WHITE) -> Image.Image:
    """Composite an RGBA image onto an opaque background, returning RGB."""
    if image.mode != "RGBA":
        return image.convert("RGB")
    base = Image.new("RGBA", image.size, background + (255,))
    return Image.alpha_composite(base, image).convert("RGB")


def _quality_percent(quality: float) -> int:
    if not math.isfinite(quality) or not MIN_QUALITY <= quality <= MAX_QUALITY:
        raise InvalidParameter(
            f"quality must be within [{MIN_QUALITY}, {MAX_QUALITY}], got {quality}"
        )
    return int(round(quality * 100))


def encode(image: Image.Image, output_format: OutputFormat, quality: float) -> bytes:
    """Encode a pixel buffer to ``output_format``.

    Args:
        image: Pixel buffer to encode
        output_format: Target raster format
        quality: 0.1-1.0, ignored for lossless formats

    Raises:
        InvalidParameter: If a lossy format gets a quality outside 0.1-1.0
        EncodeError: If the format cannot be produced from this buffer
    """
    if output_format is OutputFormat.SVG:
        raise EncodeError("SVG is produced by the vector pipeline, not the raster encoder")

    params: dict = {}
    if output_format is OutputFormat.JPEG:
        # JPEG has no alpha channel
        image = flatten(image)
        params = {"quality": _quality_percent(quality), "optimize": False}
    elif output_format is OutputFormat.WEBP:
        params = {"quality": _quality_percent(quality), "method": 4}
    elif output_format is OutputFormat.AVIF:
        params = {"quality": _quality_percent(quality)}
    elif output_format is OutputFormat.PNG:
        params = {"optimize": False}

    buffer = io.BytesIO()
    try:
        image.save(buffer, format=output_format.pillow_format, **params)
    except KeyError as e:
        # Pillow raises KeyError when no encoder plugin is registered
        raise EncodeError(f"No encoder available for {output_format.name}") from e
    except (OSError, ValueError) as e:
        raise EncodeError(f"Failed to encode {output_format.name}: {e}") from e

    return buffer.getvalue()
