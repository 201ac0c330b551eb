"""Per-item conversion pipeline orchestrating the primitives.

AIDEV-NOTE: Raster runs are decode -> resize -> encode; vector runs are
decode -> resize -> quantize -> vectorize -> serialize. Any primitive
failure surfaces as ConversionFailed carrying the item context.
"""

import logging

import svg
from PIL import Image

from ..errors import ConversionFailed, DecodeError, EncodeError, InvalidParameter
from ..models import ConversionSettings, QuantizationMethod
from .codec import decode, encode, resize
from .quantization import DEFAULT_SAMPLE_SIZE, QuantizedImage, quantize_colors
from .vectorize import svg_to_bytes, vectorize

logger = logging.getLogger(__name__)

PRIMITIVE_ERRORS = (DecodeError, EncodeError, InvalidParameter)


class ImageConverter:
    """Converts single images according to a ConversionSettings snapshot."""

    def __init__(
        self,
        settings: ConversionSettings,
        quantization_method: "QuantizationMethod | str" = QuantizationMethod.KMEANS,
        sample_size: int = DEFAULT_SAMPLE_SIZE,
    ):
        self.settings = settings
        self.quantization_method = QuantizationMethod(quantization_method)
        self.sample_size = sample_size

    def load_image(self, data: bytes, mime_type: str) -> Image.Image:
        """Decode source bytes into an RGBA pixel buffer."""
        return decode(data, mime_type)

    def quantize_colors(self, image: Image.Image) -> QuantizedImage:
        return quantize_colors(
            image,
            self.settings.color_count,
            method=self.quantization_method,
            sample_size=self.sample_size,
        )

    def vectorize(self, image: Image.Image) -> svg.SVG:
        return vectorize(self.quantize_colors(image))

    def convert(self, data: bytes, mime_type: str, context: str = "") -> bytes:
        """Execute the configured pipeline for one item.

        Args:
            data: Source image bytes (never modified)
            mime_type: Declared MIME type of ``data``
            context: Item description used in error messages

        Returns:
            Encoded output bytes

        Raises:
            ConversionFailed: If any primitive fails
        """
        settings = self.settings
        try:
            image = self.load_image(data, mime_type)
            orig_width, orig_height = image.size

            image = resize(image, settings.resize_ratio)
            logger.debug(
                "%s: %dx%d -> %dx%d",
                context or "item", orig_width, orig_height, image.width, image.height,
            )

            if settings.is_vector:
                document = self.vectorize(image)
                output = svg_to_bytes(document)
            else:
                output = encode(image, settings.output_format, settings.quality)
        except PRIMITIVE_ERRORS as e:
            raise ConversionFailed(context, e) from e

        logger.info(
            "Converted %s to %s (%d -> %d bytes)",
            context or "item", settings.output_format.name, len(data), len(output),
        )
        return output


def convert_one(
    data: bytes,
    mime_type: str,
    settings: ConversionSettings,
    context: str = "",
    **converter_options,
) -> bytes:
    """Convert one image with ``settings``; see ``ImageConverter.convert``."""
    return ImageConverter(settings, **converter_options).convert(data, mime_type, context)
