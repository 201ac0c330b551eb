"""Image processing pipeline for batch conversion.

AIDEV-NOTE: This package holds the per-item conversion machinery:
- codec: decode, resize and encode primitives (Pillow)
- quantization: color palette reduction
- vectorize: region tracing and SVG document generation
- processor: ImageConverter pipeline orchestrator
"""

from .codec import decode, encode, is_image_mime, resize
from .processor import ImageConverter, convert_one
from .quantization import QuantizedImage, quantize_colors
from .vectorize import colored_paths_to_svg, svg_to_bytes, vectorize

__all__ = [
    "ImageConverter",
    "QuantizedImage",
    "colored_paths_to_svg",
    "convert_one",
    "decode",
    "encode",
    "is_image_mime",
    "quantize_colors",
    "resize",
    "svg_to_bytes",
    "vectorize",
]
