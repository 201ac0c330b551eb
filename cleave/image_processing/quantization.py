"""Color quantization methods for reducing image color palettes.

AIDEV-NOTE: This module handles color quantization using K-means clustering
and PIL's built-in methods. Every method is deterministic: identical input
and color count always yield the identical palette and assignment.
"""

import logging
from dataclasses import dataclass

import numpy as np
from PIL import Image
from sklearn.cluster import KMeans

from ..errors import InvalidParameter
from ..models import MAX_COLORS, QuantizationMethod
from .codec import flatten

logger = logging.getLogger(__name__)

KMEANS_SEED = 42
DEFAULT_SAMPLE_SIZE = 20_000


@dataclass
class QuantizedImage:
    """Palette plus per-pixel palette indices."""

    palette: "list[tuple[int, int, int]]"
    indices: np.ndarray  # (height, width) uint8, each value indexes palette

    @property
    def width(self) -> int:
        return int(self.indices.shape[1])

    @property
    def height(self) -> int:
        return int(self.indices.shape[0])


def quantize_colors(
    image: Image.Image,
    num_colors: int,
    method: "QuantizationMethod | str" = QuantizationMethod.KMEANS,
    sample_size: int = DEFAULT_SAMPLE_SIZE,
) -> QuantizedImage:
    """Reduce image to at most ``num_colors`` distinct colors.

    Args:
        image: Input image (RGBA or RGB)
        num_colors: Maximum palette size (2-64)
        method: Quantization method ('kmeans', 'median_cut', or 'octree')
        sample_size: Pixels sampled to fit K-means on large images

    Returns:
        QuantizedImage whose palette has no unused or duplicate entries

    AIDEV-NOTE: Images that already have few enough colors are indexed
    exactly, so a flat image always produces a single-entry palette.
    """
    if isinstance(num_colors, bool) or not isinstance(num_colors, (int, np.integer)):
        raise InvalidParameter(f"Color count must be an integer, got {num_colors!r}")
    if not 1 <= num_colors <= MAX_COLORS:
        raise InvalidParameter(f"Color count must be within [1, {MAX_COLORS}], got {num_colors}")

    try:
        method = QuantizationMethod(method)
    except ValueError as e:
        raise InvalidParameter(f"Unknown quantization method: {method!r}") from e

    # Drop alpha for color clustering
    rgb_image = flatten(image)
    pixels = np.asarray(rgb_image, dtype=np.uint8).reshape(-1, 3)
    height, width = rgb_image.height, rgb_image.width

    unique_colors, inverse = np.unique(pixels, axis=0, return_inverse=True)
    if len(unique_colors) <= num_colors:
        logger.debug("Image has %d colors, indexing exactly", len(unique_colors))
        return _compact(unique_colors, inverse.reshape(-1), height, width)

    if method is QuantizationMethod.KMEANS:
        centers, labels = quantize_kmeans(pixels, int(num_colors), sample_size)
    else:
        centers, labels = quantize_pillow(rgb_image, int(num_colors), method)

    quantized = _compact(centers, labels, height, width)
    logger.debug(
        "Quantized %dx%d image to %d colors using %s",
        width, height, len(quantized.palette), method.value,
    )
    return quantized


def quantize_kmeans(
    pixels: np.ndarray,
    num_colors: int,
    sample_size: int = DEFAULT_SAMPLE_SIZE,
) -> "tuple[np.ndarray, np.ndarray]":
    """K-means color quantization implementation.

    AIDEV-NOTE: More accurate than PIL's built-in quantization for
    photographs. The model is fitted on a seeded sample and then assigns
    every pixel, which keeps large images tractable.
    """
    samples = pixels
    if sample_size and len(pixels) > sample_size:
        rng = np.random.default_rng(KMEANS_SEED)
        chosen = np.sort(rng.choice(len(pixels), size=sample_size, replace=False))
        samples = pixels[chosen]

    samples = samples.astype(np.float64)
    n_clusters = min(num_colors, len(np.unique(samples, axis=0)))

    kmeans = KMeans(n_clusters=n_clusters, random_state=KMEANS_SEED, n_init=10)
    kmeans.fit(samples)

    centers = np.clip(np.rint(kmeans.cluster_centers_), 0, 255).astype(np.uint8)
    labels = kmeans.predict(pixels.astype(np.float64))
    return centers, labels


def quantize_pillow(
    image: Image.Image,
    num_colors: int,
    method: QuantizationMethod,
) -> "tuple[np.ndarray, np.ndarray]":
    """Pillow-based color quantization (median cut or fast octree)."""
    pil_method = (
        Image.Quantize.MEDIANCUT
        if method is QuantizationMethod.MEDIAN_CUT
        else Image.Quantize.FASTOCTREE
    )
    # Quantize returns a palette image
    quantized = image.quantize(colors=num_colors, method=pil_method, dither=Image.Dither.NONE)

    palette_data = quantized.getpalette() or [128, 128, 128]
    palette_data = palette_data + [0] * (256 * 3 - len(palette_data))
    centers = np.array(palette_data[: 256 * 3], dtype=np.uint8).reshape(-1, 3)
    labels = np.asarray(quantized, dtype=np.uint8).reshape(-1)
    return centers, labels


def _compact(
    centers: np.ndarray,
    labels: np.ndarray,
    height: int,
    width: int,
) -> QuantizedImage:
    """Drop unused centers and merge centers that round to the same color."""
    labels = np.asarray(labels).reshape(-1)
    used = np.unique(labels)
    used_colors = np.asarray(centers, dtype=np.uint8)[used]

    palette_colors, merged = np.unique(used_colors, axis=0, return_inverse=True)
    merged = merged.reshape(-1)

    lookup = np.zeros(int(used.max()) + 1, dtype=np.uint8)
    lookup[used] = merged
    indices = lookup[labels].reshape(height, width)

    palette = [tuple(int(c) for c in color) for color in palette_colors]
    return QuantizedImage(palette=palette, indices=indices)
