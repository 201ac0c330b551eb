"""Tests for color quantization."""

from __future__ import annotations

import numpy as np
import pytest
from PIL import Image

from cleave.errors import InvalidParameter
from cleave.image_processing.quantization import quantize_colors
from cleave.models import QuantizationMethod
from conftest import gradient_image, solid_image


def _noisy_image(size: tuple[int, int] = (24, 24), seed: int = 7) -> Image.Image:
    rng = np.random.default_rng(seed)
    pixels = rng.integers(0, 256, size=(size[1], size[0], 3), dtype=np.uint8)
    return Image.fromarray(pixels)


def test_flat_image_yields_single_color_palette() -> None:
    quantized = quantize_colors(solid_image((100, 100), (255, 0, 0)), 8)

    assert quantized.palette == [(255, 0, 0)]
    assert quantized.indices.shape == (100, 100)
    assert not quantized.indices.any()


def test_few_colors_are_indexed_exactly() -> None:
    image = Image.new("RGB", (4, 2), (0, 0, 0))
    image.putpixel((3, 1), (0, 255, 0))
    image.putpixel((0, 1), (0, 0, 255))

    quantized = quantize_colors(image, 4)

    assert sorted(quantized.palette) == [(0, 0, 0), (0, 0, 255), (0, 255, 0)]
    colors = np.array(quantized.palette, dtype=np.uint8)
    assert np.array_equal(colors[quantized.indices], np.asarray(image))


@pytest.mark.parametrize("num_colors", [2, 8, 16, 64])
def test_palette_never_exceeds_color_count(num_colors: int) -> None:
    quantized = quantize_colors(_noisy_image(), num_colors)

    assert 1 <= len(quantized.palette) <= num_colors
    assert quantized.indices.min() >= 0
    assert quantized.indices.max() < len(quantized.palette)
    # No unused palette entries
    assert len(np.unique(quantized.indices)) == len(quantized.palette)
    assert len(set(quantized.palette)) == len(quantized.palette)


@pytest.mark.parametrize("method", list(QuantizationMethod))
def test_every_method_respects_color_count(method: QuantizationMethod) -> None:
    quantized = quantize_colors(gradient_image((40, 40)), 6, method=method)

    assert len(quantized.palette) <= 6
    assert quantized.indices.max() < len(quantized.palette)


@pytest.mark.parametrize("method", list(QuantizationMethod))
def test_quantization_is_deterministic(method: QuantizationMethod) -> None:
    image = _noisy_image((20, 20), seed=3)
    first = quantize_colors(image, 8, method=method)
    second = quantize_colors(image, 8, method=method)

    assert first.palette == second.palette
    assert np.array_equal(first.indices, second.indices)


def test_sampling_large_images_still_assigns_every_pixel() -> None:
    image = _noisy_image((80, 80), seed=11)
    quantized = quantize_colors(image, 4, sample_size=500)

    assert quantized.indices.shape == (80, 80)
    assert quantized.indices.max() < len(quantized.palette) <= 4


def test_alpha_is_flattened_before_clustering() -> None:
    image = Image.new("RGBA", (5, 5), (10, 20, 30, 0))
    assert quantize_colors(image, 2).palette == [(255, 255, 255)]


@pytest.mark.parametrize("num_colors", [0, 65, 2.5, True])
def test_invalid_color_count_is_rejected(num_colors) -> None:
    with pytest.raises(InvalidParameter):
        quantize_colors(solid_image((2, 2)), num_colors)


def test_unknown_method_is_rejected() -> None:
    with pytest.raises(InvalidParameter):
        quantize_colors(_noisy_image(), 4, method="posterize")
