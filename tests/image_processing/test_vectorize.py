"""Tests for region tracing and SVG generation."""

from __future__ import annotations

import xml.etree.ElementTree as ET

import numpy as np
import svg

from cleave.image_processing.quantization import QuantizedImage, quantize_colors
from cleave.image_processing.vectorize import (
    color_to_hex,
    svg_to_bytes,
    trace_region_outlines,
    vectorize,
)
from conftest import solid_image

SVG_NS = "{http://www.w3.org/2000/svg}"


def _loop_area(loop: list[tuple[int, int]]) -> float:
    """Signed shoelace area; positive for clockwise loops in y-down space."""
    total = 0
    for (x1, y1), (x2, y2) in zip(loop, loop[1:] + loop[:1]):
        total += x1 * y2 - x2 * y1
    return total / 2


def _parse(document: svg.SVG) -> ET.Element:
    return ET.fromstring(svg_to_bytes(document))


def test_flat_image_traces_one_path_over_the_viewbox() -> None:
    quantized = quantize_colors(solid_image((100, 100), (255, 0, 0)), 8)
    document = vectorize(quantized)

    assert len(quantized.palette) == 1
    assert len(document.elements) == 1

    root = _parse(document)
    assert root.attrib["viewBox"] == "0 0 100 100"
    paths = root.findall(f"{SVG_NS}path")
    assert len(paths) == 1
    assert paths[0].attrib["fill"] == "#ff0000"

    outlines = trace_region_outlines(quantized.indices, 0)
    assert len(outlines) == 1
    assert sorted(outlines[0]) == [(0, 0), (0, 100), (100, 0), (100, 100)]


def test_single_pixel_region_is_a_closed_square() -> None:
    indices = np.zeros((3, 3), dtype=np.uint8)
    indices[1, 1] = 1

    outlines = trace_region_outlines(indices, 1)

    assert outlines == [[(1, 1), (2, 1), (2, 2), (1, 2)]]


def test_region_with_hole_has_outer_and_inner_outline() -> None:
    indices = np.zeros((3, 3), dtype=np.uint8)
    indices[1, 1] = 1

    outlines = trace_region_outlines(indices, 0)

    assert len(outlines) == 2
    areas = sorted(_loop_area(loop) for loop in outlines)
    # Hole runs the other way round
    assert areas == [-1.0, 9.0]


def test_diagonal_pixels_produce_closed_outlines() -> None:
    indices = np.array([[1, 0], [0, 1]], dtype=np.uint8)

    for palette_index in (0, 1):
        outlines = trace_region_outlines(indices, palette_index)
        total_area = sum(_loop_area(loop) for loop in outlines)
        assert total_area == 2
        for loop in outlines:
            assert len(loop) >= 4


def test_outline_area_matches_pixel_count() -> None:
    rng = np.random.default_rng(5)
    indices = rng.integers(0, 3, size=(12, 9)).astype(np.uint8)

    for palette_index in range(3):
        outlines = trace_region_outlines(indices, palette_index)
        area = sum(_loop_area(loop) for loop in outlines)
        assert area == int((indices == palette_index).sum())


def test_absent_palette_index_has_no_outlines() -> None:
    assert trace_region_outlines(np.zeros((4, 4), dtype=np.uint8), 3) == []


def test_one_path_per_palette_entry() -> None:
    indices = np.array(
        [
            [0, 0, 1, 1],
            [0, 2, 2, 1],
            [0, 0, 1, 1],
        ],
        dtype=np.uint8,
    )
    quantized = QuantizedImage(palette=[(0, 0, 0), (255, 255, 255), (0, 128, 255)], indices=indices)

    root = _parse(vectorize(quantized))

    assert root.attrib["viewBox"] == "0 0 4 3"
    fills = [p.attrib["fill"] for p in root.findall(f"{SVG_NS}path")]
    assert fills == ["#000000", "#ffffff", "#0080ff"]
    for path in root.findall(f"{SVG_NS}path"):
        assert path.attrib["fill-rule"] == "evenodd"
        assert path.attrib["d"].startswith("M")
        assert path.attrib["d"].rstrip().endswith("Z")


def test_vectorize_is_deterministic() -> None:
    rng = np.random.default_rng(9)
    indices = rng.integers(0, 4, size=(10, 10)).astype(np.uint8)
    quantized = QuantizedImage(palette=[(i * 60, 0, 0) for i in range(4)], indices=indices)

    assert svg_to_bytes(vectorize(quantized)) == svg_to_bytes(vectorize(quantized))


def test_color_to_hex() -> None:
    assert color_to_hex((255, 0, 16)) == "#ff0010"
