"""Region tracing and SVG generation for quantized images.

AIDEV-NOTE: Each palette entry becomes one <path> element. The outline of
every contiguous region is traced along pixel edges, so the paths tile the
viewBox exactly and even single-pixel regions yield a closed square.
"""

import logging

import numpy as np
import svg

from ..models import ColoredPath
from .quantization import QuantizedImage

logger = logging.getLogger(__name__)

Point = "tuple[int, int]"


def vectorize(quantized: QuantizedImage) -> svg.SVG:
    """Trace every palette region of ``quantized`` into an SVG document.

    Args:
        quantized: Palette and index buffer from ``quantize_colors``

    Returns:
        SVG document whose viewBox matches the source dimensions
    """
    paths: "list[ColoredPath]" = []
    for palette_index, color in enumerate(quantized.palette):
        for loop in trace_region_outlines(quantized.indices, palette_index):
            paths.append(ColoredPath(points=loop, color=color, is_closed=True))

    logger.debug(
        "Traced %d outlines for %d palette colors", len(paths), len(quantized.palette)
    )
    return colored_paths_to_svg(paths, quantized.width, quantized.height)


def trace_region_outlines(indices: np.ndarray, palette_index: int) -> "list[list[Point]]":
    """Return closed outlines of all regions where ``indices == palette_index``.

    Outlines run clockwise around filled regions and counter-clockwise
    around holes, so they render correctly with the even-odd fill rule.
    """
    mask = np.asarray(indices) == palette_index
    if not mask.any():
        return []

    padded = np.pad(mask, 1, constant_values=False)
    inner = padded[1:-1, 1:-1]

    # A pixel edge is part of the outline when the neighbour across it is outside
    edges_by_side = (
        (inner & ~padded[:-2, 1:-1], ((0, 0), (1, 0))),  # top
        (inner & ~padded[1:-1, 2:], ((1, 0), (1, 1))),  # right
        (inner & ~padded[2:, 1:-1], ((1, 1), (0, 1))),  # bottom
        (inner & ~padded[1:-1, :-2], ((0, 1), (0, 0))),  # left
    )

    outgoing: "dict[Point, list[Point]]" = {}
    for side, ((sx, sy), (ex, ey)) in edges_by_side:
        rows, cols = np.nonzero(side)
        for y, x in zip(rows.tolist(), cols.tolist()):
            outgoing.setdefault((x + sx, y + sy), []).append((x + ex, y + ey))

    loops: "list[list[Point]]" = []
    for start in list(outgoing):
        while outgoing[start]:
            loop = [start]
            current = outgoing[start].pop()
            # Every vertex has as many incoming as outgoing edges, so the
            # walk always returns to its start
            while current != start:
                loop.append(current)
                current = outgoing[current].pop()
            loops.append(_drop_collinear(loop))

    return loops


def _drop_collinear(loop: "list[Point]") -> "list[Point]":
    """Remove vertices that lie on a straight run of the outline."""
    count = len(loop)
    if count <= 4:
        return loop

    kept = []
    for i, (x, y) in enumerate(loop):
        px, py = loop[i - 1]
        nx, ny = loop[(i + 1) % count]
        incoming = (_sign(x - px), _sign(y - py))
        outgoing = (_sign(nx - x), _sign(ny - y))
        if incoming != outgoing:
            kept.append((x, y))
    return kept


def _sign(value: int) -> int:
    return (value > 0) - (value < 0)


def color_to_hex(color: "tuple[int, int, int]") -> str:
    r, g, b = color
    return f"#{r:02x}{g:02x}{b:02x}"


def colored_paths_to_svg(
    colored_paths: "list[ColoredPath]",
    width: int,
    height: int,
) -> svg.SVG:
    """Convert colored outlines to an SVG document.

    Outlines sharing a color are merged into one <path> element, in order
    of first appearance.

    Args:
        colored_paths: List of ColoredPath objects in pixel coordinates
        width: Source image width in pixels
        height: Source image height in pixels

    Returns:
        SVG document with a viewBox of ``0 0 width height``
    """
    grouped: "dict[tuple[int, int, int], list[svg.PathData]]" = {}
    for path in colored_paths:
        if not path.points:
            continue
        commands = grouped.setdefault(tuple(path.color), [])
        (x0, y0), *rest = path.points
        commands.append(svg.M(x0, y0))
        commands.extend(svg.L(x, y) for x, y in rest)
        if path.is_closed:
            commands.append(svg.Z())

    elements: "list[svg.Element]" = [
        svg.Path(d=commands, fill=color_to_hex(color), fill_rule="evenodd")
        for color, commands in grouped.items()
    ]

    return svg.SVG(
        width=width,
        height=height,
        viewBox=svg.ViewBoxSpec(0, 0, width, height),
        elements=elements,
    )


def svg_to_bytes(document: svg.SVG) -> bytes:
    """Serialize an SVG document to UTF-8 bytes."""
    return document.as_str().encode("utf-8")
