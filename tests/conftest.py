"""Shared pytest fixtures."""

from __future__ import annotations

import io
from typing import Callable

import numpy as np
import pytest
from PIL import Image

from cleave.handles import HandleRegistry
from cleave.models import Annotation
from cleave.queue_manager import QueueManager


def encode_image(image: Image.Image, fmt: str = "PNG", **params) -> bytes:
    buffer = io.BytesIO()
    if fmt == "JPEG" and image.mode != "RGB":
        image = image.convert("RGB")
    image.save(buffer, format=fmt, **params)
    return buffer.getvalue()


def solid_image(size: tuple[int, int] = (100, 100), color=(255, 0, 0)) -> Image.Image:
    return Image.new("RGB", size, color)


def gradient_image(size: tuple[int, int] = (32, 24)) -> Image.Image:
    width, height = size
    xs = np.linspace(0, 255, width, dtype=np.float64)
    ys = np.linspace(0, 255, height, dtype=np.float64)
    red = np.tile(xs, (height, 1))
    green = np.tile(ys[:, None], (1, width))
    blue = (red + green) / 2
    pixels = np.stack([red, green, blue], axis=-1).astype(np.uint8)
    return Image.fromarray(pixels)


@pytest.fixture
def png_bytes() -> bytes:
    return encode_image(gradient_image(), "PNG")


@pytest.fixture
def jpeg_factory() -> Callable[..., bytes]:
    def factory(size: tuple[int, int] = (40, 30), color=(30, 120, 200)) -> bytes:
        return encode_image(solid_image(size, color), "JPEG", quality=90)

    return factory


@pytest.fixture
def corrupted_bytes() -> bytes:
    return b"\x89PNG\r\n\x1a\n this is not really a png"


@pytest.fixture
def registry() -> HandleRegistry:
    return HandleRegistry()


@pytest.fixture
def queue(registry: HandleRegistry) -> QueueManager:
    return QueueManager(handles=registry)


class RecordingAnnotator:
    """Annotator stub recording calls and returning a fixed annotation."""

    def __init__(self, annotation: Annotation | None = None, error: Exception | None = None) -> None:
        self.annotation = annotation or Annotation(description="a red square", tags=("red", "square"))
        self.error = error
        self.calls: list[tuple[bytes, str]] = []

    def annotate(self, data: bytes, mime_type: str) -> Annotation:
        self.calls.append((data, mime_type))
        if self.error is not None:
            raise self.error
        return self.annotation


@pytest.fixture
def annotator() -> RecordingAnnotator:
    return RecordingAnnotator()
