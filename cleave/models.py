"""Data models and constants for the Cleave batch converter."""

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

from .errors import InvalidParameter

if TYPE_CHECKING:
    from .handles import Handle

APP_NAME = "cleave"

# Configuration file path
CONFIG_FILE = Path.home() / ".cleave_config.json"

# Conversion bounds (mirrors the ranges exposed in the settings panel)
MIN_QUALITY = 0.1
MAX_QUALITY = 1.0
MIN_COLORS = 2
MAX_COLORS = 64
COLOR_STEP = 2


class OutputFormat(Enum):
    """Target output formats, keyed by MIME type."""

    JPEG = "image/jpeg"
    PNG = "image/png"
    WEBP = "image/webp"
    AVIF = "image/avif"
    SVG = "image/svg+xml"

    @property
    def mime_type(self) -> str:
        return self.value

    @property
    def extension(self) -> str:
        """File extension used for downloads.

        AIDEV-NOTE: The MIME subtype is the extension except for jpeg (jpg)
        and svg+xml (svg).
        """
        subtype = self.value.split("/")[1]
        if subtype == "svg+xml":
            return "svg"
        if subtype == "jpeg":
            return "jpg"
        return subtype

    @property
    def pillow_format(self) -> str:
        """Format name understood by ``PIL.Image.save``."""
        return self.name

    @property
    def is_lossy(self) -> bool:
        return self in (OutputFormat.JPEG, OutputFormat.WEBP, OutputFormat.AVIF)

    @classmethod
    def parse(cls, value: "str | OutputFormat") -> "OutputFormat":
        """Resolve a format from an enum, MIME type, name or extension."""
        if isinstance(value, OutputFormat):
            return value
        text = str(value).strip().lower()
        for fmt in cls:
            if text in (fmt.value, fmt.name.lower(), fmt.extension):
                return fmt
        raise InvalidParameter(f"Unsupported output format: {value!r}")


class ItemStatus(Enum):
    """Lifecycle states of a queue item."""

    IDLE = "idle"
    PROCESSING = "processing"
    COMPLETE = "complete"
    ERROR = "error"


class QuantizationMethod(Enum):
    """Color quantization strategies for the vector pipeline."""

    KMEANS = "kmeans"
    MEDIAN_CUT = "median_cut"
    OCTREE = "octree"


@dataclass(frozen=True)
class ConversionSettings:
    """Per-run conversion configuration, shared read-only by every item.

    Frozen so a batch run always sees one consistent snapshot.
    """

    output_format: OutputFormat = OutputFormat.JPEG
    quality: float = 0.8  # 0.1-1.0, lossy formats only
    resize_ratio: float = 1.0  # multiplies both dimensions
    is_vector: bool = False
    color_count: int = 16  # 2-64 in steps of 2, vector only
    use_ai_analysis: bool = False

    def __post_init__(self):
        fmt = OutputFormat.parse(self.output_format)
        if self.is_vector:
            # Vector runs always emit SVG
            fmt = OutputFormat.SVG
        elif fmt is OutputFormat.SVG:
            raise InvalidParameter("SVG output requires the vector pipeline")
        object.__setattr__(self, "output_format", fmt)

        if not MIN_QUALITY <= self.quality <= MAX_QUALITY:
            raise InvalidParameter(
                f"quality must be within [{MIN_QUALITY}, {MAX_QUALITY}], got {self.quality}"
            )
        if not math.isfinite(self.resize_ratio) or self.resize_ratio <= 0:
            raise InvalidParameter(
                f"resize_ratio must be a finite number > 0, got {self.resize_ratio}"
            )
        if (
            isinstance(self.color_count, bool)
            or not isinstance(self.color_count, int)
            or not MIN_COLORS <= self.color_count <= MAX_COLORS
            or self.color_count % COLOR_STEP
        ):
            raise InvalidParameter(
                f"color_count must be an even integer within "
                f"[{MIN_COLORS}, {MAX_COLORS}], got {self.color_count!r}"
            )

    def with_changes(self, **changes: Any) -> "ConversionSettings":
        """Return a validated copy with ``changes`` applied."""
        if changes.get("is_vector") is False and "output_format" not in changes:
            # Leaving vector mode falls back to JPEG, as the format toggle does
            changes["output_format"] = OutputFormat.JPEG
        return replace(self, **changes)

    def to_dict(self) -> "dict[str, Any]":
        return {
            "output_format": self.output_format.name.lower(),
            "quality": self.quality,
            "resize_ratio": self.resize_ratio,
            "is_vector": self.is_vector,
            "color_count": self.color_count,
            "use_ai_analysis": self.use_ai_analysis,
        }

    @classmethod
    def from_dict(cls, data: "dict[str, Any]") -> "ConversionSettings":
        defaults = cls()
        return cls(
            output_format=OutputFormat.parse(
                data.get("output_format", defaults.output_format)
            ),
            quality=float(data.get("quality", defaults.quality)),
            resize_ratio=float(data.get("resize_ratio", defaults.resize_ratio)),
            is_vector=bool(data.get("is_vector", defaults.is_vector)),
            color_count=int(data.get("color_count", defaults.color_count)),
            use_ai_analysis=bool(data.get("use_ai_analysis", defaults.use_ai_analysis)),
        )


@dataclass
class ColoredPath:
    """A traced region outline with its fill color.

    AIDEV-NOTE: Points are pixel-corner coordinates in the source image
    (x right, y down). Color is RGB (0-255).
    """

    points: "list[tuple[int, int]]"
    color: "tuple[int, int, int]"
    is_closed: bool = True


@dataclass(frozen=True)
class Annotation:
    """Best-effort AI description and tags for one image."""

    description: str = ""
    tags: "tuple[str, ...]" = ()

    @classmethod
    def empty(cls) -> "Annotation":
        return cls()

    @property
    def is_empty(self) -> bool:
        return not self.description and not self.tags


@dataclass
class ProcessedResult:
    """Output of a successful conversion.

    AIDEV-NOTE: ``output_handle`` is attached by the QueueManager when the
    result is accepted and is released through the owning item only.
    """

    output_bytes: bytes
    output_format: OutputFormat
    ai_description: str = ""
    ai_tags: "list[str]" = field(default_factory=list)
    output_handle: "Handle | None" = None

    @property
    def output_size(self) -> int:
        return len(self.output_bytes)


@dataclass
class QueueItem:
    """One unit of work owned by the QueueManager."""

    id: str
    source_bytes: bytes
    original_name: str
    mime_type: str
    preview_handle: "Handle"
    status: ItemStatus = ItemStatus.IDLE
    result: ProcessedResult | None = None
    error_message: str | None = None

    @property
    def original_size(self) -> int:
        return len(self.source_bytes)

    @property
    def size_change_percent(self) -> int | None:
        """Relative change from source to output size, in whole percent."""
        if self.result is None or not self.original_size:
            return None
        delta = self.result.output_size - self.original_size
        return round(delta / self.original_size * 100)


@dataclass
class BatchSummary:
    """Counts describing one ``run_batch`` call."""

    selected: int = 0
    completed: int = 0
    failed: int = 0
    cancelled: int = 0

    @property
    def processed(self) -> int:
        return self.completed + self.failed


def format_bytes(size: int, decimals: int = 2) -> str:
    """Human readable byte count, e.g. ``1.5 KB``."""
    if size <= 0:
        return "0 Bytes"
    units = ["Bytes", "KB", "MB", "GB", "TB"]
    index = 0
    value = float(size)
    while value >= 1024 and index < len(units) - 1:
        value /= 1024
        index += 1
    text = f"{value:.{max(decimals, 0)}f}".rstrip("0").rstrip(".")
    return f"{text} {units[index]}"
