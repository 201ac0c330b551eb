"""Input acquisition: turn files on disk into ``(bytes, filename, mime_type)``."""

import logging
import mimetypes
from pathlib import Path
from typing import Iterable, Iterator

from .image_processing.codec import is_image_mime

logger = logging.getLogger(__name__)

# Formats mimetypes does not know on every platform
_EXTRA_TYPES = {
    ".webp": "image/webp",
    ".avif": "image/avif",
    ".heic": "image/heic",
}


def guess_mime_type(path: str | Path) -> str:
    suffix = Path(path).suffix.lower()
    if suffix in _EXTRA_TYPES:
        return _EXTRA_TYPES[suffix]
    mime_type, _ = mimetypes.guess_type(str(path))
    return mime_type or "application/octet-stream"


def iter_inputs(paths: Iterable[str | Path]) -> "Iterator[tuple[bytes, str, str]]":
    """Yield image inputs from ``paths``; directories are walked one level.

    Non-image files are dropped silently, as drag-and-drop intake does.
    """
    for raw in paths:
        path = Path(raw)
        candidates = sorted(p for p in path.iterdir() if p.is_file()) if path.is_dir() else [path]
        for candidate in candidates:
            mime_type = guess_mime_type(candidate)
            if not is_image_mime(mime_type):
                logger.debug("Ignoring non-image file %s", candidate)
                continue
            yield candidate.read_bytes(), candidate.name, mime_type
