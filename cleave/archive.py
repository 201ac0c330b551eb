"""Download naming and deterministic ZIP packaging of completed results."""

import io
import logging
import zipfile
from typing import Iterable, Sequence

from .errors import ArchiveError, QueueError
from .models import APP_NAME, ItemStatus, OutputFormat, QueueItem
from .queue_manager import QueueManager

logger = logging.getLogger(__name__)

# Fixed timestamp keeps archives byte-identical across runs (ZIP epoch)
ZIP_TIMESTAMP = (1980, 1, 1, 0, 0, 0)


def suggested_filename(original_name: str, output_format: OutputFormat) -> str:
    """``{base}_converted.{ext}`` where base is the name before its first dot."""
    base = original_name.split(".")[0] or "image"
    return f"{base}_converted.{output_format.extension}"


def archive_filename(app_name: str = APP_NAME) -> str:
    return f"{app_name}_batch.zip"


def disambiguate_names(names: Iterable[str]) -> "list[str]":
    """Make entry names unique by suffixing ``_1``, ``_2``... before the extension.

    The first occurrence keeps its name; later duplicates get the lowest free
    counter, so no entry ever overwrites another.
    """
    taken: "set[str]" = set()
    unique = []
    for name in names:
        candidate = name
        if candidate in taken:
            stem, dot, ext = name.rpartition(".")
            if not dot:
                stem, ext = name, ""
            counter = 1
            while True:
                candidate = f"{stem}_{counter}.{ext}" if dot else f"{stem}_{counter}"
                if candidate not in taken:
                    break
                counter += 1
        taken.add(candidate)
        unique.append(candidate)
    return unique


def build_archive(entries: "Sequence[tuple[str, bytes]]") -> bytes:
    """Pack ``(name, bytes)`` entries into one ZIP blob.

    Output is deterministic for identical input and order. Colliding names
    are disambiguated rather than overwritten.

    Raises:
        ArchiveError: If packaging fails
    """
    names = disambiguate_names(name for name, _ in entries)
    buffer = io.BytesIO()
    try:
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for name, (_, data) in zip(names, entries):
                info = zipfile.ZipInfo(name, date_time=ZIP_TIMESTAMP)
                info.compress_type = zipfile.ZIP_DEFLATED
                info.external_attr = 0o644 << 16
                archive.writestr(info, data)
    except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError, ValueError, TypeError) as e:
        raise ArchiveError(f"Failed to build archive: {e}") from e

    logger.info("Built archive with %d entries (%d bytes)", len(names), buffer.tell())
    return buffer.getvalue()


def export_item(queue: QueueManager, item_id: str) -> "tuple[bytes, str]":
    """Download payload for one completed item: ``(bytes, suggested_filename)``."""
    item = queue.get(item_id)
    if item.status is not ItemStatus.COMPLETE or item.result is None:
        raise QueueError(f"Item {item_id} has no completed result")
    return item.result.output_handle.read(), _item_filename(item)


def export_batch(queue: QueueManager, app_name: str = APP_NAME) -> "tuple[bytes, str]":
    """Archive every completed item: ``(zip_bytes, "{app_name}_batch.zip")``.

    Raises:
        ArchiveError: If there is nothing to archive or packaging fails.
            Queue state is never changed.
    """
    completed = queue.completed_items()
    if not completed:
        raise ArchiveError("No completed items to archive")
    entries = [(_item_filename(item), item.result.output_bytes) for item in completed]
    return build_archive(entries), archive_filename(app_name)


def _item_filename(item: QueueItem) -> str:
    return suggested_filename(item.original_name, item.result.output_format)
