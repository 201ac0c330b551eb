"""Queue of conversion items and their lifecycle state machine.

AIDEV-NOTE: The QueueManager owns its collection exclusively. All state
changes go through the methods below, and every handle an item owns is
released through ``_release_item`` only.
"""

import logging
import uuid
from threading import RLock
from typing import Iterable

from .errors import InvalidTransition, ItemNotFound, QueueBusyError
from .handles import HandleRegistry
from .image_processing.codec import is_image_mime
from .models import ItemStatus, ProcessedResult, QueueItem

logger = logging.getLogger(__name__)

# Target state -> states it may be entered from. Idle is only re-entered
# through revert_to_idle and reset, which name their own predecessors.
_TRANSITIONS = {
    ItemStatus.PROCESSING: {ItemStatus.IDLE, ItemStatus.ERROR},
    ItemStatus.COMPLETE: {ItemStatus.PROCESSING},
    ItemStatus.ERROR: {ItemStatus.PROCESSING},
}


class QueueManager:
    """Ordered collection of QueueItems with validated state transitions.

    Args:
        reconvert_completed: When True, Complete items are selected again by
            ``select_pending`` and may move back to Processing. Off by
            default: completed items need an explicit ``reset``.
        handles: Registry used to create preview/output handles
    """

    def __init__(
        self,
        reconvert_completed: bool = False,
        handles: HandleRegistry | None = None,
    ):
        self.reconvert_completed = reconvert_completed
        self.handles = handles or HandleRegistry()
        self._items: "dict[str, QueueItem]" = {}
        self._lock = RLock()

    # -------------------------------------------------------------
    # Views
    # -------------------------------------------------------------

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __contains__(self, item_id: str) -> bool:
        with self._lock:
            return item_id in self._items

    def items(self) -> "tuple[QueueItem, ...]":
        """All items in insertion (display) order."""
        with self._lock:
            return tuple(self._items.values())

    def get(self, item_id: str) -> QueueItem:
        with self._lock:
            try:
                return self._items[item_id]
            except KeyError:
                raise ItemNotFound(item_id) from None

    def status_of(self, item_id: str) -> ItemStatus:
        return self.get(item_id).status

    def completed_items(self) -> "list[QueueItem]":
        with self._lock:
            return [
                item
                for item in self._items.values()
                if item.status is ItemStatus.COMPLETE and item.result is not None
            ]

    @property
    def is_processing(self) -> bool:
        with self._lock:
            return any(i.status is ItemStatus.PROCESSING for i in self._items.values())

    @property
    def is_all_complete(self) -> bool:
        with self._lock:
            return bool(self._items) and all(
                i.status is ItemStatus.COMPLETE for i in self._items.values()
            )

    def counts(self) -> "dict[ItemStatus, int]":
        with self._lock:
            counts = {status: 0 for status in ItemStatus}
            for item in self._items.values():
                counts[item.status] += 1
            return counts

    # -------------------------------------------------------------
    # Intake & removal
    # -------------------------------------------------------------

    def enqueue(self, source_bytes: bytes, name: str, mime_type: str) -> str:
        """Create an Idle item owning ``source_bytes`` and return its id."""
        data = bytes(source_bytes)
        with self._lock:
            item_id = uuid.uuid4().hex
            preview = self.handles.create(data, mime_type)
            self._items[item_id] = QueueItem(
                id=item_id,
                source_bytes=data,
                original_name=name,
                mime_type=mime_type,
                preview_handle=preview,
            )
        logger.info("Queued %s (%s, %d bytes) as %s", name, mime_type, len(data), item_id)
        return item_id

    def enqueue_many(self, inputs: "Iterable[tuple[bytes, str, str]]") -> "list[str]":
        """Enqueue ``(bytes, filename, mime_type)`` tuples, skipping non-images."""
        ids = []
        for data, name, mime_type in inputs:
            if not is_image_mime(mime_type):
                logger.debug("Skipping non-image input %s (%s)", name, mime_type)
                continue
            ids.append(self.enqueue(data, name, mime_type))
        return ids

    def dequeue(self, item_id: str) -> None:
        """Remove an item and release its handles. Unknown ids are ignored."""
        with self._lock:
            item = self._items.get(item_id)
            if item is None:
                return
            if item.status is ItemStatus.PROCESSING:
                raise QueueBusyError(f"Item {item_id} is being processed")
            del self._items[item_id]
            self._release_item(item)
        logger.info("Removed %s (%s)", item.original_name, item_id)

    def clear(self) -> None:
        """Remove every item and release all handles."""
        with self._lock:
            if self.is_processing:
                raise QueueBusyError("Cannot clear the queue while a batch is processing")
            items = list(self._items.values())
            self._items.clear()
            for item in items:
                self._release_item(item)
        logger.info("Cleared %d items", len(items))

    # -------------------------------------------------------------
    # State machine
    # -------------------------------------------------------------

    def select_pending(self) -> "list[str]":
        """Ids of items eligible for the next batch run, in queue order."""
        eligible = {ItemStatus.IDLE, ItemStatus.ERROR}
        if self.reconvert_completed:
            eligible.add(ItemStatus.COMPLETE)
        with self._lock:
            return [i.id for i in self._items.values() if i.status in eligible]

    def mark_processing(self, item_ids: "Iterable[str]") -> None:
        """Move all ``item_ids`` to Processing at once.

        Nothing changes if any item cannot make the transition.
        """
        item_ids = list(item_ids)
        allowed = set(_TRANSITIONS[ItemStatus.PROCESSING])
        if self.reconvert_completed:
            allowed.add(ItemStatus.COMPLETE)
        with self._lock:
            items = [self.get(item_id) for item_id in item_ids]
            for item in items:
                self._check(item, ItemStatus.PROCESSING, allowed=allowed)
            for item in items:
                self._clear_outcome(item)
                item.status = ItemStatus.PROCESSING

    def mark_complete(self, item_id: str, result: ProcessedResult) -> None:
        """Record a successful conversion; attaches the output handle."""
        with self._lock:
            item = self.get(item_id)
            self._check(item, ItemStatus.COMPLETE)
            result.output_handle = self.handles.create(
                result.output_bytes, result.output_format.mime_type
            )
            item.result = result
            item.error_message = None
            item.status = ItemStatus.COMPLETE

    def mark_error(self, item_id: str, message: str) -> None:
        with self._lock:
            item = self.get(item_id)
            self._check(item, ItemStatus.ERROR)
            item.result = None
            item.error_message = message
            item.status = ItemStatus.ERROR

    def revert_to_idle(self, item_ids: "Iterable[str]") -> None:
        """Return Processing items that never started (cancelled) to Idle."""
        with self._lock:
            for item_id in item_ids:
                item = self.get(item_id)
                self._check(item, ItemStatus.IDLE, allowed={ItemStatus.PROCESSING})
                item.status = ItemStatus.IDLE

    def reset(self, item_id: str) -> None:
        """Explicitly return a Complete or Error item to Idle for reconversion."""
        with self._lock:
            item = self.get(item_id)
            self._check(item, ItemStatus.IDLE, allowed={ItemStatus.COMPLETE, ItemStatus.ERROR})
            self._clear_outcome(item)
            item.status = ItemStatus.IDLE

    def _check(
        self,
        item: QueueItem,
        target: ItemStatus,
        allowed: "set[ItemStatus] | None" = None,
    ) -> None:
        predecessors = allowed if allowed is not None else _TRANSITIONS[target]
        if item.status not in predecessors:
            raise InvalidTransition(
                f"Item {item.id} cannot move from {item.status.value} to {target.value}"
            )

    # -------------------------------------------------------------
    # Resource release
    # -------------------------------------------------------------

    def _clear_outcome(self, item: QueueItem) -> None:
        """Drop a previous result or error, releasing the output handle."""
        if item.result is not None and item.result.output_handle is not None:
            self.handles.release(item.result.output_handle)
            item.result.output_handle = None
        item.result = None
        item.error_message = None

    def _release_item(self, item: QueueItem) -> None:
        self._clear_outcome(item)
        if not item.preview_handle.released:
            self.handles.release(item.preview_handle)
