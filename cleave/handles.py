"""Display/download handles with explicit ownership.

A handle is the in-process analogue of a browser object URL: a token that
references a byte blob for previewing or downloading. Handles are created by
a ``HandleRegistry`` and must be released exactly once by their owner.
"""

import logging
import uuid
from dataclasses import dataclass, field
from threading import Lock

from .errors import HandleReleasedError

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class Handle:
    """Reference to a blob owned by a queue item or its result."""

    token: str
    mime_type: str
    _data: bytes | None = field(repr=False)

    @property
    def released(self) -> bool:
        return self._data is None

    @property
    def url(self) -> str:
        return f"blob:{self.token}"

    def read(self) -> bytes:
        """Return the referenced bytes.

        Raises:
            HandleReleasedError: If the handle was already released
        """
        if self._data is None:
            raise HandleReleasedError(f"Handle {self.token} used after release")
        return self._data


class HandleRegistry:
    """Creates handles and tracks which ones are still live."""

    def __init__(self):
        self._live: "dict[str, Handle]" = {}
        self._lock = Lock()
        self.created = 0
        self.released = 0

    def create(self, data: bytes, mime_type: str) -> Handle:
        handle = Handle(token=uuid.uuid4().hex, mime_type=mime_type, _data=bytes(data))
        with self._lock:
            self._live[handle.token] = handle
            self.created += 1
        return handle

    def release(self, handle: Handle) -> None:
        """Release ``handle``; releasing twice is a defect and raises."""
        with self._lock:
            if handle.released or self._live.pop(handle.token, None) is None:
                raise HandleReleasedError(f"Handle {handle.token} released twice")
            handle._data = None
            self.released += 1
        logger.debug("Released handle %s", handle.token)

    def is_live(self, handle: Handle) -> bool:
        with self._lock:
            return handle.token in self._live

    @property
    def live_count(self) -> int:
        with self._lock:
            return len(self._live)
