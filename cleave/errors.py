"""Exception types raised by the conversion pipeline and the queue."""


class CleaveError(Exception):
    """Base class for all Cleave errors."""


class DecodeError(CleaveError):
    """Source bytes are not a decodable image of a supported type."""


class EncodeError(CleaveError):
    """The target format cannot be produced from the pixel buffer."""


class InvalidParameter(CleaveError, ValueError):
    """An out-of-range setting reached a primitive or a settings object."""


class ConversionFailed(CleaveError):
    """A primitive failed while converting one item."""

    def __init__(self, context: str, cause: BaseException | None = None):
        self.context = context
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"Conversion failed for {context or 'item'}{detail}")


class AnnotationFailed(CleaveError):
    """The remote tagging call failed. Always recovered inside the adapter."""


class ArchiveError(CleaveError):
    """Packaging completed results into an archive failed."""


class QueueError(CleaveError):
    """Misuse of the queue API."""


class ItemNotFound(QueueError, KeyError):
    """No queue item has the given id."""


class InvalidTransition(QueueError):
    """A state change was requested from a state that does not allow it."""


class QueueBusyError(QueueError):
    """The queue cannot be modified while a batch is processing."""


class HandleReleasedError(CleaveError):
    """A display/download handle was used after it was released."""
