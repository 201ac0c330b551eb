"""Sequential batch runner draining pending queue items.

AIDEV-NOTE: Items are converted one at a time in selection order, and
cancellation is honoured between items only.
"""

import logging
import threading
from typing import Callable, Optional

from .annotation import Annotator, NullAnnotator, safe_annotate
from .errors import ConversionFailed
from .image_processing.processor import ImageConverter
from .image_processing.quantization import DEFAULT_SAMPLE_SIZE
from .models import (
    BatchSummary,
    ConversionSettings,
    ItemStatus,
    ProcessedResult,
    QuantizationMethod,
)
from .queue_manager import QueueManager

logger = logging.getLogger(__name__)

FAILED_MESSAGE = "Failed"

# progress(done, total, item_id, status)
ProgressCallback = Callable[[int, int, str, ItemStatus], None]


class BatchOrchestrator:
    """Runs the conversion pipeline over every pending item of a queue."""

    def __init__(
        self,
        queue: QueueManager,
        annotator: Optional[Annotator] = None,
        quantization_method: "QuantizationMethod | str" = QuantizationMethod.KMEANS,
        sample_size: int = DEFAULT_SAMPLE_SIZE,
    ):
        self.queue = queue
        self.annotator = annotator or NullAnnotator()
        self.quantization_method = QuantizationMethod(quantization_method)
        self.sample_size = sample_size

    def run_batch(
        self,
        settings: ConversionSettings,
        progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> BatchSummary:
        """Convert all pending items with one settings snapshot.

        Args:
            settings: Conversion settings, fixed for the whole run
            progress: Called after each item resolves
            cancel_event: When set, the run stops before the next item and
                the remaining selected items return to Idle

        Returns:
            BatchSummary of the run; item outcomes are recorded on the queue
        """
        selected = self.queue.select_pending()
        summary = BatchSummary(selected=len(selected))
        if not selected:
            logger.debug("No pending items, nothing to do")
            return summary

        # The whole selection becomes Processing before any item resolves
        self.queue.mark_processing(selected)
        converter = ImageConverter(
            settings,
            quantization_method=self.quantization_method,
            sample_size=self.sample_size,
        )
        logger.info(
            "Starting batch of %d items (%s%s)",
            len(selected),
            settings.output_format.name,
            f", {settings.color_count} colors" if settings.is_vector else "",
        )

        try:
            for position, item_id in enumerate(selected):
                if cancel_event is not None and cancel_event.is_set():
                    remaining = selected[position:]
                    self.queue.revert_to_idle(remaining)
                    summary.cancelled = len(remaining)
                    logger.info("Batch cancelled, %d items left unprocessed", len(remaining))
                    break

                status = self._process_item(item_id, converter, settings)
                if status is ItemStatus.COMPLETE:
                    summary.completed += 1
                else:
                    summary.failed += 1

                if progress is not None:
                    progress(summary.processed, len(selected), item_id, status)
        finally:
            # A raising callback or an interrupt must not strand items in Processing
            self._release_unfinished(selected)

        logger.info(
            "Batch finished: %d complete, %d failed, %d cancelled",
            summary.completed, summary.failed, summary.cancelled,
        )
        return summary

    def _release_unfinished(self, selected: "list[str]") -> None:
        """Return selected items still marked Processing to Idle."""
        selected_ids = set(selected)
        stranded = [
            item.id
            for item in self.queue.items()
            if item.id in selected_ids and item.status is ItemStatus.PROCESSING
        ]
        if stranded:
            self.queue.revert_to_idle(stranded)
            logger.warning("Batch stopped early, %d items returned to Idle", len(stranded))

    def _process_item(
        self,
        item_id: str,
        converter: ImageConverter,
        settings: ConversionSettings,
    ) -> ItemStatus:
        item = self.queue.get(item_id)
        context = f"{item.original_name} ({item_id})"

        try:
            output = converter.convert(item.source_bytes, item.mime_type, context)
        except ConversionFailed as e:
            logger.warning("%s", e)
            self.queue.mark_error(item_id, FAILED_MESSAGE)
            return ItemStatus.ERROR
        except Exception:  # noqa: BLE001 - one item never aborts the batch
            logger.exception("Unexpected error converting %s", context)
            self.queue.mark_error(item_id, FAILED_MESSAGE)
            return ItemStatus.ERROR

        result = ProcessedResult(output_bytes=output, output_format=settings.output_format)
        if settings.use_ai_analysis:
            annotation = safe_annotate(self.annotator, item.source_bytes, item.mime_type)
            if annotation.is_empty:
                logger.debug("No AI annotation for %s", context)
            result.ai_description = annotation.description
            result.ai_tags = list(annotation.tags)

        self.queue.mark_complete(item_id, result)
        return ItemStatus.COMPLETE


def run_batch(
    queue: QueueManager,
    settings: ConversionSettings,
    annotator: Optional[Annotator] = None,
    **options,
) -> BatchSummary:
    """Convenience wrapper around ``BatchOrchestrator.run_batch``."""
    progress = options.pop("progress", None)
    cancel_event = options.pop("cancel_event", None)
    orchestrator = BatchOrchestrator(queue, annotator, **options)
    return orchestrator.run_batch(settings, progress=progress, cancel_event=cancel_event)
