"""Cleave - batch image conversion with raster re-encoding and vectorization."""

from .batch import BatchOrchestrator, run_batch
from .models import (
    Annotation,
    ConversionSettings,
    ItemStatus,
    OutputFormat,
    ProcessedResult,
    QueueItem,
)
from .queue_manager import QueueManager

__version__ = "0.1.0"

__all__ = [
    "Annotation",
    "BatchOrchestrator",
    "ConversionSettings",
    "ItemStatus",
    "OutputFormat",
    "ProcessedResult",
    "QueueItem",
    "QueueManager",
    "run_batch",
]
