"""Cleave batch converter - command line entry point."""

import argparse
import logging
import sys
from pathlib import Path

from .annotation import build_annotator
from .archive import disambiguate_names, export_batch, export_item
from .batch import BatchOrchestrator
from .config_manager import ConfigManager
from .errors import ArchiveError, InvalidParameter
from .intake import iter_inputs
from .models import CONFIG_FILE, ItemStatus, OutputFormat, format_bytes
from .queue_manager import QueueManager

RASTER_FORMATS = [fmt.name.lower() for fmt in OutputFormat if fmt is not OutputFormat.SVG]


def configure_logging(log_level: int | str, prefix: str = "cleave") -> None:
    """Send ``prefix`` logs to stdout with a timestamped format."""
    log = logging.getLogger(prefix)

    # Reset logger to initial state (e.g. when called twice)
    for handler in list(log.handlers):
        log.removeHandler(handler)

    log.setLevel(log_level)
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)s | %(message)s"))
    log.addHandler(handler)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="cleave",
        description="Convert a batch of images to another raster format or to SVG.",
    )
    ap.add_argument("inputs", nargs="+", help="Image files or directories")
    ap.add_argument("--format", choices=RASTER_FORMATS, help="Raster output format")
    ap.add_argument("--quality", type=float, help="Lossy quality, 0.1-1.0")
    ap.add_argument("--ratio", type=float, help="Resize ratio applied to both dimensions")
    ap.add_argument("--vector", action="store_true", help="Quantize and trace to SVG")
    ap.add_argument("--colors", type=int, help="Palette size for --vector (2-64, even)")
    ap.add_argument("--ai", action="store_true", help="Request AI description and tags")
    ap.add_argument("--zip", action="store_true", help="Write one archive instead of files")
    ap.add_argument("--out", default=".", help="Output directory")
    ap.add_argument("--config", default=str(CONFIG_FILE), help="Configuration file")
    ap.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return ap


def main(argv: "list[str] | None" = None) -> int:
    """Run one conversion batch from the command line."""
    args = build_parser().parse_args(argv)

    config = ConfigManager(Path(args.config)).load()
    configure_logging(logging.DEBUG if args.verbose else config.log_level.upper())

    changes: dict = {}
    if args.vector:
        changes["is_vector"] = True
    elif args.format:
        changes["is_vector"] = False
        changes["output_format"] = OutputFormat.parse(args.format)
    if args.quality is not None:
        changes["quality"] = args.quality
    if args.ratio is not None:
        changes["resize_ratio"] = args.ratio
    if args.colors is not None:
        changes["color_count"] = args.colors
    if args.ai:
        changes["use_ai_analysis"] = True

    try:
        settings = config.defaults.with_changes(**changes)
    except InvalidParameter as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    queue = QueueManager(reconvert_completed=config.reconvert_completed)
    try:
        ids = queue.enqueue_many(iter_inputs(args.inputs))
    except OSError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    if not ids:
        print("No image files found.", file=sys.stderr)
        return 1

    annotator = build_annotator(
        config.annotation_endpoint,
        timeout=config.annotation_timeout,
        api_key_env=config.annotation_api_key_env,
    )
    orchestrator = BatchOrchestrator(
        queue,
        annotator,
        quantization_method=config.quantization_method,
        sample_size=config.kmeans_sample_size,
    )
    summary = orchestrator.run_batch(settings)

    out_dir = Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)

    completed = queue.completed_items()
    filenames = disambiguate_names(export_item(queue, item.id)[1] for item in completed)
    targets = {item.id: out_dir / name for item, name in zip(completed, filenames)}

    for item in queue.items():
        if item.status is ItemStatus.COMPLETE:
            line = (
                f"✓ {item.original_name}: {format_bytes(item.original_size)} -> "
                f"{format_bytes(item.result.output_size)} ({item.size_change_percent:+d}%)"
            )
            if item.result.ai_tags:
                line += f" [{', '.join(item.result.ai_tags)}]"
            if not args.zip:
                targets[item.id].write_bytes(export_item(queue, item.id)[0])
        else:
            line = f"✗ {item.original_name}: {item.error_message}"
        print(line)

    if args.zip and summary.completed:
        try:
            data, filename = export_batch(queue, config.app_name)
        except ArchiveError as e:
            print(f"error: {e}", file=sys.stderr)
            return 1
        (out_dir / filename).write_bytes(data)
        print(f"Wrote {out_dir / filename}")

    queue.clear()
    return 0 if summary.failed == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
