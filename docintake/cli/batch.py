"""docintake CLI batch auto-crop.

Straightens and crops scanned document photos with the detection service,
without requiring a GUI.
"""

import argparse
import asyncio
import dataclasses
import logging
import os
import sys
import time
from typing import List, Optional, Set

from docintake.domain.errors import DocIntakeError
from docintake.domain.interfaces import PipelineContext
from docintake.domain.models import Asset, BatchProgress, BatchSummary
from docintake.features.detection.models import DetectionConfig
from docintake.infrastructure.detection.client import CropDetectionClient
from docintake.kernel.image.logic import JPEG_MIME, PNG_MIME
from docintake.kernel.system.config import APP_CONFIG
from docintake.kernel.system.logging import setup_logging
from docintake.services.assets.asset_list import AssetList
from docintake.services.batch.processor import BatchProcessor
from docintake.services.transform.engine import TransformEngine

MIME_BY_EXTENSION = {
    ".jpg": JPEG_MIME,
    ".jpeg": JPEG_MIME,
    ".png": PNG_MIME,
    ".webp": "image/webp",
    ".bmp": "image/bmp",
    ".tif": "image/tiff",
    ".tiff": "image/tiff",
    ".gif": "image/gif",
    ".pdf": "application/pdf",
}

EXTENSION_BY_MIME = {
    JPEG_MIME: ".jpg",
    PNG_MIME: ".png",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docintake",
        description="docintake -- Batch auto-crop for scanned documents",
        epilog="Example: docintake --output ./export /path/to/scans/",
    )

    parser.add_argument(
        "inputs",
        nargs="*",
        metavar="FILE_OR_DIR",
        help="Input files or directories containing document photos and PDFs",
    )

    parser.add_argument(
        "--output",
        default="./export",
        metavar="DIR",
        help="Output directory (default: ./export)",
    )

    parser.add_argument(
        "--detector-url",
        default=None,
        metavar="URL",
        help="Detection service endpoint (default: $DOCINTAKE_DETECTOR_URL)",
    )

    parser.add_argument(
        "--api-key",
        default=None,
        metavar="KEY",
        help="Detection service key (default: $DOCINTAKE_DETECTOR_API_KEY)",
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        metavar="SECONDS",
        help=f"Detection request timeout (default: {APP_CONFIG.detector_timeout:g})",
    )

    parser.add_argument(
        "--max-dimension",
        type=int,
        default=None,
        metavar="PX",
        help=f"Longest side of the analysis copy (default: {APP_CONFIG.analysis_max_dimension})",
    )

    parser.add_argument(
        "--min-confidence",
        type=float,
        default=None,
        metavar="FLOAT",
        help="Treat detections below this confidence as not detected (default: 0.0)",
    )

    parser.add_argument(
        "--max-items",
        type=int,
        default=None,
        metavar="INT",
        help="Refuse batches with more images than this",
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        default=False,
        help="Log every detection and transform",
    )

    return parser


def discover_files(inputs: List[str]) -> List[str]:
    """Resolves input paths to a sorted list of supported files."""
    files = []
    for input_path in inputs:
        path = os.path.abspath(input_path)
        if os.path.isfile(path):
            ext = os.path.splitext(path)[1].lower()
            if ext in MIME_BY_EXTENSION:
                files.append(path)
            else:
                print(f"Warning: Skipping unsupported file: {path}", file=sys.stderr)
        elif os.path.isdir(path):
            for root, _dirs, filenames in os.walk(path):
                for fname in sorted(filenames):
                    ext = os.path.splitext(fname)[1].lower()
                    if ext in MIME_BY_EXTENSION:
                        files.append(os.path.join(root, fname))
        else:
            print(f"Warning: Path not found: {path}", file=sys.stderr)
    return files


def load_asset(path: str) -> Asset:
    ext = os.path.splitext(path)[1].lower()
    with open(path, "rb") as f:
        data = f.read()
    return Asset(name=os.path.basename(path), mime_type=MIME_BY_EXTENSION[ext], data=data)


def build_detection_config(args: argparse.Namespace) -> DetectionConfig:
    """Environment defaults, with CLI flags winning."""
    config = DetectionConfig.from_app_config()
    overrides = {}
    if args.detector_url is not None:
        overrides["url"] = args.detector_url
    if args.api_key is not None:
        overrides["api_key"] = args.api_key
    if args.timeout is not None:
        overrides["timeout"] = args.timeout
    if args.max_dimension is not None:
        overrides["max_dimension"] = args.max_dimension
    if args.min_confidence is not None:
        overrides["min_confidence"] = args.min_confidence
    return dataclasses.replace(config, **overrides) if overrides else config


def output_name(asset: Asset) -> str:
    """Keeps the stem; the extension follows the (possibly re-encoded) mime type."""
    stem, ext = os.path.splitext(asset.name)
    return stem + EXTENSION_BY_MIME.get(asset.mime_type, ext)


def unique_name(name: str, used: Set[str]) -> str:
    """Appends _1, _2, ... to the stem until the name is not in used."""
    stem, ext = os.path.splitext(name)
    candidate = name
    n = 1
    while candidate in used:
        candidate = f"{stem}_{n}{ext}"
        n += 1
    return candidate


def write_assets(assets: AssetList, output_dir: str) -> List[str]:
    os.makedirs(output_dir, exist_ok=True)
    written = []
    used = set()
    for asset in assets:
        name = unique_name(output_name(asset), used)
        used.add(name)
        out_path = os.path.join(output_dir, name)
        with open(out_path, "wb") as f:
            f.write(asset.data)
        written.append(out_path)
    return written


def print_progress(progress: BatchProgress) -> None:
    print(f"  [{progress.current}/{progress.total}] done", file=sys.stderr, flush=True)


def run_batch(
    context: PipelineContext,
    detector: CropDetectionClient,
    max_items: Optional[int],
) -> BatchSummary:
    processor = BatchProcessor(detector, TransformEngine(), max_items=max_items)
    return asyncio.run(processor.run(context, on_progress=print_progress))


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point. Returns 0 on success, 1 on failure."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(logging.DEBUG if args.verbose else logging.WARNING)

    files = discover_files(args.inputs)
    if not files:
        print("Error: No supported files found.", file=sys.stderr)
        return 1

    try:
        assets = AssetList(load_asset(path) for path in files)
    except OSError as e:
        print(f"Error reading input: {e}", file=sys.stderr)
        return 1

    context = PipelineContext(assets=assets)
    max_items = args.max_items if args.max_items is not None else APP_CONFIG.max_batch_items
    output_dir = os.path.abspath(args.output)

    images = len(assets.raster_indices())
    print(f"Auto-cropping {images} of {len(assets)} file(s) -> {output_dir}", file=sys.stderr)
    t_start = time.monotonic()

    try:
        with CropDetectionClient(build_detection_config(args)) as detector:
            summary = run_batch(context, detector, max_items)
    except DocIntakeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        write_assets(assets, output_dir)
    except OSError as e:
        print(f"Error writing output: {e}", file=sys.stderr)
        return 1

    total_time = time.monotonic() - t_start
    print(
        f"Done in {total_time:.1f}s: {summary.success_count} cropped, "
        f"{summary.skip_count} unchanged, {summary.error_count} failed",
        file=sys.stderr,
    )

    return 1 if summary.error_count > 0 else 0


def cli_entry() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    sys.exit(main())
