#!/usr/bin/env python3
"""
Capture Script
==============

Standalone script to run one capture from the command line.

This script:
    1. Loads an already-rendered image (or an HTML fragment)
    2. Runs it through the capture pipeline
    3. Delivers it (download directory, viewer or remote upload)
    4. Reports the stage history and outcome

Prerequisites:
    - pip install -e .
    - DB_DOWNLOAD needs transport.upload_url (SCREENCAPTURE_UPLOAD_URL)
    - --html needs conversion.api_key (SCREENCAPTURE_CONVERT_KEY)

Usage:
    python scripts/capture_image.py page.png --kind PDF --strategy MULTI_PAGE_A4
    python scripts/capture_image.py page.png --kind JPEG --mode NEW_TAB
    python scripts/capture_image.py --html fragment.html --file-name report
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from screencapture.config import load_config
from screencapture.delivery import CaptureEvent
from screencapture.models import CaptureRequest, CaptureResult
from screencapture.pipeline import CapturePipeline, ImageSource


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)


async def run_capture(args: argparse.Namespace) -> CaptureResult:
    """
    Run one capture with the given command-line arguments.

    Args:
        args: Parsed arguments

    Returns:
        Final capture result
    """
    settings = load_config(args.config)
    if args.output_dir:
        settings.delivery.output_dir = args.output_dir

    pipeline = CapturePipeline.from_settings(settings)
    pipeline.notifier.subscribe(
        CaptureEvent.SAVED,
        lambda event, payload: logger.info(f"Saved remotely: {payload}"),
    )
    pipeline.notifier.subscribe(
        CaptureEvent.ERROR,
        lambda event, payload: logger.error(f"Capture error: {payload}"),
    )

    request = CaptureRequest(
        delivery_mode=args.mode,
        background=args.background,
        width_px=args.width,
        height_px=args.height,
        logging=args.log_params,
        strategy_hint=args.strategy,
        file_name=args.file_name,
        output_kind=args.kind,
    )

    logger.info("=" * 60)
    if args.html:
        logger.info(f"Converting HTML fragment: {args.html}")
        logger.info("=" * 60)
        fragment = Path(args.html).read_text(encoding="utf-8")
        return await pipeline.render_html(fragment, request)

    logger.info(f"Capturing image: {args.image}")
    logger.info("=" * 60)
    source = ImageSource.from_path(args.image)
    return await pipeline.capture(request, source)


def main():
    parser = argparse.ArgumentParser(
        description="Capture an image as PNG, JPEG or paginated PDF and deliver it"
    )
    parser.add_argument(
        "image",
        nargs="?",
        help="Rendered image to capture (PNG, JPEG, ...)",
    )
    parser.add_argument(
        "--html",
        type=str,
        default=None,
        help="HTML fragment to convert remotely instead of an image",
    )
    parser.add_argument(
        "--kind",
        type=str,
        default="PDF",
        help="Output kind: PNG, JPEG or PDF (default: PDF)",
    )
    parser.add_argument(
        "--mode",
        type=str,
        default="DIRECT_DOWNLOAD",
        help="Delivery mode: DIRECT_DOWNLOAD, NEW_TAB or DB_DOWNLOAD",
    )
    parser.add_argument(
        "--strategy",
        type=str,
        default=None,
        help="PDF layout: CONT_PAGE, MULTI_PAGE_A4 or SINGLE_A4 (default: single fit)",
    )
    parser.add_argument("--file-name", type=str, default=None, help="Output base name")
    parser.add_argument("--background", type=str, default=None, help="Background colour #RRGGBB")
    parser.add_argument("--width", type=int, default=None, help="Width override in pixels")
    parser.add_argument("--height", type=int, default=None, help="Height override in pixels")
    parser.add_argument("--output-dir", type=str, default=None, help="Download directory")
    parser.add_argument("--config", type=str, default=None, help="Path to config.yaml")
    parser.add_argument(
        "--log-params",
        action="store_true",
        help="Log the resolved capture parameters",
    )

    args = parser.parse_args()
    if not args.image and not args.html:
        parser.error("an image path or --html is required")

    result = asyncio.run(run_capture(args))

    logger.info("=" * 60)
    logger.info(f"Stages: {' -> '.join(stage.value for stage in result.history)}")
    if result.succeeded:
        outcome = result.outcome
        logger.info(f"Delivered {result.file_name} via {outcome.mode.value}")
        logger.info(f"  Size: {outcome.size_bytes} bytes")
        if outcome.location:
            logger.info(f"  Location: {outcome.location}")
        if outcome.chunks:
            logger.info(f"  Chunks: {outcome.chunks}")
    else:
        logger.error(f"Capture failed: {result.error}")
    logger.info("=" * 60)

    sys.exit(0 if result.succeeded else 1)


if __name__ == "__main__":
    main()
