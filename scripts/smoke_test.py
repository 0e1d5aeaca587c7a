#!/usr/bin/env python3
"""
Pipeline Smoke Test Script
==========================

Standalone script that runs the screenshot pipeline against a real URL.

This script:
    1. Builds the pipeline from the normal configuration
    2. Sends one or more sequential requests for the same frame
    3. Optionally saves the first image
    4. Checks that no scratch files are left behind

Prerequisites:
    - ffmpeg on PATH (or FRAMESHOT_FFMPEG_PATH)
    - Install dependencies: pip install -e .

Usage:
    python scripts/smoke_test.py --url https://example.com/clip.mp4
    python scripts/smoke_test.py --url https://example.com/clip.mp4 -t 1 -n 3 -o frame.jpg
"""

import argparse
import asyncio
import logging
import os
import sys

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from frameshot.config import settings
from frameshot.pipeline import build_pipeline


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S",
)
logger = logging.getLogger(__name__)


async def run_smoke(
    url: str,
    timestamp: float,
    repeat: int,
    output: str,
) -> bool:
    """
    Run the smoke test.

    Args:
        url: Source video URL
        timestamp: Seek position in seconds
        repeat: Number of sequential requests
        output: Where to save the first image ("" = don't save)

    Returns:
        True if every request succeeded and nothing was left on disk
    """
    pipeline = build_pipeline(settings)

    logger.info("=" * 60)
    logger.info("Pipeline Smoke Test")
    logger.info("=" * 60)
    logger.info(f"URL: {url}")
    logger.info(f"Timestamp: {timestamp}s")
    logger.info(f"Requests: {repeat}")
    logger.info(f"Scratch dir: {pipeline.scratch.root}")
    logger.info("=" * 60)

    passed = True
    for attempt in range(repeat):
        result = await pipeline.capture(url, timestamp_seconds=timestamp)
        residual = pipeline.scratch.residual_files(result.request_id)

        if result.success:
            logger.info(
                f"Request {attempt + 1}: {result.size} bytes, "
                f"{result.width}x{result.height}, {result.elapsed_ms}ms"
            )
            if output and attempt == 0:
                with open(output, "wb") as f:
                    f.write(result.image)
                logger.info(f"Saved first image to {output}")
        else:
            passed = False
            logger.error(
                f"Request {attempt + 1}: {result.kind.value} "
                f"(retryable={result.retryable}): {result.message}"
            )

        if residual:
            passed = False
            logger.error(f"Residual scratch files: {residual}")

    stats = pipeline.admission.stats()
    logger.info("=" * 60)
    logger.info("FINAL SUMMARY")
    logger.info("=" * 60)
    logger.info(f"Processed: {stats['processed']}")
    logger.info(f"Errors: {stats['errors']}")
    logger.info(f"Average time: {stats['avg_time_ms']}ms")
    logger.info("=" * 60)

    if passed:
        logger.info("✅ SMOKE TEST PASSED")
    else:
        logger.error("❌ SMOKE TEST FAILED")
    return passed


def main():
    parser = argparse.ArgumentParser(
        description="Smoke test for the screenshot pipeline"
    )
    parser.add_argument(
        "--url",
        type=str,
        required=True,
        help="Source video URL",
    )
    parser.add_argument(
        "-t", "--timestamp",
        type=float,
        default=settings.extraction.default_timestamp,
        help="Seek position in seconds",
    )
    parser.add_argument(
        "-n", "--repeat",
        type=int,
        default=1,
        help="Number of sequential requests (default: 1)",
    )
    parser.add_argument(
        "-o", "--output",
        type=str,
        default="",
        help="Save the first image here",
    )

    args = parser.parse_args()

    passed = asyncio.run(run_smoke(
        url=args.url,
        timestamp=args.timestamp,
        repeat=args.repeat,
        output=args.output,
    ))

    sys.exit(0 if passed else 1)


if __name__ == "__main__":
    main()
