"""
Image Probe
===========

Checks that extracted bytes are a decodable image.

Design Rules:
    - The only place in the codebase that decodes image data
    - Fails fast on bytes OpenCV cannot decode
    - Reports dimensions only; pixels are discarded
"""

import logging
from typing import Tuple

import cv2
import numpy as np

from frameshot.errors import ExtractionError


logger = logging.getLogger(__name__)


def probe_image(image_bytes: bytes) -> Tuple[int, int]:
    """
    Decode image bytes and return their dimensions.

    Args:
        image_bytes: Encoded image (JPEG from ffmpeg)

    Returns:
        (width, height) in pixels

    Raises:
        ExtractionError: If the bytes do not decode to an image
    """
    buffer = np.frombuffer(image_bytes, np.uint8)
    if buffer.size == 0:
        raise ExtractionError("Extracted image is empty")

    image = cv2.imdecode(buffer, cv2.IMREAD_UNCHANGED)
    if image is None:
        raise ExtractionError("Extracted output is not a decodable image")

    if image.ndim < 2 or image.shape[0] == 0 or image.shape[1] == 0:
        raise ExtractionError(f"Invalid image shape: {image.shape}")

    height, width = image.shape[:2]
    return int(width), int(height)
