"""
TextDetector - Cheap check for text-like structure before running OCR

Text produces many sharp intensity steps between neighbouring pixels; blank
pages and smooth camera noise produce few. Counting those steps is far cheaper
than a recognition pass, so blank frames skip OCR entirely.
"""
import numpy as np
from PIL import Image
from LoggerSetup import setup_logger
from ImageCodec import ImageData, decode_image
from ImagePreprocessor import to_grayscale

_logger = setup_logger(__name__)

EDGE_THRESHOLD = 30
MIN_EDGE_RATIO = 0.01


def edge_ratio(image: Image.Image, edge_threshold: int = EDGE_THRESHOLD) -> float:
    """Fraction of pixels that sit on a sharp edge.

    An interior pixel counts as an edge when it differs from its right or its
    bottom neighbour by more than edge_threshold. The count is divided by the
    total pixel count, borders included.
    """
    pixels = np.asarray(to_grayscale(image), dtype=np.int16)
    height, width = pixels.shape
    if height < 3 or width < 3:
        return 0.0

    center = pixels[1:-1, 1:-1]
    right = pixels[1:-1, 2:]
    bottom = pixels[2:, 1:-1]
    edges = (np.abs(center - right) > edge_threshold) | (np.abs(center - bottom) > edge_threshold)
    return float(np.count_nonzero(edges)) / (width * height)


def has_significant_text(image_data: ImageData) -> bool:
    """Decide whether an image is worth a full OCR pass.

    Returns:
        bool: True if the edge ratio exceeds MIN_EDGE_RATIO, or if the image
              could not be analysed at all
    """
    try:
        ratio = edge_ratio(decode_image(image_data).image)
        _logger.debug(f"[TextDetector] Edge ratio: {ratio:.4f}")
        return ratio > MIN_EDGE_RATIO
    except Exception as e:
        _logger.error(f"[TextDetector] Text detection failed, assuming text is present: {e}")
        return True
