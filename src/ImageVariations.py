"""
ImageVariations - Alternate renderings of one capture for OCR

A single rendering can defeat the recognizer (light text on dark UI, faint
strokes, JPEG noise), so the OCR handler reads several renderings of the same
frame and keeps the most confident one. All renderings start from the same
decoded source and the same histogram statistics.
"""
from typing import List
from LoggerSetup import setup_logger
from ImageCodec import ImageData, decode_image, encode_image
from ImagePreprocessor import (
    analyze_histogram,
    adjust_brightness,
    adjust_contrast,
    convolve,
    dilate_dark,
    invert,
    normalize,
    preprocess_source,
    sharpen,
    threshold,
    to_grayscale,
)

_logger = setup_logger(__name__)

VARIATION_FORMAT = 'PNG'

EDGE_ENHANCE_KERNEL = [
    [-1, -1, -1],
    [-1, 9, -1],
    [-1, -1, -1],
]

VARIATION_NAMES = [
    'original',
    'preprocessed',
    'normalized',
    'inverted',
    'high-contrast',
    'sharpened',
    'edge-enhanced',
    'bitonal',
    'dilated',
]


def choose_bitonal_threshold(mean_brightness: float) -> int:
    """Bitonal threshold from mean brightness: 100 for dark, 180 for bright frames."""
    if mean_brightness < 100:
        return 100
    if mean_brightness > 200:
        return 180
    return 128


def generate_variations(image_data: ImageData) -> List:
    """Build the fixed, ordered list of renderings (see VARIATION_NAMES).

    The first entry is image_data itself, untouched. Derived renderings are PNG
    bytes except the preprocessed one, which keeps the source container format.

    Returns:
        List of image payloads; [image_data] alone if anything fails
    """
    try:
        source = decode_image(image_data)
        gray = to_grayscale(source.image)
        stats = analyze_histogram(gray)

        high_contrast = adjust_contrast(gray, 0.6 if stats.contrast_level < 50 else 0.4)
        high_contrast = adjust_brightness(high_contrast, 0.15 if stats.mean_brightness < 120 else -0.05)

        sharpened = sharpen(adjust_contrast(normalize(gray), 0.2), 1)

        rendered = [
            normalize(gray),
            invert(gray),
            high_contrast,
            sharpened,
            convolve(gray, EDGE_ENHANCE_KERNEL),
            threshold(gray, choose_bitonal_threshold(stats.mean_brightness)),
            dilate_dark(adjust_brightness(gray, 0.1), radius=1),
        ]

        variations = [image_data, preprocess_source(source)]
        variations.extend(encode_image(image, VARIATION_FORMAT) for image in rendered)
        _logger.info(f"[ImageVariations] Created {len(variations)} image variations for OCR")
        return variations
    except Exception as e:
        _logger.error(f"[ImageVariations] Failed to create variations, using original only: {e}")
        return [image_data]
