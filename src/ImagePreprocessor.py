"""
ImagePreprocessor - Pixel-level transforms that improve OCR legibility

Every transform is a plain function taking a Pillow image and returning a new
one; nothing mutates its input, so pipeline stages never share image state.
Brightness and contrast deltas use a [-1, 1] scale:

    brightness(d):  d < 0  ->  v * (1 + d)
                    d >= 0 ->  v + (255 - v) * d
    contrast(d):    factor = (1 + d) / (1 - d);  v -> factor * (v - 127) + 127

preprocess_image() chains the transforms into the standard OCR preparation
pipeline. It is best-effort: any failure is logged and the caller gets its
original payload back.
"""
from dataclasses import dataclass
from typing import List, Sequence
import numpy as np
from PIL import Image, ImageFilter, ImageOps
from LoggerSetup import setup_logger
from ImageCodec import ImageData, SourceImage, decode_image, encode_image

_logger = setup_logger(__name__)

MAX_WIDTH = 1500
MAX_HEIGHT = 1500

DARK_MEAN_LIMIT = 100
BRIGHT_MEAN_LIMIT = 200
DARK_BRIGHTNESS_DELTA = 0.15
BRIGHT_BRIGHTNESS_DELTA = -0.1

LOW_CONTRAST_LIMIT = 50
ADAPTIVE_CONTRAST_LIMIT = 40
ADAPTIVE_BLOCK_SIZE = 15
ADAPTIVE_CONSTANT = 5

SHARPEN_AMOUNT = 0.5


@dataclass(frozen=True)
class HistogramStats:
    """Brightness summary of a grayscale image.

    Attributes:
        mean_brightness: Mean intensity (0-255)
        contrast_level: Standard deviation of intensity
        histogram: 256 bucket intensity histogram
    """
    mean_brightness: float
    contrast_level: float
    histogram: List[int]


def _to_array(image: Image.Image) -> np.ndarray:
    return np.asarray(image.convert('L'), dtype=np.float64)


def _from_array(values: np.ndarray) -> Image.Image:
    return Image.fromarray(np.clip(np.rint(values), 0, 255).astype(np.uint8))


def analyze_histogram(image: Image.Image) -> HistogramStats:
    """Compute mean brightness, contrast level and histogram of an image."""
    pixels = np.asarray(image.convert('L'), dtype=np.uint8).ravel()
    if pixels.size == 0:
        return HistogramStats(0.0, 0.0, [0] * 256)
    histogram = np.bincount(pixels, minlength=256)
    return HistogramStats(
        mean_brightness=float(pixels.mean()),
        contrast_level=float(pixels.std()),
        histogram=histogram.tolist(),
    )


def bright_pixel_ratio(image: Image.Image, level: int = 128) -> float:
    """Fraction of pixels brighter than level."""
    pixels = np.asarray(image.convert('L'))
    if pixels.size == 0:
        return 0.0
    return float(np.count_nonzero(pixels > level)) / pixels.size


def choose_global_threshold(bright_ratio: float) -> int:
    """Pick a global binarization threshold from the bright pixel ratio."""
    if bright_ratio > 0.75:
        return 160
    if bright_ratio < 0.25:
        return 100
    return 128


def constrain_size(image: Image.Image, max_width: int = MAX_WIDTH, max_height: int = MAX_HEIGHT) -> Image.Image:
    """Fit the image into a bounding box, keeping aspect ratio. Never upscales."""
    constrained = image.copy()
    constrained.thumbnail((max_width, max_height), Image.Resampling.LANCZOS)
    return constrained


def to_grayscale(image: Image.Image) -> Image.Image:
    if image.mode in ('RGBA', 'LA', 'P'):
        image = image.convert('RGBA')
        background = Image.new('RGBA', image.size, (255, 255, 255, 255))
        image = Image.alpha_composite(background, image)
    return image.convert('L')


def adjust_brightness(image: Image.Image, delta: float) -> Image.Image:
    values = _to_array(image)
    if delta < 0:
        values = values * (1 + delta)
    else:
        values = values + (255 - values) * delta
    return _from_array(values)


def adjust_contrast(image: Image.Image, delta: float) -> Image.Image:
    # delta of exactly 1 would divide by zero
    delta = max(-1.0, min(delta, 0.99))
    factor = (1 + delta) / (1 - delta)
    values = factor * (_to_array(image) - 127) + 127
    return _from_array(values)


def normalize(image: Image.Image) -> Image.Image:
    """Stretch intensities so the darkest pixel is 0 and the brightest 255."""
    return ImageOps.autocontrast(image.convert('L'), cutoff=0)


def invert(image: Image.Image) -> Image.Image:
    return ImageOps.invert(image.convert('L'))


def threshold(image: Image.Image, level: int) -> Image.Image:
    """Binarize: pixels above level become white, the rest black."""
    return image.convert('L').point(lambda v: 255 if v > level else 0)


def adaptive_threshold(image: Image.Image, block_size: int = ADAPTIVE_BLOCK_SIZE,
                       constant: float = ADAPTIVE_CONSTANT) -> Image.Image:
    """Binarize each pixel against the mean of its block_size neighbourhood.

    Windows are clipped at the borders, so edge pixels average fewer neighbours.
    """
    values = _to_array(image)
    height, width = values.shape
    half = block_size // 2

    integral = np.zeros((height + 1, width + 1), dtype=np.float64)
    integral[1:, 1:] = values.cumsum(axis=0).cumsum(axis=1)

    rows = np.arange(height)
    cols = np.arange(width)
    top = np.clip(rows - half, 0, height)
    bottom = np.clip(rows + half + 1, 0, height)
    left = np.clip(cols - half, 0, width)
    right = np.clip(cols + half + 1, 0, width)

    sums = (integral[bottom][:, right] - integral[top][:, right]
            - integral[bottom][:, left] + integral[top][:, left])
    counts = np.outer(bottom - top, right - left)
    local_mean = sums / counts

    return _from_array(np.where(values > local_mean - constant, 255, 0))


def sharpen(image: Image.Image, amount: float = SHARPEN_AMOUNT) -> Image.Image:
    """Unsharp mask; amount 1 adds the full high-pass detail back once."""
    return image.filter(ImageFilter.UnsharpMask(radius=1, percent=int(round(amount * 100)), threshold=0))


def convolve(image: Image.Image, kernel: Sequence[Sequence[float]]) -> Image.Image:
    """Apply a 3x3 convolution kernel (weights used as-is, no rescaling)."""
    weights = [float(w) for row in kernel for w in row]
    if len(weights) != 9:
        raise ValueError(f"Expected a 3x3 kernel, got {len(weights)} weights")
    return image.convert('L').filter(ImageFilter.Kernel((3, 3), weights, scale=1, offset=0))


def dilate_dark(image: Image.Image, radius: int = 1, dark_limit: int = 100) -> Image.Image:
    """Grow dark strokes: each dark pixel takes the minimum of its neighbourhood.

    Only pixels darker than dark_limit change, which thickens thin or broken
    glyphs without smearing the background.
    """
    gray = image.convert('L')
    minimum = np.asarray(gray.filter(ImageFilter.MinFilter(2 * radius + 1)))
    original = np.asarray(gray)
    return Image.fromarray(np.where(original < dark_limit, minimum, original).astype(np.uint8))


def run_preprocess(image: Image.Image) -> Image.Image:
    """Apply the full OCR preparation pipeline to a decoded image."""
    working = to_grayscale(constrain_size(image))
    stats = analyze_histogram(working)
    _logger.debug(
        f"[ImagePreprocessor] size={working.size} mean={stats.mean_brightness:.1f} "
        f"contrast={stats.contrast_level:.1f}"
    )

    if stats.mean_brightness < DARK_MEAN_LIMIT:
        working = adjust_brightness(working, DARK_BRIGHTNESS_DELTA)
    elif stats.mean_brightness > BRIGHT_MEAN_LIMIT:
        working = adjust_brightness(working, BRIGHT_BRIGHTNESS_DELTA)

    working = adjust_contrast(working, 0.3 if stats.contrast_level < LOW_CONTRAST_LIMIT else 0.2)
    working = normalize(working)

    if stats.contrast_level < ADAPTIVE_CONTRAST_LIMIT:
        working = adaptive_threshold(working)
    else:
        ratio = bright_pixel_ratio(working)
        level = choose_global_threshold(ratio)
        _logger.debug(f"[ImagePreprocessor] bright ratio {ratio:.2f}, threshold {level}")
        working = threshold(working, level)

    return sharpen(working, SHARPEN_AMOUNT)


def preprocess_source(source: SourceImage) -> bytes:
    """Run the pipeline and re-encode in the source container format."""
    return encode_image(run_preprocess(source.image), source.format)


def preprocess_image(image_data: ImageData):
    """Prepare a captured image for OCR.

    Args:
        image_data: Encoded image bytes or base64 string (data-URL allowed)

    Returns:
        Processed image bytes in the original container format, or
        image_data unchanged if anything fails
    """
    try:
        processed = preprocess_source(decode_image(image_data))
        _logger.debug("[ImagePreprocessor] Preprocessing complete")
        return processed
    except Exception as e:
        _logger.error(f"[ImagePreprocessor] Preprocessing failed, using original image: {e}")
        return image_data
