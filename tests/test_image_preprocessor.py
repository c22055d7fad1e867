"""Test ImagePreprocessor transforms and the OCR preparation pipeline."""
import base64
import io
import os
import sys

import numpy as np
from PIL import Image

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from conftest import encode_png, make_half_bitonal
from ImageCodec import decode_image
from ImagePreprocessor import (
    adaptive_threshold,
    adjust_brightness,
    adjust_contrast,
    analyze_histogram,
    bright_pixel_ratio,
    choose_global_threshold,
    constrain_size,
    dilate_dark,
    invert,
    normalize,
    preprocess_image,
    threshold,
    to_grayscale,
)


def _gray(values):
    return Image.fromarray(np.array(values, dtype=np.uint8))


def _pixels(image):
    return np.asarray(image.convert('L')).astype(int)


def test_analyze_histogram_uniform_image():
    """Uniform image has its value as mean and zero contrast."""
    stats = analyze_histogram(Image.new('L', (10, 10), 100))
    assert stats.mean_brightness == 100
    assert stats.contrast_level == 0
    assert stats.histogram[100] == 100
    assert sum(stats.histogram) == 100


def test_analyze_histogram_half_bitonal():
    stats = analyze_histogram(make_half_bitonal(100, 10))
    assert abs(stats.mean_brightness - 127.5) < 1e-9
    assert abs(stats.contrast_level - 127.5) < 1e-9


def test_choose_global_threshold():
    assert choose_global_threshold(0.9) == 160
    assert choose_global_threshold(0.1) == 100
    assert choose_global_threshold(0.5) == 128
    assert choose_global_threshold(0.75) == 128
    assert choose_global_threshold(0.25) == 128


def test_bright_pixel_ratio():
    assert bright_pixel_ratio(make_half_bitonal(100, 10)) == 0.5
    assert bright_pixel_ratio(Image.new('L', (4, 4), 128)) == 0.0


def test_constrain_size_downscales_keeping_aspect():
    constrained = constrain_size(Image.new('RGB', (3000, 1500)))
    assert constrained.size == (1500, 750)


def test_constrain_size_never_upscales():
    image = Image.new('RGB', (100, 50))
    constrained = constrain_size(image)
    assert constrained.size == (100, 50)
    assert constrained is not image


def test_to_grayscale_composites_alpha_on_white():
    """Fully transparent pixels become white, not black."""
    image = Image.new('RGBA', (4, 4), (0, 0, 0, 0))
    gray = to_grayscale(image)
    assert gray.mode == 'L'
    assert (_pixels(gray) == 255).all()


def test_adjust_brightness_positive_moves_toward_white():
    result = _pixels(adjust_brightness(_gray([[0, 100, 255]]), 0.15))
    assert result.tolist() == [[38, 123, 255]]


def test_adjust_brightness_negative_scales_down():
    result = _pixels(adjust_brightness(_gray([[200, 100, 0]]), -0.1))
    assert result.tolist() == [[180, 90, 0]]


def test_adjust_contrast_spreads_around_midpoint():
    """Delta 0.2 gives factor 1.5 around 127."""
    result = _pixels(adjust_contrast(_gray([[187, 127, 67, 0]]), 0.2))
    assert result.tolist() == [[217, 127, 37, 0]]


def test_normalize_stretches_range():
    result = _pixels(normalize(_gray([[50, 100, 150]])))
    assert result.min() == 0
    assert result.max() == 255


def test_invert():
    assert _pixels(invert(_gray([[0, 255, 100]]))).tolist() == [[255, 0, 155]]


def test_threshold_is_strictly_greater():
    result = _pixels(threshold(_gray([[128, 129, 0, 255]]), 128))
    assert result.tolist() == [[0, 255, 0, 255]]


def test_adaptive_threshold_uniform_image_is_white():
    result = _pixels(adaptive_threshold(Image.new('L', (20, 20), 90)))
    assert (result == 255).all()


def test_adaptive_threshold_keeps_dark_dot():
    image = Image.new('L', (31, 31), 255)
    image.putpixel((15, 15), 0)
    result = _pixels(adaptive_threshold(image))
    assert result[15, 15] == 0
    assert result[0, 0] == 255
    assert np.count_nonzero(result == 0) == 1


def test_dilate_dark_only_changes_dark_pixels():
    """Dark pixels take their neighbourhood minimum; light pixels never change."""
    image = _gray([
        [255, 255, 255],
        [80, 0, 255],
        [255, 255, 255],
    ])
    result = _pixels(dilate_dark(image, radius=1, dark_limit=100))
    assert result[1, 0] == 0
    assert result[1, 1] == 0
    assert result[0, 0] == 255
    assert result[1, 2] == 255


def test_preprocess_returns_original_on_corrupt_bytes():
    corrupt = b"definitely not an image"
    assert preprocess_image(corrupt) is corrupt


def test_preprocess_returns_original_on_invalid_base64_image():
    payload = base64.b64encode(b"still not an image").decode('ascii')
    assert preprocess_image(payload) is payload


def test_preprocess_output_is_binarized_and_same_size(bitonal_png):
    processed = preprocess_image(bitonal_png)
    image = decode_image(processed).image
    assert image.size == (120, 80)
    assert set(np.unique(_pixels(image)).tolist()) <= {0, 255}


def test_preprocess_is_idempotent_on_bitonal_image(bitonal_png):
    """A second pass over an already processed bitonal frame changes nothing."""
    once = preprocess_image(bitonal_png)
    twice = preprocess_image(once)
    assert np.array_equal(_pixels(decode_image(once).image), _pixels(decode_image(twice).image))


def test_preprocess_accepts_data_url(bitonal_png):
    data_url = "data:image/png;base64," + base64.b64encode(bitonal_png).decode('ascii')
    processed = preprocess_image(data_url)
    assert isinstance(processed, bytes)
    assert processed.startswith(b'\x89PNG')


def test_preprocess_keeps_jpeg_container():
    buffer = io.BytesIO()
    Image.new('RGB', (64, 64), (200, 30, 30)).save(buffer, format='JPEG')
    processed = preprocess_image(buffer.getvalue())
    assert processed.startswith(b'\xff\xd8')


def test_preprocess_constrains_large_images():
    processed = preprocess_image(encode_png(Image.new('L', (3000, 600), 255)))
    assert decode_image(processed).image.size == (1500, 300)
