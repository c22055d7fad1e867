"""Test TextDetector edge-density check."""
import os
import sys

from PIL import Image

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from conftest import encode_png, make_stripes
from TextDetector import edge_ratio, has_significant_text


def test_blank_page_has_no_text(blank_png):
    assert has_significant_text(blank_png) is False


def test_striped_page_has_text(striped_png):
    assert has_significant_text(striped_png) is True


def test_corrupt_image_assumes_text():
    """Detection errors must never suppress OCR."""
    assert has_significant_text(b"not an image") is True


def test_tiny_image_has_no_edges():
    assert edge_ratio(Image.new('L', (2, 2), 0)) == 0.0


def test_edge_ratio_of_stripes():
    """Each stripe boundary marks one column of interior edge pixels."""
    ratio = edge_ratio(make_stripes(width=40, height=10, stripe=4))
    # Boundaries after columns 3, 7, ..., 35 fall inside the interior (1..38)
    assert abs(ratio - (9 * 8) / 400) < 1e-9


def test_smooth_gradient_has_no_edges():
    image = Image.new('L', (100, 100))
    image.putdata([(x + y) // 2 for y in range(100) for x in range(100)])
    assert edge_ratio(image) == 0.0
    assert has_significant_text(encode_png(image)) is False
