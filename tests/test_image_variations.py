"""Test ImageVariations alternate renderings."""
import base64
import os
import sys

import numpy as np
from PIL import Image

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from conftest import encode_png
from ImageCodec import decode_image
from ImageVariations import VARIATION_NAMES, choose_bitonal_threshold, generate_variations


def test_generates_every_rendering_in_order(striped_png):
    variations = generate_variations(striped_png)
    assert len(variations) == len(VARIATION_NAMES) == 9
    assert variations[0] is striped_png


def test_every_rendering_decodes_at_source_size(striped_png):
    for payload in generate_variations(striped_png)[1:]:
        assert decode_image(payload).image.size == (200, 100)


def test_derived_renderings_are_png(striped_png):
    for payload in generate_variations(striped_png)[1:]:
        assert payload.startswith(b'\x89PNG')


def test_inverted_rendering_of_white_page_is_black(blank_png):
    inverted = generate_variations(blank_png)[VARIATION_NAMES.index('inverted')]
    pixels = np.asarray(decode_image(inverted).image.convert('L'))
    assert (pixels == 0).all()


def test_bitonal_rendering_only_has_black_and_white():
    image = Image.fromarray(np.tile(np.arange(0, 256, dtype=np.uint8), (4, 1)))
    bitonal = generate_variations(encode_png(image))[VARIATION_NAMES.index('bitonal')]
    values = set(np.unique(np.asarray(decode_image(bitonal).image.convert('L'))).tolist())
    assert values == {0, 255}


def test_choose_bitonal_threshold():
    assert choose_bitonal_threshold(50) == 100
    assert choose_bitonal_threshold(250) == 180
    assert choose_bitonal_threshold(150) == 128
    assert choose_bitonal_threshold(100) == 128
    assert choose_bitonal_threshold(200) == 128


def test_base64_input_kept_as_first_entry(striped_png):
    payload = "data:image/png;base64," + base64.b64encode(striped_png).decode('ascii')
    variations = generate_variations(payload)
    assert len(variations) == 9
    assert variations[0] == payload


def test_corrupt_input_returns_original_only():
    corrupt = b"\x00\x01 broken capture"
    assert generate_variations(corrupt) == [corrupt]
