"""
Pytest configuration and shared fixtures for scanner tests.

Images are generated with Pillow at test time, and OCR engines are replaced
by StubEngine so no test needs EasyOCR models.
"""
import io
import os
import sys
from pathlib import Path
from unittest.mock import Mock

import pytest
from PIL import Image

# Add src to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from ConfigManager import OcrSettings

PROJECT_CONFIG_DIR = Path(__file__).resolve().parents[1] / "config"


# ============================================================================
# IMAGE FIXTURES
# ============================================================================

def encode_png(image):
    """Encode a Pillow image as PNG bytes."""
    buffer = io.BytesIO()
    image.save(buffer, format='PNG')
    return buffer.getvalue()


def make_stripes(width=200, height=100, stripe=4):
    """Vertical black/white stripes: dense sharp edges, like lines of text."""
    image = Image.new('L', (width, height), 255)
    pixels = image.load()
    for x in range(width):
        if (x // stripe) % 2 == 0:
            for y in range(height):
                pixels[x, y] = 0
    return image


def make_half_bitonal(width=120, height=80):
    """Left half black, right half white."""
    image = Image.new('L', (width, height), 255)
    image.paste(0, (0, 0, width // 2, height))
    return image


@pytest.fixture
def blank_png():
    """A plain white RGB page with no text."""
    return encode_png(Image.new('RGB', (200, 120), (255, 255, 255)))


@pytest.fixture
def striped_png():
    return encode_png(make_stripes().convert('RGB'))


@pytest.fixture
def bitonal_png():
    return encode_png(make_half_bitonal())


# ============================================================================
# OCR ENGINE STUBS
# ============================================================================

class StubEngine:
    """OcrEngine stand-in returning scripted (text, confidence) pairs.

    Each recognize() call pops the next entry of results; the last entry is
    repeated once the script runs out. An Exception entry is raised.
    """

    def __init__(self, options, results):
        self.options = options
        self.results = list(results)
        self.calls = []
        self.terminated = False

    def recognize(self, image_bytes):
        self.calls.append(image_bytes)
        outcome = self.results.pop(0) if len(self.results) > 1 else self.results[0]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def terminate(self):
        self.terminated = True


class StubEngineFactory:
    """Engine factory recording every engine it builds.

    Args:
        *scripts: One result script per engine, in creation order; the last
                  script is reused for any further engines
    """

    def __init__(self, *scripts):
        self.scripts = list(scripts)
        self.engines = []

    def __call__(self, options):
        index = min(len(self.engines), len(self.scripts) - 1)
        script = self.scripts[index]
        if isinstance(script, Exception):
            self.engines.append(None)
            raise script
        engine = StubEngine(options, script)
        self.engines.append(engine)
        return engine

    @property
    def created(self):
        return len(self.engines)


@pytest.fixture
def engine_factory():
    """Build a StubEngineFactory from result scripts."""
    return StubEngineFactory


# ============================================================================
# CONFIGURATION FIXTURES
# ============================================================================

@pytest.fixture
def clean_env(monkeypatch):
    """Remove scanner environment overrides for the duration of a test.

    Values a test loads from a .env file are removed again afterwards.
    """
    for key in ('OCR_ENABLED', 'OCR_USE_AS_BACKUP', 'OCR_LANGUAGES', 'OCR_ENHANCED_PROCESSING',
                'OCR_CREATE_VARIATIONS', 'OCR_MIN_CONFIDENCE', 'SCANNER_CONFIG_FILE', 'SCANNER_CONFIG_DIR'):
        monkeypatch.setenv(key, '')
        monkeypatch.delenv(key)
    return monkeypatch


@pytest.fixture
def project_lexicons(clean_env):
    """Keyword lexicons shipped in config/."""
    from ConfigManager import ConfigManager
    return ConfigManager(config_dir=PROJECT_CONFIG_DIR).lexicons


@pytest.fixture
def mock_config(tmp_path):
    """Mock ConfigManager with default OCR settings."""
    config = Mock()
    config.ocr = OcrSettings()
    config.analysis_timeout = 30.0
    config.cache_expiry_seconds = 1800.0
    config.tmp_dir = tmp_path
    return config
