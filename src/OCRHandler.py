"""
OCRHandler - Optical Character Recognition over captured frames

This module uses EasyOCR to read text from a capture and its alternate renderings.
If the EasyOCR import fails it is logged when an engine is requested, and
extraction raises OCRError instead of crashing at import time.

Extraction flow:
    1. Skip OCR entirely when TextDetector sees no text-like structure
    2. Pick the working set: all variations, the preprocessed frame, or the raw frame
    3. Start one engine, read every image in turn, keep one candidate per image
    4. Return the most confident text after deterministic corrections
    5. Terminate the engine on every exit path, including cancellation while it starts

If the enhanced flow fails, a single plain pass over the raw frame is attempted
with a default engine; if that fails too, the original error propagates.
"""
import asyncio
import re
import threading
from abc import ABC as AbstractBaseClass, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple
from LoggerSetup import setup_logger
from ImageCodec import ImageData, to_image_bytes
from ImagePreprocessor import preprocess_image
from ImageVariations import VARIATION_NAMES, generate_variations
from TextDetector import has_significant_text
from RiskTypes import LOW_CONFIDENCE_TEXT, NO_TEXT_DETECTED

try:
    import easyocr
    _EASYOCR_AVAILABLE = True
except Exception:
    _EASYOCR_AVAILABLE = False

_logger = setup_logger(__name__)

DEFAULT_LANGUAGES = 'ind+eng'
DEFAULT_MIN_CONFIDENCE = 0.3

OCR_ALLOWLIST = (
    'abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789'
    '.,;:!?@#$%^&*()-_+=[]{}|\\/<>\'"`~ '
    'áàäâãåéèëêíìïîóòöôõúùüûçñÁÀÄÂÃÅÉÈËÊÍÌÏÎÓÒÖÔÕÚÙÜÛÇÑ'
)

# EasyOCR tuning for screen captures:
# - contrast_ths=0.15: lower threshold to retry faint text at higher contrast
# - min_size=10: ignore tiny noise artifacts
TUNED_READTEXT_PARAMS = {'contrast_ths': 0.15, 'min_size': 10}

# Tesseract-style codes used in settings -> EasyOCR codes
_LANGUAGE_CODES = {
    'ind': 'id',
    'eng': 'en',
    'msa': 'ms',
    'jav': 'jv',
}

_CORRECTIONS = [
    (re.compile(r'l\b'), '1'),
    (re.compile(r'\b[Oo]\b'), '0'),
    (re.compile(r'\b[Ii]\b'), '1'),
    (re.compile(r'[^\S\r\n]+'), ' '),
    (re.compile(r'\n{3,}'), '\n\n'),
]


class OCRError(Exception):
    """Raised when no OCR engine can be started or used."""


@dataclass
class OcrEngineOptions:
    """Engine configuration.

    Attributes:
        languages: '+' separated language codes (e.g. "ind+eng")
        allowlist: Characters the recognizer may emit (None = unrestricted)
        readtext_params: Extra detector/recognizer parameters
    """
    languages: str = DEFAULT_LANGUAGES
    allowlist: Optional[str] = None
    readtext_params: Dict[str, Any] = field(default_factory=dict)


@dataclass
class OcrCandidate:
    """Text read from one image of the working set (confidence on a 0-100 scale)."""
    text: str
    confidence: float
    variation: int


class OcrEngine(AbstractBaseClass):
    """Recognition engine interface used by OCRHandler."""

    @abstractmethod
    def recognize(self, image_bytes: bytes) -> Tuple[str, float]:
        """Return (text, confidence 0-100) for one encoded image."""
        pass

    def terminate(self) -> None:
        """Release the engine. Safe to call more than once."""


def to_easyocr_languages(languages: str) -> List[str]:
    codes = [code.strip().lower() for code in (languages or DEFAULT_LANGUAGES).split('+') if code.strip()]
    mapped = []
    for code in codes:
        easy_code = _LANGUAGE_CODES.get(code, code)
        if easy_code not in mapped:
            mapped.append(easy_code)
    return mapped


def assemble_lines(results) -> str:
    """Join EasyOCR boxes into text lines, top to bottom and left to right.

    Boxes whose vertical centres lie within half a box height of the current
    line are treated as the same line.
    """
    boxes = []
    for bbox, text, _conf in results:
        if not text:
            continue
        ys = [point[1] for point in bbox]
        xs = [point[0] for point in bbox]
        top, bottom = min(ys), max(ys)
        boxes.append(((top + bottom) / 2.0, max(bottom - top, 1.0), min(xs), text))
    boxes.sort(key=lambda b: (b[0], b[2]))

    lines: List[List[Tuple[float, str]]] = []
    line_center = None
    line_height = None
    for center, height, left, text in boxes:
        if lines and abs(center - line_center) <= max(line_height, height) / 2.0:
            lines[-1].append((left, text))
        else:
            lines.append([(left, text)])
            line_center, line_height = center, height
    return "\n".join(" ".join(text for _, text in sorted(line)) for line in lines)


class EasyOCREngine(OcrEngine):
    """OcrEngine backed by an EasyOCR Reader (CPU mode)."""

    def __init__(self, options: OcrEngineOptions):
        if not _EASYOCR_AVAILABLE:
            raise OCRError("EasyOCR is not installed")
        self.options = options
        lang_list = to_easyocr_languages(options.languages)
        try:
            self._reader = easyocr.Reader(lang_list, gpu=False, verbose=False)
        except Exception as e:
            raise OCRError(f"Failed to initialize EasyOCR ({'+'.join(lang_list)}): {e}") from e
        _logger.info(f"[OCRHandler] EasyOCR reader initialized ({', '.join(lang_list)}, CPU)")

    def recognize(self, image_bytes: bytes) -> Tuple[str, float]:
        if self._reader is None:
            raise OCRError("OCR engine already terminated")
        results = self._reader.readtext(
            image_bytes,
            detail=1,
            paragraph=False,
            allowlist=self.options.allowlist,
            **self.options.readtext_params
        )
        if not results:
            return "", 0.0
        confidence = sum(float(conf) for _, _, conf in results) / len(results)
        return assemble_lines(results), confidence * 100.0

    def terminate(self) -> None:
        self._reader = None


class _EngineSlot:
    """Hands an engine built in a worker thread over to the awaiting coroutine.

    If the coroutine is cancelled while the factory is still running, the
    engine is terminated as soon as the factory returns instead of leaking.
    """

    def __init__(self, factory: Callable[[OcrEngineOptions], OcrEngine]):
        self._factory = factory
        self._lock = threading.Lock()
        self._engine: Optional[OcrEngine] = None
        self._released = False

    def build(self, options: OcrEngineOptions) -> OcrEngine:
        engine = self._factory(options)
        with self._lock:
            if not self._released:
                self._engine = engine
                return engine
        _logger.debug("[OCRHandler] Engine finished starting after its caller gave up, terminating it")
        engine.terminate()
        return engine

    def release(self) -> None:
        with self._lock:
            self._released = True
            engine, self._engine = self._engine, None
        if engine is not None:
            engine.terminate()


def correct_text(text: str) -> str:
    """Fix common OCR digit/letter confusions and normalize whitespace."""
    for pattern, replacement in _CORRECTIONS:
        text = pattern.sub(replacement, text)
    return text


class OCRHandler:
    """Runs OCR over a capture and returns the best-confidence text.

    Engines are created per extract_text() call through engine_factory and
    always terminated before returning, so at most one engine is alive.
    """

    def __init__(self, engine_factory: Optional[Callable[[OcrEngineOptions], OcrEngine]] = None, metrics=None):
        """Initialize OCRHandler.

        Args:
            engine_factory: Callable building an OcrEngine from options (default EasyOCREngine)
            metrics: Optional MetricsCollector for OCR pass counts
        """
        self._engine_factory = engine_factory or EasyOCREngine
        self._metrics = metrics

    def is_available(self) -> bool:
        """Check if OCR is available.

        Returns:
            bool: True if a custom engine was injected or EasyOCR is installed
        """
        return self._engine_factory is not EasyOCREngine or _EASYOCR_AVAILABLE

    async def extract_text(self,
                           image_data: ImageData,
                           languages: str = DEFAULT_LANGUAGES,
                           enhanced: bool = True,
                           create_variations: bool = True,
                           min_confidence: float = DEFAULT_MIN_CONFIDENCE) -> str:
        """Extract text from a captured image.

        Args:
            image_data: Encoded image bytes or base64 string (data-URL allowed)
            languages: '+' separated language codes
            enhanced: Preprocess the frame when variations are disabled
            create_variations: OCR every rendering from ImageVariations
            min_confidence: Minimum best confidence on a 0-1 scale

        Returns:
            str: Corrected text, NO_TEXT_DETECTED, or LOW_CONFIDENCE_TEXT

        Raises:
            Exception: The enhanced-path error, when the fallback pass also fails
        """
        languages = languages or DEFAULT_LANGUAGES
        try:
            return await self._extract_enhanced(image_data, languages, enhanced, create_variations, min_confidence)
        except Exception as e:
            _logger.error(f"[OCRHandler] OCR extraction failed: {e}")
            try:
                return await self._extract_fallback(image_data, languages)
            except Exception as fallback_error:
                _logger.error(f"[OCRHandler] Fallback OCR failed: {fallback_error}")
                raise e

    async def _extract_enhanced(self, image_data: ImageData, languages: str, enhanced: bool,
                                create_variations: bool, min_confidence: float) -> str:
        if not await asyncio.to_thread(has_significant_text, image_data):
            _logger.info("[OCRHandler] No significant text detected, skipping OCR")
            return NO_TEXT_DETECTED

        if create_variations:
            images = await asyncio.to_thread(generate_variations, image_data)
        elif enhanced:
            images = [await asyncio.to_thread(preprocess_image, image_data)]
        else:
            images = [image_data]

        options = OcrEngineOptions(
            languages=languages,
            allowlist=OCR_ALLOWLIST,
            readtext_params=dict(TUNED_READTEXT_PARAMS)
        )
        candidates = await self._recognize_all(images, options)

        candidates.sort(key=lambda c: c.confidence, reverse=True)
        for rank, candidate in enumerate(candidates, start=1):
            _logger.debug(
                f"[OCRHandler] #{rank}: {self._variation_label(candidate.variation, len(images))}, "
                f"confidence {candidate.confidence:.2f}"
            )

        best = candidates[0]
        if best.confidence / 100.0 < min_confidence:
            _logger.info(
                f"[OCRHandler] Best confidence {best.confidence:.2f} below minimum {min_confidence * 100:.0f}"
            )
            return LOW_CONFIDENCE_TEXT

        _logger.info(f"[OCRHandler] OCR complete with confidence {best.confidence:.2f}")
        return correct_text(best.text)

    async def _recognize_all(self, images: List, options: OcrEngineOptions) -> List[OcrCandidate]:
        """Read each image with one engine, strictly one after another."""
        slot = _EngineSlot(self._engine_factory)
        try:
            engine = await asyncio.to_thread(slot.build, options)
            candidates = []
            for index, image in enumerate(images):
                text, confidence = await asyncio.to_thread(engine.recognize, to_image_bytes(image))
                candidates.append(OcrCandidate(text=text or "", confidence=float(confidence), variation=index))
                self._increment("ocr_passes")
                _logger.debug(
                    f"[OCRHandler] {self._variation_label(index, len(images))} ({index + 1}/{len(images)}) "
                    f"confidence {confidence:.2f}"
                )
            return candidates
        finally:
            slot.release()

    async def _extract_fallback(self, image_data: ImageData, languages: str) -> str:
        """Single plain pass over the raw frame with a default engine."""
        _logger.info("[OCRHandler] Retrying with standard OCR settings")
        self._increment("ocr_fallbacks")
        slot = _EngineSlot(self._engine_factory)
        try:
            engine = await asyncio.to_thread(slot.build, OcrEngineOptions(languages=languages))
            text, confidence = await asyncio.to_thread(engine.recognize, to_image_bytes(image_data))
            self._increment("ocr_passes")
            _logger.info(f"[OCRHandler] Fallback OCR complete with confidence {confidence:.2f}")
            return text or ""
        finally:
            slot.release()

    def _increment(self, metric_name: str) -> None:
        if self._metrics is not None:
            self._metrics.increment(metric_name)

    @staticmethod
    def _variation_label(index: int, total: int) -> str:
        if total == len(VARIATION_NAMES):
            return f"variation '{VARIATION_NAMES[index]}'"
        return "image"
