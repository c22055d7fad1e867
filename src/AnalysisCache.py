"""
AnalysisCache - Memoizes analysis results per captured scene

The camera shell captures the same screen repeatedly. Results are kept under a
cheap fingerprint of the encoded payload (evenly spaced base64 characters) so a
repeated capture within the expiry window skips OCR and classification.

The fingerprint is a sampling, not a hash: differently encoded copies of one
scene can miss, and unrelated payloads can in principle collide.

Entries expire lazily, only when their own fingerprint is looked up again.
There is no capacity bound; concurrent misses for one fingerprint may both
compute, and the last store wins.
"""
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional
from LoggerSetup import setup_logger
from AnalysisResult import AnalysisResult
from ImageCodec import ImageData, to_base64

_logger = setup_logger(__name__)

FINGERPRINT_SAMPLES = 100
DEFAULT_EXPIRY_SECONDS = 30 * 60


def make_fingerprint(image_data: ImageData, sample_size: int = FINGERPRINT_SAMPLES) -> str:
    """Sample sample_size evenly spaced characters of the base64 payload."""
    payload = to_base64(image_data)
    length = len(payload)
    if length == 0:
        return ""
    step = max(1, length // sample_size)
    return "".join(payload[(i * step) % length] for i in range(sample_size))


@dataclass
class CacheEntry:
    """Cached result and its creation time (epoch seconds)."""
    fingerprint: str
    result: AnalysisResult
    created_at: float


class AnalysisCache:
    """In-memory fingerprint -> AnalysisResult cache with a fixed expiry window."""

    def __init__(self,
                 expiry_seconds: float = DEFAULT_EXPIRY_SECONDS,
                 clock: Callable[[], float] = time.time,
                 metrics=None):
        """Initialize an empty cache.

        Args:
            expiry_seconds: Age after which an entry is recomputed
            clock: Time source in seconds (injectable for tests)
            metrics: Optional MetricsCollector for hit/miss counts
        """
        self.expiry_seconds = expiry_seconds
        self._clock = clock
        self._metrics = metrics
        self._entries: Dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def lookup(self, fingerprint: str) -> Optional[AnalysisResult]:
        """Return the cached result if present and fresh; drop it if expired."""
        entry = self._entries.get(fingerprint)
        if entry is None:
            return None
        if self._clock() - entry.created_at < self.expiry_seconds:
            return entry.result
        del self._entries[fingerprint]
        _logger.debug("[AnalysisCache] Entry expired")
        return None

    def store(self, fingerprint: str, result: AnalysisResult) -> None:
        self._entries[fingerprint] = CacheEntry(fingerprint, result, self._clock())

    def clear(self) -> None:
        self._entries.clear()

    async def get_or_compute(self,
                             image_data: ImageData,
                             compute_fn: Callable[[], Awaitable[AnalysisResult]]) -> AnalysisResult:
        """Return a fresh cached result for image_data or compute and store one.

        Args:
            image_data: Encoded capture (bytes or base64, data-URL allowed)
            compute_fn: Zero-argument coroutine function running the full analysis

        Returns:
            AnalysisResult: The cached object on a hit, the new result otherwise
        """
        fingerprint = make_fingerprint(image_data)
        cached = self.lookup(fingerprint)
        if cached is not None:
            _logger.info("[AnalysisCache] Using cached analysis result")
            self._increment("cache_hits")
            return cached

        self._increment("cache_misses")
        result = await compute_fn()
        self.store(fingerprint, result)
        return result

    def _increment(self, metric_name: str) -> None:
        if self._metrics is not None:
            self._metrics.increment(metric_name)
