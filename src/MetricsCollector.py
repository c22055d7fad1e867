"""
MetricsCollector - JSON-based scan metrics

Lightweight counters for the scanning pipeline, persisted to a JSON file
periodically and on shutdown.

Metrics include:
  scans_total
  scans_failed
  cache_hits
  cache_misses
  remote_failures
  ocr_fallback_analyses
  ocr_passes
  ocr_fallbacks
  risk_<level>
  <name>_count / <name>_ms_total (from record_duration)
"""
import json
import time
from pathlib import Path
from typing import Dict
from collections import defaultdict
from LoggerSetup import setup_logger

_logger = setup_logger(__name__)


class MetricsCollector:
    """Counter store with periodic JSON persistence.

    Attributes:
        SAVE_INTERVAL: Seconds between automatic saves
        metrics_file: Path to metrics JSON file
        metrics: Metric name -> value
    """

    SAVE_INTERVAL = 60  # seconds

    def __init__(self, metrics_file: Path):
        """Initialize with fresh counters; the file is written, never read back.

        Args:
            metrics_file: Path to metrics JSON file (e.g., tmp/metrics.json)
        """
        self.metrics_file = Path(metrics_file)
        self.metrics: Dict[str, int] = defaultdict(int)
        self._last_save_time = time.time()
        self._dirty = False

    def _save_metrics(self) -> None:
        """Write metrics to file. Errors are logged so scans never fail on metrics."""
        try:
            self.metrics_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.metrics_file, 'w') as f:
                json.dump(dict(self.metrics), f, indent=2, sort_keys=True)
            _logger.debug(f"[MetricsCollector] Saved metrics to {self.metrics_file}")
        except Exception as e:
            _logger.error(f"[MetricsCollector] Failed to save metrics: {e}")

    def _mark_dirty(self) -> None:
        self._dirty = True
        if (time.time() - self._last_save_time) >= self.SAVE_INTERVAL:
            self.force_save()

    def force_save(self) -> None:
        """Save now if anything changed since the last save. Safe to call repeatedly."""
        if self._dirty:
            self._save_metrics()
            self._last_save_time = time.time()
            self._dirty = False

    def increment(self, metric_name: str, value: int = 1) -> None:
        self.metrics[metric_name] += value
        self._mark_dirty()

    def set(self, metric_name: str, value: int) -> None:
        self.metrics[metric_name] = value
        self._mark_dirty()

    def record_duration(self, metric_name: str, seconds: float) -> None:
        """Accumulate a timing as <name>_count and <name>_ms_total."""
        self.metrics[f"{metric_name}_count"] += 1
        self.metrics[f"{metric_name}_ms_total"] += int(round(seconds * 1000))
        self._mark_dirty()

    def get(self, metric_name: str) -> int:
        """Current value of a metric (0 if never recorded)."""
        return self.metrics.get(metric_name, 0)

    def get_all(self) -> Dict[str, int]:
        return dict(self.metrics)

    def reset(self) -> None:
        """Reset all metrics to zero and save immediately."""
        self.metrics.clear()
        self._dirty = True
        self.force_save()
        _logger.info("[MetricsCollector] All metrics reset to zero")
