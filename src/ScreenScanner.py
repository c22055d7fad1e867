"""
ScreenScanner - Orchestrates image analysis for the capture shell

The camera/UI shell hands ScreenScanner one captured frame at a time and gets
back an AnalysisResult. ScreenScanner wires the pipeline together:

    capture -> AnalysisCache -> RemoteAnalyzer (when configured)
                                   | fails, OCR enabled as backup
                                   v
                      OCRHandler.extract_text -> ThreatClassifier.classify

OCR-derived results carry an "[OCR Analysis]" summary prefix when they replace
a failed remote analysis, so the UI can show where a verdict came from.

Subcommands:
    scan: Analyze an image file and print the result as JSON
    extract: Print the OCR text of an image file
"""
from __future__ import annotations
import argparse
import asyncio
import json
import sys
import time
from pathlib import Path
from typing import Optional
from LoggerSetup import setup_logger
from AnalysisResult import AnalysisResult
from ImageCodec import ImageData, to_base64
from RiskTypes import OCR_SUMMARY_PREFIX

_logger = setup_logger(__name__)


class AnalysisError(Exception):
    """Terminal analysis failure; the message is safe to show to users."""


class ScreenScanner:
    """Main entry point of the scanning core.

    Attributes:
        config: ConfigManager with OCR settings, limits and lexicons
        ocr: OCRHandler for text extraction
        classifier: ThreatClassifier for text risk classification
        cache: AnalysisCache keyed by capture fingerprint
        remote: Optional RemoteAnalyzer tried before local OCR
        metrics: MetricsCollector for usage statistics
    """

    def __init__(self,
                 config=None,
                 ocr=None,
                 classifier=None,
                 cache=None,
                 remote=None,
                 metrics=None):
        """Initialize ScreenScanner with dependency injection support.

        Args:
            config: ConfigManager instance (or None to create default)
            ocr: OCRHandler instance (or None to create default)
            classifier: ThreatClassifier instance (or None to build from config lexicons)
            cache: AnalysisCache instance (or None to create one with the configured expiry)
            remote: RemoteAnalyzer instance, or None to analyze with OCR only
            metrics: MetricsCollector instance (or None to create default)
        """
        # Lazy imports to avoid loading image/OCR dependencies unless needed
        from ConfigManager import ConfigManager
        from OCRHandler import OCRHandler
        from ThreatClassifier import ThreatClassifier
        from AnalysisCache import AnalysisCache
        from MetricsCollector import MetricsCollector

        self.config = config or ConfigManager()
        self.metrics = metrics or MetricsCollector(self.config.tmp_dir / "metrics.json")
        self.ocr = ocr or OCRHandler(metrics=self.metrics)
        self.classifier = classifier or ThreatClassifier(self.config.lexicons)
        # An empty cache is falsy (__len__), so compare against None
        self.cache = cache if cache is not None else AnalysisCache(self.config.cache_expiry_seconds, metrics=self.metrics)
        self.remote = remote

        _logger.info(f"Initialized (remote analyzer: {getattr(remote, 'name', None) or 'none'})")

    async def extract_text(self, image_data: ImageData) -> str:
        """Run OCR with the configured settings."""
        settings = self.config.ocr
        return await self.ocr.extract_text(
            image_data,
            languages=settings.languages,
            enhanced=settings.enhanced_processing,
            create_variations=settings.create_variations,
            min_confidence=settings.min_confidence
        )

    async def analyze_image_with_ocr(self, image_data: ImageData) -> AnalysisResult:
        """Extract text locally and classify it.

        Raises:
            Exception: OCR errors that survived the OCR fallback pass
        """
        started = time.monotonic()
        text = await self.extract_text(image_data)
        preview = text[:200] + ('...' if len(text) > 200 else '')
        _logger.info(f"Extracted text: {preview!r}")
        result = self.classifier.classify(text)
        self.metrics.record_duration("ocr_analysis", time.monotonic() - started)
        return result

    async def analyze_image(self, image_data: ImageData) -> AnalysisResult:
        """Analyze a captured frame, reusing a cached result for repeated captures.

        Args:
            image_data: Encoded capture (bytes or base64, data-URL allowed)

        Returns:
            AnalysisResult: Remote or OCR-derived analysis

        Raises:
            AnalysisError: If no analysis path succeeded
        """
        self.metrics.increment("scans_total")
        try:
            result = await self.cache.get_or_compute(image_data, lambda: self._analyze_uncached(image_data))
        except AnalysisError:
            self.metrics.increment("scans_failed")
            raise
        self.metrics.increment(f"risk_{result.risk_level.value}")
        return result

    async def _analyze_uncached(self, image_data: ImageData) -> AnalysisResult:
        settings = self.config.ocr

        if self.remote is None:
            if not settings.enabled:
                raise AnalysisError("No analysis method available: OCR is disabled and no remote analyzer is configured")
            try:
                return await self._run_ocr_with_timeout(image_data)
            except Exception as e:
                _logger.error(f"OCR analysis failed: {e}")
                raise AnalysisError(f"Analysis failed - OCR: {e}") from e

        try:
            _logger.info(f"Analyzing image with remote analyzer '{self.remote.name}'...")
            result = await self.remote.analyze(to_base64(image_data))
            _logger.info(f"Remote analysis succeeded with risk level {result.risk_level.value}")
            return result
        except Exception as remote_error:
            _logger.error(f"Remote analysis failed: {remote_error}")
            self.metrics.increment("remote_failures")

            if not (settings.enabled and settings.use_as_backup):
                _logger.info("OCR is not enabled as backup, propagating remote error")
                raise AnalysisError(f"Analysis failed - remote: {remote_error}") from remote_error

            _logger.info("Falling back to OCR analysis...")
            try:
                result = await self._run_ocr_with_timeout(image_data)
            except Exception as ocr_error:
                _logger.error(f"OCR fallback failed: {ocr_error}")
                raise AnalysisError(
                    f"Analysis failed - remote: {remote_error}. OCR: {ocr_error}"
                ) from ocr_error

            self.metrics.increment("ocr_fallback_analyses")
            _logger.info(f"OCR analysis succeeded with risk level {result.risk_level.value}")
            return result.with_summary_prefix(OCR_SUMMARY_PREFIX)

    async def _run_ocr_with_timeout(self, image_data: ImageData) -> AnalysisResult:
        try:
            return await asyncio.wait_for(self.analyze_image_with_ocr(image_data), timeout=self.config.analysis_timeout)
        except asyncio.TimeoutError:
            raise AnalysisError(f"OCR timeout after {self.config.analysis_timeout:g} seconds")

    def shutdown(self) -> None:
        """Persist metrics and log the session summary."""
        self.metrics.force_save()
        metrics_summary = self.metrics.get_all()
        if metrics_summary:
            _logger.info(f"Final metrics for this session:\n{json.dumps(metrics_summary, indent=2, sort_keys=True)}")


def _read_image(path: str) -> bytes:
    image_path = Path(path)
    if not image_path.is_file():
        raise AnalysisError(f"Image file not found: {path}")
    return image_path.read_bytes()


def main(argv=None):
    """Main entry point for the scanner CLI.

    Parses command-line arguments and dispatches to the subcommand:
    - scan: Full analysis, printed as JSON
    - extract: OCR text only
    """
    parser = argparse.ArgumentParser(description="Screen Sentry - screen capture threat scanner")
    subparsers = parser.add_subparsers(dest="cmd")

    for name, help_text in (("scan", "Analyze an image for security threats"),
                            ("extract", "Extract text from an image with OCR")):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("image", help="Path to a JPEG/PNG image")
        sub.add_argument("--languages", help="OCR languages, e.g. ind+eng (default: from config)")
        sub.add_argument("--no-variations", action="store_true", help="OCR a single rendering only")
        sub.add_argument("--no-enhanced", action="store_true", help="Skip preprocessing when variations are off")
        sub.add_argument("--min-confidence", type=float, help="Minimum OCR confidence between 0 and 1")
        sub.add_argument("--config-dir", help="Configuration directory (default: $SCANNER_CONFIG_DIR, then ./config)")

    args = parser.parse_args(argv)
    if args.cmd not in ("scan", "extract"):
        parser.print_help()
        return 1

    from ConfigManager import ConfigManager

    scanner = None
    try:
        if args.min_confidence is not None and not 0 <= args.min_confidence <= 1:
            raise ValueError(f"--min-confidence must be between 0 and 1, got {args.min_confidence:g}")

        scanner = ScreenScanner(config=ConfigManager(config_dir=args.config_dir))
        settings = scanner.config.ocr
        if args.languages:
            settings.languages = args.languages
        if args.no_variations:
            settings.create_variations = False
        if args.no_enhanced:
            settings.enhanced_processing = False
        if args.min_confidence is not None:
            settings.min_confidence = args.min_confidence

        image_data = _read_image(args.image)
        if args.cmd == "scan":
            result = asyncio.run(scanner.analyze_image(image_data))
            print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
        else:
            print(asyncio.run(scanner.extract_text(image_data)))
        return 0
    except KeyboardInterrupt:
        _logger.info("Interrupted by user (Ctrl+C)")
        return 130
    except (AnalysisError, ValueError) as e:
        _logger.error(f"Error: {e}")
        return 1
    finally:
        if scanner:
            scanner.shutdown()


if __name__ == "__main__":
    sys.exit(main())
