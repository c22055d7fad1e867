"""
LoggerSetup - Centralized logging configuration for the scanner

Every scanner module calls setup_logger(__name__) instead of configuring
logging.basicConfig() itself, so pipeline stages share one format and one level.

The level comes from the SCANNER_LOG_LEVEL environment variable (default INFO).
Set it to DEBUG to see per-variation OCR confidences and keyword matches.
"""
import logging
import os
import sys


class ColoredFormatter(logging.Formatter):
    """Formatter that adds ANSI color codes to the level name."""

    COLORS = {
        'DEBUG': '\033[0;36m',      # Cyan
        'INFO': '\033[0;37m',       # White
        'WARNING': '\033[0;33m',    # Yellow
        'ERROR': '\033[0;31m',      # Red
        'CRITICAL': '\033[1;31m',   # Bold Red
    }
    RESET = '\033[0m'

    def __init__(self, fmt=None, datefmt=None, use_color=None):
        """Initialize colored formatter.

        Args:
            fmt: Log format string
            datefmt: Date format string
            use_color: Whether to use ANSI color codes (auto-detected if None)
        """
        super().__init__(fmt, datefmt)
        if use_color is None:
            use_color = hasattr(sys.stderr, 'isatty') and sys.stderr.isatty()
        self.use_color = use_color

    def format(self, record):
        """Format log record, coloring a copy of the level name only."""
        if not (self.use_color and record.levelname in self.COLORS):
            return super().format(record)
        original = record.levelname
        record.levelname = self.COLORS[original] + original + self.RESET
        try:
            return super().format(record)
        finally:
            record.levelname = original


def _resolve_level() -> int:
    level_name = os.getenv('SCANNER_LOG_LEVEL', 'INFO').strip().upper()
    level = logging.getLevelName(level_name)
    return level if isinstance(level, int) else logging.INFO


def setup_logger(name: str, use_color=None) -> logging.Logger:
    """Get a logger sharing the scanner's formatting.

    The root logger is configured on the first call only, so importing
    several pipeline modules never stacks handlers.

    Args:
        name: Logger name (__name__ of the calling module)
        use_color: Whether to use colored output (auto-detected if None)

    Returns:
        logging.Logger: Logger for the calling module

    Example:
        >>> logger = setup_logger(__name__)
        >>> logger.info("[OCRHandler] Variation 3/9 confidence 71.20")
    """
    root_logger = logging.getLogger()
    if not root_logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        formatter = ColoredFormatter(
            fmt='%(asctime)s - %(levelname)s - [%(name)s] %(message)s',
            use_color=use_color
        )
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)
        root_logger.setLevel(_resolve_level())

    return logging.getLogger(name)
