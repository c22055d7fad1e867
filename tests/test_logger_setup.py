"""Test LoggerSetup formatting."""
import logging
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from LoggerSetup import ColoredFormatter, _resolve_level, setup_logger


def _record(level=logging.ERROR):
    return logging.LogRecord("OCRHandler", level, __file__, 1, "[OCRHandler] failed", None, None)


def test_colored_formatter_restores_levelname():
    record = _record()
    formatted = ColoredFormatter(fmt='%(levelname)s %(message)s', use_color=True).format(record)

    assert formatted.startswith(ColoredFormatter.COLORS['ERROR'])
    assert record.levelname == 'ERROR'


def test_plain_formatter_has_no_escape_codes():
    formatted = ColoredFormatter(fmt='%(levelname)s %(message)s', use_color=False).format(_record())
    assert formatted == "ERROR [OCRHandler] failed"


def test_resolve_level(monkeypatch):
    monkeypatch.setenv('SCANNER_LOG_LEVEL', 'debug')
    assert _resolve_level() == logging.DEBUG
    monkeypatch.setenv('SCANNER_LOG_LEVEL', 'chatty')
    assert _resolve_level() == logging.INFO


def test_setup_logger_returns_named_logger():
    logger = setup_logger("ThreatClassifier")
    assert logger.name == "ThreatClassifier"
    assert logging.getLogger().handlers
