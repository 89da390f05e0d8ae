import logging

from trade_analytics.config.logging import logger, setup_logging


def test_setup_logging_returns_shared_logger():
    assert setup_logging() is logger
    assert len(logger.handlers) == 1


def test_setup_logging_relevels_existing_logger():
    original = logger.level
    try:
        setup_logging(level=logging.WARNING)
        assert logger.level == logging.WARNING
        assert all(h.level == logging.WARNING for h in logger.handlers)

        setup_logging(level="debug")
        assert logger.level == logging.DEBUG
    finally:
        setup_logging(level=original)
