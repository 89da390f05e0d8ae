import logging
import sys
from typing import Union

# settings may be None when the environment is invalid; fall back to INFO
try:
    from trade_analytics.config.settings import settings
    LOG_LEVEL = settings.LOG_LEVEL.upper() if settings else "INFO"
except Exception:
    LOG_LEVEL = "INFO"

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _resolve_level(level: Union[int, str, None]) -> int:
    if isinstance(level, int):
        return level
    return getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO)


def setup_logging(name: str = "trade_analytics", level: Union[int, str, None] = None) -> logging.Logger:
    """
    Analysis logger: stage summaries at INFO, per-fill detail at DEBUG,
    data anomalies (external sales, FX fallback, skipped fills) at WARNING.

    Writes to stdout only; the host process decides where that goes.
    Calling it again returns the same logger; passing `level` re-levels it,
    e.g. the CLI quiets it to WARNING while stdout carries a JSON result.
    """
    logger = logging.getLogger(name)

    if logger.handlers:
        if level is not None:
            resolved = _resolve_level(level)
            logger.setLevel(resolved)
            for handler in logger.handlers:
                handler.setLevel(resolved)
        return logger

    resolved = _resolve_level(level)
    logger.setLevel(resolved)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(resolved)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))

    logger.addHandler(console_handler)
    return logger


# Default logger
logger = setup_logging()
