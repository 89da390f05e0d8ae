from typing import Any

class AppError(Exception):
    """Base class for every trade_analytics error"""
    pass

class ConfigurationError(AppError):
    """Configuration error (e.g. an unusable FX endpoint)"""
    pass

class DataSourceError(AppError):
    """Data source error (e.g. the FX rate endpoint is down or returns garbage)"""
    pass

class InputValidationError(AppError):
    """
    Malformed input at the ingestion boundary.
    Raised instead of silently turning a bad number into 0.
    """
    def __init__(self, field: str, value: Any, message: str = ""):
        self.field = field
        self.value = value
        detail = message or "could not be parsed"
        super().__init__(f"Invalid value for '{field}': {value!r} ({detail})")
