"""
Custom exceptions for TwiddlePID package.
"""


class TwiddlePIDError(Exception):
    """Base exception for all TwiddlePID related errors."""
    pass


class ConfigurationError(TwiddlePIDError):
    """Exception raised when invalid configuration parameters are provided."""
    pass


class TelemetryError(TwiddlePIDError):
    """Exception raised when a telemetry frame cannot be decoded."""
    pass
