"""Exceptions raised by the exporter."""

from typing import Optional


class ExporterError(Exception):
    """Base class for exporter errors."""


class UpstreamError(ExporterError):
    """A request to the Dependency-Track API failed."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ConfigurationError(ExporterError):
    """The exporter cannot start with the given configuration."""


class CancelledError(ExporterError):
    """An upstream walk was aborted because shutdown was requested."""
