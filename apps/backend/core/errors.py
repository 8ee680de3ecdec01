"""
Error types raised by the ingestion pipeline.

Relevance and persistence rejections are normal outcomes and are reported through
return values (ProcessedJobResult / adapter bool), not through these exceptions.
"""
from typing import Optional


class IngestError(Exception):
    """Base class for ingestion failures."""
    pass


class ConfigError(IngestError):
    """Missing or invalid per-source configuration. No network call is attempted."""
    pass


class TransportError(IngestError):
    """Non-2xx response, timeout or connection failure. Retried at the next run."""

    def __init__(self, message: str, status: Optional[int] = None, url: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.url = url


class ParseError(IngestError):
    """Malformed upstream payload or HTML."""
    pass


class PersistenceError(IngestError):
    """A job could not be written: unnormalizable key fields or a database failure."""
    pass
