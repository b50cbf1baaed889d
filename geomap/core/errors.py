# geomap/core/errors.py
from typing import Optional


class GeoMapError(Exception):
    """Base class for errors raised by the aggregation layer."""


class NetworkFailure(GeoMapError):
    """Non-2xx response or transport error from a backend."""

    def __init__(self, source: str, message: str, status_code: Optional[int] = None):
        self.source = source
        self.status_code = status_code
        super().__init__(f"{source}: {message}")


class ValidationFailure(GeoMapError):
    """Malformed coordinates or a query too short to send."""


class ProtocolViolation(GeoMapError):
    """Backend broke its paging contract (cursor did not advance)."""

    def __init__(self, source: str, message: str):
        self.source = source
        super().__init__(f"{source}: {message}")


class UnsupportedOperation(GeoMapError):
    """Write requested against a read-only backend."""

    def __init__(self, source: str, operation: str):
        self.source = source
        self.operation = operation
        super().__init__(f"{source} does not support {operation}")
