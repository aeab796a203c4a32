"""
Gateway Exceptions - Error taxonomy shared by the core services.

Only SessionNotFound crosses the core boundary as a hard failure. Cache and
upstream errors are raised internally and converted to values by the
component that owns the dependency.
"""


class GatewayError(Exception):
    """Base class for all gateway errors."""


class SessionNotFound(GatewayError):
    """Raised by mutation operations when the durable store has no such session."""

    def __init__(self, session_key: str):
        super().__init__(f"Session not found: {session_key}")
        self.session_key = session_key


class CacheUnavailable(GatewayError):
    """Raised by cache backends when the cache cannot be reached."""


class UpstreamTimeout(GatewayError):
    """The inference service did not answer within the configured timeout."""


class UpstreamError(GatewayError):
    """The inference service answered with an error or an unreadable body."""

    def __init__(self, message: str, status_code: int = 0, retryable: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class CircuitOpen(GatewayError):
    """The circuit breaker refused the call."""


class StorageError(GatewayError):
    """The durable store rejected a write or delete."""
