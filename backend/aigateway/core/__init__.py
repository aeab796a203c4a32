"""Core module - session management, context windows and the chat pipeline."""

from .exceptions import (
    GatewayError, SessionNotFound, CacheUnavailable, UpstreamTimeout,
    UpstreamError, CircuitOpen, StorageError
)

# Services are imported from their modules (core.session_manager,
# core.chat_service, ...); cache and storage import core.exceptions.

__all__ = [
    'GatewayError', 'SessionNotFound', 'CacheUnavailable', 'UpstreamTimeout',
    'UpstreamError', 'CircuitOpen', 'StorageError'
]
