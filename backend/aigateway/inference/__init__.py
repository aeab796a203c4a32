"""Upstream inference service access."""

from .circuit_breaker import CircuitBreaker, CircuitState
from .client import InferenceClient
from .retry import execute_with_retry

__all__ = ['CircuitBreaker', 'CircuitState', 'InferenceClient', 'execute_with_retry']
