"""Storage module - document storage interface and the durable session store."""

from .interface import StorageInterface
from .local_storage import LocalStorage
from .session_storage import SessionRepository

__all__ = ['StorageInterface', 'LocalStorage', 'SessionRepository']
