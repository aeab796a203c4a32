"""
Storage Interface - Abstract base class for the document storage layer.
The session repository only talks to this contract, so the local filesystem
implementation can be swapped for an object store or a document database.
"""

from abc import ABC, abstractmethod
from typing import Optional, List


class StorageInterface(ABC):
    """
    Abstract storage interface over path-addressed documents.
    """

    @abstractmethod
    async def save(self, path: str, content: bytes | str) -> bool:
        """
        Save content to the specified path, replacing any previous content.

        Args:
            path: Relative path where content should be saved (e.g., "sessions/session_abc.json")
            content: Content to save (bytes or str)

        Returns:
            bool: True if save was successful, False otherwise
        """
        pass

    @abstractmethod
    async def load(self, path: str) -> Optional[bytes]:
        """
        Load content from the specified path.

        Args:
            path: Relative path to load from

        Returns:
            Optional[bytes]: File content as bytes, or None if file doesn't exist
        """
        pass

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """
        Check if a document exists at the specified path.

        Args:
            path: Relative path to check

        Returns:
            bool: True if the document exists, False otherwise
        """
        pass

    @abstractmethod
    async def delete(self, path: str) -> bool:
        """
        Delete the document at the specified path.

        Args:
            path: Relative path to delete

        Returns:
            bool: True if a document was deleted, False otherwise
        """
        pass

    @abstractmethod
    async def list(self, path: str, pattern: Optional[str] = None) -> List[str]:
        """
        List documents in the specified directory.

        Args:
            path: Directory path to list
            pattern: Optional glob pattern to filter files (e.g., "*.json")

        Returns:
            List[str]: Sorted relative paths
        """
        pass
