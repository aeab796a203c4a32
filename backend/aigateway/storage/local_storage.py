"""
Local Filesystem Storage Implementation.
Stores every document as a file under a base directory.
"""

import logging
import uuid
import aiofiles
import aiofiles.os
from pathlib import Path
from typing import Optional, List
from .interface import StorageInterface

logger = logging.getLogger(__name__)


class LocalStorage(StorageInterface):
    """
    Local filesystem storage implementation.
    Writes go to a temporary sibling file first and are then renamed into
    place, so readers never observe a half-written document.
    """

    def __init__(self, base_dir: str = "./data"):
        """
        Initialize local storage with a base directory.

        Args:
            base_dir: Base directory for all stored files
        """
        self.base_dir = Path(base_dir).resolve()
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _get_full_path(self, path: str) -> Path:
        """Convert relative path to full absolute path within base directory."""
        full_path = (self.base_dir / path).resolve()

        # Security check: ensure path is within base_dir
        if full_path != self.base_dir and self.base_dir not in full_path.parents:
            raise ValueError(f"Invalid path: {path} - path traversal detected")

        return full_path

    async def save(self, path: str, content: bytes | str) -> bool:
        """Save content to local filesystem."""
        try:
            full_path = self._get_full_path(path)
            full_path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = full_path.with_name(f".{full_path.name}.{uuid.uuid4().hex}.tmp")

            if isinstance(content, str):
                async with aiofiles.open(tmp_path, 'w', encoding='utf-8') as f:
                    await f.write(content)
            else:
                async with aiofiles.open(tmp_path, 'wb') as f:
                    await f.write(content)

            await aiofiles.os.replace(tmp_path, full_path)
            return True
        except Exception as e:
            logger.error(f"Error saving file {path}: {e}")
            return False

    async def load(self, path: str) -> Optional[bytes]:
        """Load content from local filesystem."""
        try:
            full_path = self._get_full_path(path)
            if not full_path.exists():
                return None

            async with aiofiles.open(full_path, 'rb') as f:
                return await f.read()
        except FileNotFoundError:
            # Deleted between the existence check and the open
            return None
        except Exception as e:
            logger.error(f"Error loading file {path}: {e}")
            return None

    async def exists(self, path: str) -> bool:
        """Check if file exists."""
        try:
            return self._get_full_path(path).exists()
        except ValueError:
            return False

    async def delete(self, path: str) -> bool:
        """Delete file from local filesystem."""
        try:
            full_path = self._get_full_path(path)
            if full_path.exists():
                await aiofiles.os.remove(full_path)
                return True
            return False
        except FileNotFoundError:
            return False
        except Exception as e:
            logger.error(f"Error deleting file {path}: {e}")
            return False

    async def list(self, path: str, pattern: Optional[str] = None) -> List[str]:
        """List files in directory."""
        try:
            full_path = self._get_full_path(path)
            if not full_path.exists():
                return []

            relative_paths = []
            for file_path in full_path.glob(pattern or "*"):
                # Skip in-flight temporary files
                if not file_path.is_file() or file_path.name.startswith('.'):
                    continue
                relative_paths.append(file_path.relative_to(self.base_dir).as_posix())

            return sorted(relative_paths)
        except Exception as e:
            logger.error(f"Error listing files in {path}: {e}")
            return []
