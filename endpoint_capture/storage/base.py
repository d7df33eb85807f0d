"""Storage adapter contract.

Every backend exposes the same asynchronous, file-like operations on paths
relative to its own root. Backends raise StorageNotFoundError for missing
objects and StorageError for any other failure.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any


class StorageError(Exception):
    """A storage backend operation failed."""


class StorageNotFoundError(StorageError):
    """The requested file or object does not exist."""


class StorageConfigError(StorageError):
    """The storage configuration is invalid or names an unsupported backend."""


@dataclass
class FileMetadata:
    """Metadata for a stored file."""

    size: int
    last_modified: datetime
    is_file: bool = True
    is_directory: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "size": self.size,
            "last_modified": self.last_modified.isoformat(),
            "is_file": self.is_file,
            "is_directory": self.is_directory,
        }


class BaseStorage(ABC):
    """Abstract base class for storage backends."""

    storage_type = "base"

    def __init__(self, options: dict[str, Any] | None = None) -> None:
        self.options = dict(options or {})

    async def initialize(self) -> None:
        """Prepare the backend for use."""

    @abstractmethod
    async def exists(self, path: str) -> bool:
        """Return True if a file exists at path."""

    @abstractmethod
    async def read_file(self, path: str) -> str:
        """Return the text content of a file."""

    @abstractmethod
    async def write_file(self, path: str, content: str) -> None:
        """Write text content, creating parent directories as needed."""

    @abstractmethod
    async def delete_file(self, path: str) -> None:
        """Delete a file."""

    @abstractmethod
    async def list_files(self, dir_path: str = "") -> list[str]:
        """List entries directly under dir_path, as paths relative to the root."""

    @abstractmethod
    async def create_directory(self, path: str) -> None:
        """Create a directory (a no-op for backends without directories)."""

    @abstractmethod
    async def copy_file(self, source_path: str, destination_path: str) -> None:
        """Copy a file within the backend."""

    @abstractmethod
    async def get_file_metadata(self, path: str) -> FileMetadata:
        """Return size and modification time of a file."""

    def get_type(self) -> str:
        """Storage type identifier."""
        return self.storage_type

    async def cleanup(self) -> None:
        """Release backend resources."""
