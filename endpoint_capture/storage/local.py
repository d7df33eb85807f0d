"""Local filesystem storage backend."""

import asyncio
import contextlib
import os
import shutil
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any

from .base import BaseStorage, FileMetadata, StorageError, StorageNotFoundError


class LocalStorage(BaseStorage):
    """Store files under a base directory on the local filesystem.

    Blocking file I/O runs in a worker thread so the event loop serving
    requests is never blocked by a save.
    """

    storage_type = "local"

    def __init__(self, options: dict[str, Any] | None = None) -> None:
        super().__init__(options)
        self.base_dir = Path(self.options.get("base_dir") or "./openapi-specs")

    def get_full_path(self, path: str) -> Path:
        """Resolve a storage-relative path to a filesystem path."""
        candidate = Path(path)
        if candidate.is_absolute():
            return candidate
        return self.base_dir / candidate

    async def initialize(self) -> None:
        await self.create_directory("")

    async def exists(self, path: str) -> bool:
        return await asyncio.to_thread(self.get_full_path(path).exists)

    async def read_file(self, path: str) -> str:
        full_path = self.get_full_path(path)
        try:
            return await asyncio.to_thread(full_path.read_text, encoding="utf-8")
        except FileNotFoundError as e:
            raise StorageNotFoundError(f"File not found: {full_path}") from e
        except OSError as e:
            raise StorageError(f"Failed to read {full_path}: {e}") from e

    async def write_file(self, path: str, content: str) -> None:
        full_path = self.get_full_path(path)
        await asyncio.to_thread(self._write, full_path, content)

    @staticmethod
    def _write(full_path: Path, content: str) -> None:
        try:
            full_path.parent.mkdir(parents=True, exist_ok=True)
            # Unique sibling temp file per write, moved into place with an atomic replace
            fd, tmp_name = tempfile.mkstemp(prefix=f".{full_path.name}.", suffix=".tmp", dir=full_path.parent)
        except OSError as e:
            raise StorageError(f"Failed to write {full_path}: {e}") from e

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
            os.replace(tmp_name, full_path)
        except OSError as e:
            with contextlib.suppress(OSError):
                os.unlink(tmp_name)
            raise StorageError(f"Failed to write {full_path}: {e}") from e

    async def delete_file(self, path: str) -> None:
        full_path = self.get_full_path(path)
        try:
            await asyncio.to_thread(full_path.unlink)
        except FileNotFoundError as e:
            raise StorageNotFoundError(f"File not found: {full_path}") from e
        except OSError as e:
            raise StorageError(f"Failed to delete {full_path}: {e}") from e

    async def list_files(self, dir_path: str = "") -> list[str]:
        full_path = self.get_full_path(dir_path)
        if not full_path.is_dir():
            return []
        entries = await asyncio.to_thread(lambda: sorted(p.name for p in full_path.iterdir()))
        prefix = Path(dir_path)
        return [str(prefix / name) if dir_path else name for name in entries]

    async def create_directory(self, path: str) -> None:
        full_path = self.get_full_path(path)
        try:
            await asyncio.to_thread(full_path.mkdir, parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Failed to create directory {full_path}: {e}") from e

    async def copy_file(self, source_path: str, destination_path: str) -> None:
        source = self.get_full_path(source_path)
        destination = self.get_full_path(destination_path)
        if not await asyncio.to_thread(source.exists):
            raise StorageNotFoundError(f"File not found: {source}")
        try:
            await asyncio.to_thread(destination.parent.mkdir, parents=True, exist_ok=True)
            await asyncio.to_thread(shutil.copyfile, source, destination)
        except OSError as e:
            raise StorageError(f"Failed to copy {source} to {destination}: {e}") from e

    async def get_file_metadata(self, path: str) -> FileMetadata:
        full_path = self.get_full_path(path)
        try:
            stats = await asyncio.to_thread(full_path.stat)
        except FileNotFoundError as e:
            raise StorageNotFoundError(f"File not found: {full_path}") from e
        return FileMetadata(
            size=stats.st_size,
            last_modified=datetime.fromtimestamp(stats.st_mtime),
            is_file=full_path.is_file(),
            is_directory=full_path.is_dir(),
        )
