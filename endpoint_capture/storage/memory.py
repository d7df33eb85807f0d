"""In-process object storage backend.

Behaves like a flat object store: keys are plain strings, directories are
implicit, and listing a prefix reports its direct children.
"""

from datetime import datetime
from typing import Any

from .base import BaseStorage, FileMetadata, StorageNotFoundError


class MemoryStorage(BaseStorage):
    """Keep objects in a dict keyed by normalized path."""

    storage_type = "memory"

    def __init__(self, options: dict[str, Any] | None = None) -> None:
        super().__init__(options)
        self.objects: dict[str, tuple[str, datetime]] = {}
        self.write_count = 0

    @staticmethod
    def _key(path: str) -> str:
        return "/".join(part for part in path.replace("\\", "/").split("/") if part not in ("", "."))

    async def exists(self, path: str) -> bool:
        return self._key(path) in self.objects

    async def read_file(self, path: str) -> str:
        key = self._key(path)
        if key not in self.objects:
            raise StorageNotFoundError(f"Object not found: {key}")
        return self.objects[key][0]

    async def write_file(self, path: str, content: str) -> None:
        self.objects[self._key(path)] = (content, datetime.now())
        self.write_count += 1

    async def delete_file(self, path: str) -> None:
        key = self._key(path)
        if key not in self.objects:
            raise StorageNotFoundError(f"Object not found: {key}")
        del self.objects[key]

    async def list_files(self, dir_path: str = "") -> list[str]:
        prefix = self._key(dir_path)
        prefix = f"{prefix}/" if prefix else ""
        children = set()
        for key in self.objects:
            if key.startswith(prefix):
                child = key[len(prefix) :].split("/", 1)[0]
                children.add(f"{prefix}{child}")
        return sorted(children)

    async def create_directory(self, path: str) -> None:
        return None

    async def copy_file(self, source_path: str, destination_path: str) -> None:
        content = await self.read_file(source_path)
        await self.write_file(destination_path, content)

    async def get_file_metadata(self, path: str) -> FileMetadata:
        key = self._key(path)
        if key not in self.objects:
            raise StorageNotFoundError(f"Object not found: {key}")
        content, modified = self.objects[key]
        return FileMetadata(size=len(content.encode("utf-8")), last_modified=modified)
