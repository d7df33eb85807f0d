"""Pluggable storage backends for persisted specifications."""

from typing import Any
from urllib.parse import urlsplit

from .base import BaseStorage, FileMetadata, StorageConfigError, StorageError, StorageNotFoundError
from .local import LocalStorage
from .memory import MemoryStorage

# Remote object stores are provided by external adapters implementing BaseStorage
REMOTE_TYPES = {
    "s3": "s3",
    "aws": "s3",
    "azure": "azure",
    "azureblob": "azure",
    "gcs": "gcs",
    "gcp": "gcs",
    "google": "gcs",
}


class StorageFactory:
    """Create storage backends from a type name or a URL."""

    BACKENDS: dict[str, type[BaseStorage]] = {
        "local": LocalStorage,
        "filesystem": LocalStorage,
        "fs": LocalStorage,
        "memory": MemoryStorage,
    }

    @classmethod
    def create(cls, storage_type: str, options: dict[str, Any] | None = None) -> BaseStorage:
        """Create a backend by type name."""
        key = storage_type.lower()
        backend = cls.BACKENDS.get(key)
        if backend is None:
            raise StorageConfigError(cls._unsupported_message(key))
        return backend(options or {})

    @classmethod
    def create_from_url(cls, url: str, options: dict[str, Any] | None = None) -> BaseStorage:
        """Create a backend from a URL such as ``file:///var/specs`` or ``memory://``."""
        parts = urlsplit(url)
        scheme = parts.scheme.lower()
        if scheme in ("file", "local"):
            base_dir = f"{parts.netloc}{parts.path}" if parts.netloc else parts.path
            return LocalStorage({"base_dir": base_dir, **(options or {})})
        if scheme == "memory":
            return MemoryStorage({"name": parts.netloc, **(options or {})})
        if scheme in ("s3", "gs", "azure", "azblob"):
            raise StorageConfigError(cls._unsupported_message(scheme))
        raise StorageConfigError(f"Unsupported storage URL scheme: {scheme or url}")

    @classmethod
    def from_config(cls, config: dict[str, Any] | str | None, base_dir: str) -> BaseStorage:
        """Create a backend from manager configuration.

        Local storage without an explicit ``base_dir`` is rooted at base_dir.
        """
        if isinstance(config, str):
            return cls.create_from_url(config)

        config = config or {"type": "local"}
        storage_type = str(config.get("type", "local"))
        options = dict(config.get("options") or {})
        if cls.BACKENDS.get(storage_type.lower()) is LocalStorage:
            options.setdefault("base_dir", base_dir)
        return cls.create(storage_type, options)

    @classmethod
    def get_supported_types(cls) -> list[str]:
        """Backend type names this build can create."""
        return ["local", "memory"]

    @classmethod
    def validate_config(cls, storage_type: str, options: dict[str, Any] | None = None) -> dict[str, Any]:
        """Validate a storage configuration without creating the backend."""
        options = options or {}
        errors: list[str] = []
        backend = cls.BACKENDS.get(storage_type.lower())
        if backend is None:
            errors.append(cls._unsupported_message(storage_type.lower()))
        elif backend is LocalStorage and not options.get("base_dir"):
            errors.append("base_dir is required for local storage")
        return {"valid": not errors, "errors": errors}

    @classmethod
    def _unsupported_message(cls, storage_type: str) -> str:
        supported = ", ".join(cls.get_supported_types())
        if storage_type in REMOTE_TYPES or storage_type in ("gs", "azblob"):
            return (
                f"Storage type '{storage_type}' requires an external adapter implementing "
                f"BaseStorage. Built-in types: {supported}"
            )
        return f"Unsupported storage type: {storage_type}. Supported types: {supported}"


__all__ = [
    "BaseStorage",
    "FileMetadata",
    "LocalStorage",
    "MemoryStorage",
    "StorageConfigError",
    "StorageError",
    "StorageFactory",
    "StorageNotFoundError",
]
