"""Incremental OpenAPI document store.

Owns one document and its change-detection hashes. Every captured call is
normalized, fingerprinted and merged into ``paths``; the document is then
persisted through a storage backend (or the local filesystem when none is
configured).
"""

import asyncio
import copy
import hashlib
import json
import logging
import re
from dataclasses import replace
from pathlib import Path
from typing import Any

import yaml

from ..config import SpecOptions
from ..models import CaptureRecord
from ..storage.base import BaseStorage, StorageNotFoundError
from ..utils.formatting import filename_timestamp
from .document_builder import BuilderOptions, DocumentBuilder, first_path_segment

logger = logging.getLogger(__name__)

OPENAPI_VERSION = "3.0.0"

COMPONENT_TYPES = (
    "schemas",
    "responses",
    "parameters",
    "examples",
    "requestBodies",
    "headers",
    "securitySchemes",
)

# Timing fields change on every call and never mark an endpoint as changed
HASH_EXCLUDED_RESPONSE_FIELDS = ("timestamp", "end_time", "duration", "duration_formatted")

# Info extension recording the collection a document belongs to
COLLECTION_NAME_KEY = "x-collection-name"

_NUMERIC_SEGMENT = re.compile(r"^\d+$")


def sanitize_name(name: str) -> str:
    """Make a document or collection name safe for use as a file name."""
    return re.sub(r"[^a-zA-Z0-9\-_]", "_", name)


def normalize_path(path: str) -> str:
    """Collapse numeric path segments into ``{id}`` placeholders.

    A single trailing slash is stripped first, so ``/users/42/`` and
    ``/users/7`` both become ``/users/{id}``.
    """
    if path.endswith("/"):
        path = path[:-1]
    segments = path.split("/")
    return "/".join(
        "{id}" if index > 0 and _NUMERIC_SEGMENT.match(segment) else segment
        for index, segment in enumerate(segments)
    )


def calculate_endpoint_hash(record: CaptureRecord) -> str:
    """Content fingerprint of a normalized capture record."""
    response = record.response.to_dict()
    for key in HASH_EXCLUDED_RESPONSE_FIELDS:
        response.pop(key, None)

    hash_data = {
        "method": record.request.method,
        "path": record.request.path,
        "headers": record.request.headers,
        "body": record.request.body,
        "response": response,
    }
    encoded = json.dumps(hash_data, sort_keys=True, default=str).encode("utf-8")
    return hashlib.md5(encoded).hexdigest()  # noqa: S324


def serialize_spec(spec: dict[str, Any]) -> str:
    """Serialize a document to its canonical JSON text."""
    return json.dumps(spec, indent=2, ensure_ascii=False, default=str) + "\n"


class SpecStore:
    """Owns one OpenAPI document and its persistence.

    Args:
        options: Document options (title, modes, builder flags, output_dir)
        storage: Backend to persist through; None writes to output_dir directly
        storage_dir: Directory inside the backend holding this document
    """

    def __init__(
        self,
        options: SpecOptions | dict | None = None,
        storage: BaseStorage | None = None,
        storage_dir: str = "",
    ) -> None:
        self.options = SpecOptions.build(options)
        self.storage = storage
        self.storage_dir = storage_dir
        self.builder = DocumentBuilder(
            BuilderOptions(
                include_examples=self.options.include_examples,
                include_schemas=self.options.include_schemas,
                group_by_path=self.options.group_by_path,
            ),
        )
        self.spec = self.create_base_spec()
        self.endpoint_hashes: dict[str, str] = {}
        self.metadata: dict[str, Any] = {}
        self._save_lock = asyncio.Lock()

    @property
    def name(self) -> str:
        return self.options.collection_name or self.options.title

    @property
    def base_name(self) -> str:
        return sanitize_name(self.name)

    def create_base_spec(self) -> dict[str, Any]:
        """Create an empty OpenAPI document from the current options."""
        info: dict[str, Any] = {
            "title": self.options.title,
            "description": self.options.description,
            "version": self.options.version,
        }

        contact = {
            key: value
            for key, value in (
                ("name", self.options.contact_name),
                ("email", self.options.contact_email),
                ("url", self.options.contact_url),
            )
            if value
        }
        if contact:
            info["contact"] = contact

        license_info = {
            key: value
            for key, value in (("name", self.options.license_name), ("url", self.options.license_url))
            if value
        }
        if license_info:
            info["license"] = license_info
        if self.options.collection_name:
            info[COLLECTION_NAME_KEY] = self.options.collection_name

        return {
            "openapi": OPENAPI_VERSION,
            "info": info,
            "servers": [{"url": self.options.base_url, "description": "Default server"}],
            "paths": {},
            "components": {component: {} for component in COMPONENT_TYPES},
            "tags": [],
            "security": [],
        }

    def get_operation(self, method: str, path: str) -> dict[str, Any] | None:
        """Return the stored operation for a method and normalized path."""
        return self.spec["paths"].get(path, {}).get(method.lower())

    async def add_operation(
        self,
        record: CaptureRecord,
        options: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Merge a captured call into the document.

        Identical traffic for an endpoint (same hash as last time) returns the
        stored operation without rebuilding or saving it.

        Args:
            record: Captured call with its raw request path
            options: Per-call overrides of include_examples, include_schemas
                and group_by_path

        Returns:
            The operation stored for the call's method and normalized path

        Raises:
            StorageError: If auto-save is enabled and the write fails
        """
        raw_path = record.request.path
        normalized_path = normalize_path(raw_path)
        method = record.request.method.lower()
        record = replace(
            record,
            request=replace(record.request, path=normalized_path, original_path=raw_path),
        )

        endpoint_key = f"{record.request.method}:{normalized_path}"
        current_hash = calculate_endpoint_hash(record)

        if self.options.detect_changes and self.endpoint_hashes.get(endpoint_key) == current_hash:
            existing = self.get_operation(method, normalized_path)
            if existing is not None:
                logger.debug("No changes detected for %s, skipping update", endpoint_key)
                return existing

        self.endpoint_hashes[endpoint_key] = current_hash

        builder = self._builder_for(options)
        operation = builder.build_operation(record)
        self.spec["paths"].setdefault(normalized_path, {})[method] = operation

        if builder.options.group_by_path:
            self.add_tag_for_path(normalized_path)

        if self.options.auto_save:
            await self.save_spec()

        return operation

    def add_tag_for_path(self, path: str) -> None:
        """Ensure a tag exists for the first segment of path."""
        tag_name = first_path_segment(path)
        if tag_name is None:
            return
        if not any(tag.get("name") == tag_name for tag in self.spec["tags"]):
            self.spec["tags"].append({"name": tag_name, "description": f"Operations for {tag_name}"})

    def get_output_name(self, filename: str | None = None) -> str:
        """File name the next save writes to."""
        if filename:
            return filename
        if self.options.single_file_mode:
            return f"{self.base_name}.json"
        return f"{self.base_name}_{filename_timestamp()}.json"

    def get_latest_name(self) -> str:
        """File name the load protocol looks for."""
        if self.options.single_file_mode:
            return f"{self.base_name}.json"
        return f"{self.base_name}_latest.json"

    def get_output_path(self, filename: str | None = None) -> Path:
        """Filesystem path used when no storage backend is configured."""
        return Path(self.options.output_dir) / self.get_output_name(filename)

    async def save_spec(self, filename: str | None = None) -> str:
        """Persist the whole document.

        Multi-file mode writes a timestamped snapshot and refreshes the
        ``_latest.json`` copy next to it.

        Returns:
            Storage key or filesystem path of the written document

        Raises:
            StorageError: If the storage backend fails to write
            OSError: If the direct filesystem write fails
        """
        # Saves run one at a time and serialize the document once they hold the lock
        async with self._save_lock:
            content = serialize_spec(self.spec)
            output_name = self.get_output_name(filename)
            names = [output_name]
            if filename is None and not self.options.single_file_mode:
                names.append(self.get_latest_name())

            written = ""
            for name in names:
                written = await self._write(name, content)
            if len(names) > 1:
                written = self._location(output_name)

        logger.info("OpenAPI spec saved to %s (%d bytes)", written, len(content))
        return written

    async def _write(self, name: str, content: str) -> str:
        if self.storage is not None:
            key = self._storage_key(name)
            await self.storage.write_file(key, content)
            return key

        output_path = Path(self.options.output_dir) / name
        await asyncio.to_thread(_write_text, output_path, content)
        return str(output_path)

    def _location(self, name: str) -> str:
        if self.storage is not None:
            return self._storage_key(name)
        return str(Path(self.options.output_dir) / name)

    def _storage_key(self, name: str) -> str:
        return f"{self.storage_dir}/{name}" if self.storage_dir else name

    async def load_spec(self, path: str | None = None) -> bool:
        """Shallow-merge a persisted document over the in-memory one.

        Loading is best-effort: a missing or unparseable file leaves the
        current document untouched.

        Args:
            path: Storage key (or filesystem path without storage); defaults
                to the file the latest save wrote

        Returns:
            True if a persisted document was merged in
        """
        location = path or self._location(self.get_latest_name())
        try:
            if self.storage is not None:
                content = await self.storage.read_file(location)
            else:
                content = await asyncio.to_thread(Path(location).read_text, encoding="utf-8")
        except (StorageNotFoundError, FileNotFoundError):
            logger.debug("No persisted spec at %s", location)
            return False
        except Exception:
            logger.exception("Error loading OpenAPI spec from %s", location)
            return False

        try:
            data = json.loads(content)
        except ValueError as e:
            logger.warning("Ignoring malformed OpenAPI spec at %s: %s", location, e)
            return False

        if not isinstance(data, dict):
            logger.warning("Ignoring OpenAPI spec at %s: top level is not an object", location)
            return False

        self.spec = {**self.spec, **data}
        logger.info("OpenAPI spec loaded from %s", location)
        return True

    def export_spec(self, fmt: str = "json") -> str:
        """Export the document as ``json`` or ``yaml``; unknown formats give JSON."""
        if fmt.lower() in ("yaml", "yml"):
            # Round-trip through JSON so YAML only sees plain containers
            plain = json.loads(serialize_spec(self.spec))
            return yaml.safe_dump(plain, sort_keys=False, allow_unicode=True)
        return serialize_spec(self.spec)

    def get_stats(self) -> dict[str, Any]:
        """Counts of paths, operations, tags and schemas in the document."""
        paths = self.spec.get("paths", {})
        return {
            "total_paths": len(paths),
            "total_operations": sum(len(path_item) for path_item in paths.values()),
            "total_tags": len(self.spec.get("tags", [])),
            "total_schemas": len(self.spec.get("components", {}).get("schemas", {})),
            "version": self.spec.get("info", {}).get("version"),
            "title": self.spec.get("info", {}).get("title"),
        }

    def snapshot(self) -> dict[str, Any]:
        """Deep copy of the current document."""
        return copy.deepcopy(self.spec)

    def _builder_for(self, options: dict[str, Any] | None) -> DocumentBuilder:
        if not options:
            return self.builder
        overrides = {
            key: options[key]
            for key in ("include_examples", "include_schemas", "group_by_path")
            if key in options
        }
        if not overrides:
            return self.builder
        return DocumentBuilder(replace(self.builder.options, **overrides), self.builder.schema_builder)


def _write_text(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
