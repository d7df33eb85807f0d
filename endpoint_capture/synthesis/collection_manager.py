"""Named collections of OpenAPI documents.

The manager routes each captured call to one or more collections according to
assignment rules, and offers the operator-side actions on them: backups,
version snapshots, merges, exports and statistics.
"""

import asyncio
import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..config import CollectionRules, ManagerOptions
from ..models import CaptureRecord
from ..storage import StorageFactory
from ..storage.base import BaseStorage, StorageError
from ..utils.formatting import filename_timestamp, iso_now
from .document_builder import first_path_segment
from .spec_store import COLLECTION_NAME_KEY, SpecStore, sanitize_name, serialize_spec

logger = logging.getLogger(__name__)

BACKUP_DIR = "backups"
VERSIONS_DIR = "versions"


@dataclass
class Assignment:
    """A target collection for one captured call."""

    collection_name: str
    options: dict[str, Any]


@dataclass
class AssignmentResult:
    """Outcome of writing one captured call to one collection."""

    collection_name: str
    success: bool
    operation: dict[str, Any] | None = None
    error: str | None = None


def get_status_category(status_code: int) -> str:
    """Group an HTTP status code into a readable category."""
    if 200 <= status_code < 300:
        return "Success"
    if 300 <= status_code < 400:
        return "Redirect"
    if 400 <= status_code < 500:
        return "Client Error"
    if status_code >= 500:
        return "Server Error"
    return "Unknown"


def _coerce_assignment(item: Any) -> Assignment | None:
    if isinstance(item, Assignment):
        return item
    if isinstance(item, str):
        return Assignment(item, {})
    if isinstance(item, dict):
        name = item.get("collection_name") or item.get("collectionName")
        if name:
            return Assignment(str(name), dict(item.get("options") or {}))
    if isinstance(item, tuple) and len(item) == 2:
        return Assignment(str(item[0]), dict(item[1] or {}))
    logger.warning("Ignoring invalid custom collection assignment: %r", item)
    return None


class CollectionManager:
    """Registry of SpecStores keyed by collection name.

    Single-file mode keeps one ``<name>.json`` per collection at the storage
    root. Multi-file mode keeps each collection in its own directory with
    timestamped snapshots and a ``<name>_latest.json`` copy.
    """

    def __init__(
        self,
        options: ManagerOptions | dict | None = None,
        storage: BaseStorage | None = None,
    ) -> None:
        self.options = ManagerOptions.build(options)
        self.storage = storage or StorageFactory.from_config(self.options.storage, self.options.base_dir)
        self.collections: dict[str, SpecStore] = {}
        self._creation_locks: dict[str, asyncio.Lock] = {}
        self.backup_dir = BACKUP_DIR
        self.versions_dir = VERSIONS_DIR

    async def initialize(self) -> list[str]:
        """Create the storage layout and register persisted collections.

        Returns:
            Names of the collections found in storage
        """
        await self.storage.initialize()
        for directory in ("", self.backup_dir, self.versions_dir):
            await self.storage.create_directory(directory)
        return await self.load_existing_collections()

    async def load_existing_collections(self) -> list[str]:
        """Register every collection persisted in storage."""
        found: list[str] = []
        try:
            files = await self.storage.list_files("")
        except StorageError:
            logger.exception("Error listing existing collections")
            return found

        candidates: list[tuple[str, str]] = []
        if self.options.single_file_mode:
            for file in files:
                if "/" in file or not file.endswith(".json") or "_backup_" in file:
                    continue
                if file.startswith("all_collections_"):
                    continue
                candidates.append((file, Path(file).stem))
        else:
            for directory in files:
                if directory in (self.backup_dir, self.versions_dir) or directory.endswith(".json"):
                    continue
                latest = f"{directory}/{Path(directory).name}_latest.json"
                if await self.storage.exists(latest):
                    candidates.append((latest, Path(directory).name))

        for key, stem in candidates:
            name = await self._persisted_name(key, stem)
            logger.info("Loading existing collection: %s", name)
            await self.get_collection(name)
            found.append(name)
        return found

    async def _persisted_name(self, key: str, stem: str) -> str:
        """Collection name recorded in a persisted document.

        Documents written without the name fall back to the file stem with
        underscores read as spaces.
        """
        fallback = stem.replace("_", " ")
        try:
            data = json.loads(await self.storage.read_file(key))
        except (StorageError, ValueError):
            return fallback
        if not isinstance(data, dict) or not isinstance(data.get("info"), dict):
            return fallback
        name = data["info"].get(COLLECTION_NAME_KEY)
        if isinstance(name, str) and name and sanitize_name(name) == stem:
            return name
        return fallback

    def _collection_dir(self, name: str) -> str:
        return "" if self.options.single_file_mode else sanitize_name(name)

    async def get_collection(self, name: str, options: dict[str, Any] | None = None) -> SpecStore:
        """Return the named collection, creating and loading it on first use.

        Options only apply when the collection is first created. Concurrent
        first calls for one name wait on the same load and share one store.
        """
        store = self.collections.get(name)
        if store is not None:
            return store

        lock = self._creation_locks.setdefault(name, asyncio.Lock())
        async with lock:
            store = self.collections.get(name)
            if store is not None:
                return store

            spec_options = self.options.spec_options(name, options)
            storage_dir = self._collection_dir(name)
            spec_options.output_dir = str(Path(self.options.base_dir) / storage_dir)

            store = SpecStore(spec_options, storage=self.storage, storage_dir=storage_dir)
            await store.load_spec()
            self.collections[name] = store
        self._creation_locks.pop(name, None)
        return store

    async def add_endpoint(
        self,
        collection_name: str,
        record: CaptureRecord,
        options: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Add a captured call to one collection.

        With ``auto_backup`` in multi-file mode, the collection's document is
        backed up before it is modified.

        Raises:
            StorageError: If persisting the collection fails
        """
        store = await self.get_collection(collection_name, options)

        if self.options.auto_backup and not self.options.single_file_mode and store.spec["paths"]:
            try:
                await self.create_backup(collection_name)
            except StorageError:
                logger.exception("Error backing up collection %s", collection_name)

        operation = await store.add_operation(record, options)

        store.metadata["last_endpoint_added"] = {
            "method": record.request.method,
            "path": record.request.path,
            "timestamp": record.metadata.get("captured_at"),
        }
        return operation

    def determine_collection_assignments(
        self,
        record: CaptureRecord,
        rules: CollectionRules | dict | None = None,
    ) -> list[Assignment]:
        """Evaluate every assignment rule against a captured call."""
        rules = CollectionRules.build(rules)
        request = record.request
        assignments = [Assignment(rules.default_collection or "Main API", {})]

        version = record.metadata.get("version")
        if rules.version_based and version:
            assignments.append(Assignment(f"API v{version}", {"version": str(version)}))

        if rules.method_based:
            assignments.append(Assignment(f"{request.method.upper()} Endpoints", {}))

        if rules.path_based:
            segment = first_path_segment(request.path)
            if segment:
                assignments.append(Assignment(f"{segment} API", {}))

        if rules.status_based:
            category = get_status_category(record.response.status_code)
            assignments.append(Assignment(f"{category} Responses", {}))

        if rules.environment_based and rules.environment:
            assignments.append(Assignment(f"{rules.environment} Environment", {}))

        if rules.custom is not None:
            custom = rules.custom(record)
            if isinstance(custom, (str, dict, Assignment)):
                custom = [custom]
            for item in custom or []:
                assignment = _coerce_assignment(item)
                if assignment is not None:
                    assignments.append(assignment)

        return assignments

    async def add_endpoint_with_rules(
        self,
        record: CaptureRecord,
        rules: CollectionRules | dict | None = None,
    ) -> list[AssignmentResult]:
        """Add a captured call to every collection its rules select.

        Failures are reported per collection and never stop the other writes.
        """
        rules = CollectionRules.build(rules if rules is not None else self.options.collection_rules)
        results: list[AssignmentResult] = []

        try:
            assignments = self.determine_collection_assignments(record, rules)
        except Exception as e:
            logger.exception("Error evaluating collection rules")
            return [AssignmentResult(rules.default_collection, success=False, error=str(e))]

        for assignment in assignments:
            try:
                operation = await self.add_endpoint(assignment.collection_name, record, assignment.options)
                results.append(
                    AssignmentResult(assignment.collection_name, success=True, operation=operation),
                )
            except Exception as e:
                logger.exception("Error adding endpoint to collection %s", assignment.collection_name)
                results.append(AssignmentResult(assignment.collection_name, success=False, error=str(e)))

        return results

    async def create_backup(self, collection_name: str) -> str | None:
        """Write a timestamped copy of a collection to the backups directory.

        Returns:
            Storage key of the backup, or None if the collection is unknown
        """
        store = self.collections.get(collection_name)
        if store is None:
            return None

        backup_key = f"{self.backup_dir}/{sanitize_name(collection_name)}_backup_{filename_timestamp()}.json"
        await self.storage.write_file(backup_key, store.export_spec("json"))
        logger.info("Backup created: %s", backup_key)

        await self.clean_old_backups(collection_name)
        return backup_key

    async def clean_old_backups(self, collection_name: str) -> list[str]:
        """Delete the oldest backups of a collection beyond ``max_backups``."""
        prefix = f"{sanitize_name(collection_name)}_backup_"
        deleted: list[str] = []
        try:
            files = await self.storage.list_files(self.backup_dir)
            backups = []
            for file in files:
                if Path(file).name.startswith(prefix):
                    metadata = await self.storage.get_file_metadata(file)
                    backups.append((metadata.last_modified, file))
            backups.sort(reverse=True)

            for _, file in backups[self.options.max_backups :]:
                await self.storage.delete_file(file)
                deleted.append(file)
                logger.info("Deleted old backup: %s", file)
        except StorageError:
            logger.exception("Error cleaning old backups for %s", collection_name)
        return deleted

    async def create_version(self, collection_name: str, version: str) -> str:
        """Write a versioned snapshot of a collection.

        The snapshot's info block carries the version and its creation time;
        the live document is left unchanged.

        Returns:
            Storage key of the snapshot

        Raises:
            KeyError: If the collection is not registered
        """
        store = self.collections.get(collection_name)
        if store is None:
            raise KeyError(f"Collection {collection_name} not found")

        version_data = store.snapshot()
        version_data["info"] = {
            **version_data.get("info", {}),
            "version": version,
            "versionCreatedAt": iso_now(),
        }

        version_key = f"{self.versions_dir}/{sanitize_name(collection_name)}_v{version}.json"
        await self.storage.write_file(version_key, serialize_spec(version_data))
        logger.info("Version %s created: %s", version, version_key)
        return version_key

    async def merge_collections(
        self,
        collection_names: Iterable[str],
        target_name: str,
        options: dict[str, Any] | None = None,
    ) -> SpecStore:
        """Merge paths, components and tags of several collections into a new one.

        Args:
            collection_names: Registered collections to merge; unknown names
                are skipped
            target_name: Name of the merged collection
            options: ``prefix_with_collection_name`` prefixes paths with
                ``/<name>`` and tags with ``<name>-``; other keys are
                SpecOptions overrides for the merged document

        Returns:
            The merged collection, persisted and registered under target_name
        """
        options = dict(options or {})
        prefix = bool(options.pop("prefix_with_collection_name", False))

        spec_options = self.options.spec_options(target_name, options)
        storage_dir = self._collection_dir(target_name)
        spec_options.output_dir = str(Path(self.options.base_dir) / storage_dir)
        merged = SpecStore(spec_options, storage=self.storage, storage_dir=storage_dir)

        for name in collection_names:
            store = self.collections.get(name)
            if store is None:
                logger.warning("Skipping unknown collection in merge: %s", name)
                continue

            source = store.snapshot()
            merged_paths = merged.spec["paths"]
            for path, path_item in source.get("paths", {}).items():
                merged_path = f"/{name}{path}" if prefix else path
                merged_paths[merged_path] = path_item

            merged_components = merged.spec["components"]
            for component_type, entries in source.get("components", {}).items():
                merged_components.setdefault(component_type, {}).update(entries or {})

            merged_tags = merged.spec["tags"]
            for tag in source.get("tags", []):
                tag_name = f"{name}-{tag.get('name')}" if prefix else tag.get("name")
                if not any(existing.get("name") == tag_name for existing in merged_tags):
                    merged_tags.append({**tag, "name": tag_name})

        await merged.save_spec()
        self.collections[target_name] = merged
        logger.info("Merged collections into: %s", target_name)
        return merged

    async def export_all_collections(self, fmt: str = "json", save_to_file: bool = False) -> dict[str, Any]:
        """Export every collection with its stats and location."""
        exports = {
            name: {
                "data": store.export_spec(fmt),
                "stats": store.get_stats(),
                "path": store.options.output_dir,
            }
            for name, store in self.collections.items()
        }

        if save_to_file:
            export_key = f"all_collections_{filename_timestamp()}.json"
            content = json.dumps(exports, indent=2, ensure_ascii=False) + "\n"
            await self.storage.write_file(export_key, content)
            logger.info("All collections exported to: %s", export_key)

        return exports

    def get_all_stats(self) -> dict[str, Any]:
        """Aggregate statistics across every registered collection."""
        stats: dict[str, Any] = {
            "total_collections": len(self.collections),
            "total_operations": 0,
            "total_paths": 0,
            "collections": {},
        }
        for name, store in self.collections.items():
            collection_stats = store.get_stats()
            stats["total_operations"] += collection_stats["total_operations"]
            stats["total_paths"] += collection_stats["total_paths"]
            stats["collections"][name] = collection_stats
        return stats


__all__ = [
    "Assignment",
    "AssignmentResult",
    "CollectionManager",
    "get_status_category",
]
