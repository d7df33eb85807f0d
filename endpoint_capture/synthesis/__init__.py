"""OpenAPI document synthesis from captured traffic.

Builds documents incrementally from capture records:
- Schemas inferred from observed payloads
- One operation per method and normalized path
- Change detection to skip rewriting unchanged endpoints
- Named collections with backups, versions and merges
"""

from .collection_manager import AssignmentResult, CollectionManager
from .document_builder import BuilderOptions, DocumentBuilder
from .schema_builder import SchemaBuilder, build_schema
from .spec_store import SpecStore, calculate_endpoint_hash, normalize_path

__all__ = [
    "AssignmentResult",
    "BuilderOptions",
    "CollectionManager",
    "DocumentBuilder",
    "SchemaBuilder",
    "SpecStore",
    "build_schema",
    "calculate_endpoint_hash",
    "normalize_path",
]
