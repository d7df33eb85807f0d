"""Semantic type analysis of captured bodies.

Produces, for any JSON-compatible body:
- A types tree mirroring the body, with every leaf replaced by a type label
- A flat list of sensitive fields (path, field, type, actual value)
- A flag telling whether any sensitive field was found

Sensitive subtrees are not descended into; their entry in the types tree is
the type of the redaction marker, so redacted fields always read ``string``.
"""

import json
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Any, ClassVar
from urllib.parse import urlparse

from ..models import SensitiveField
from .redaction import DEFAULT_SENSITIVE_FIELDS, REDACTION_MARKER, is_sensitive_key


@dataclass
class BodyAnalysis:
    """Result of analyzing one body."""

    types: Any = None
    sensitive_fields: list[SensitiveField] = field(default_factory=list)

    @property
    def has_sensitive_data(self) -> bool:
        """True if at least one sensitive field was found."""
        return len(self.sensitive_fields) > 0


class TypeAnalyzer:
    """Classify body values into semantic type labels.

    String classification order (first match wins): email, url, date,
    uuid, json-string, string.
    """

    PATTERNS: ClassVar[dict[str, re.Pattern[str]]] = {
        "email": re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$"),
        "uuid": re.compile(
            r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
            re.IGNORECASE,
        ),
    }

    # Short strings such as "2024" parse as dates but are rarely meant as one
    MIN_DATE_LENGTH = 5

    def __init__(self, sensitive_fields: Iterable[str] = DEFAULT_SENSITIVE_FIELDS) -> None:
        """Initialize type analyzer.

        Args:
            sensitive_fields: Field-name substrings treated as sensitive
        """
        self.sensitive_fields = tuple(sensitive_fields)

    def analyze(self, body: Any) -> BodyAnalysis:
        """Analyze a body value.

        Args:
            body: Parsed request or response body

        Returns:
            BodyAnalysis with types tree and sensitive field descriptors
        """
        analysis = BodyAnalysis()
        analysis.types = self._analyze_node(body, [], analysis, set())
        return analysis

    def _analyze_node(
        self,
        value: Any,
        path: list[str],
        analysis: BodyAnalysis,
        visited: set[int],
    ) -> Any:
        if not isinstance(value, (dict, list)):
            return self.classify(value)
        # visited holds the containers on the current recursion path
        if id(value) in visited:
            return "object" if isinstance(value, dict) else "array"
        visited.add(id(value))
        try:
            return self._analyze_container(value, path, analysis, visited)
        finally:
            visited.discard(id(value))

    def _analyze_container(
        self,
        value: dict[str, Any] | list[Any],
        path: list[str],
        analysis: BodyAnalysis,
        visited: set[int],
    ) -> Any:
        if isinstance(value, list):
            if not value:
                return "array"
            return [
                self._analyze_node(item, [*path, str(index)], analysis, visited)
                for index, item in enumerate(value)
            ]

        if not value:
            return "object"
        types: dict[str, Any] = {}
        for key, child in value.items():
            child_path = [*path, str(key)]
            if is_sensitive_key(key, self.sensitive_fields):
                types[key] = self.classify(REDACTION_MARKER)
                analysis.sensitive_fields.append(
                    SensitiveField(
                        path=".".join(child_path),
                        field=str(key),
                        type=self.classify(child),
                        actual_value=child,
                    ),
                )
            else:
                types[key] = self._analyze_node(child, child_path, analysis, visited)
        return types

    def classify(self, value: Any) -> str:
        """Return the semantic type label for a single value."""
        if value is None:
            return "null"
        if isinstance(value, bool):
            return "boolean"
        if isinstance(value, int):
            return "integer"
        if isinstance(value, float):
            return "integer" if value.is_integer() else "number"
        if isinstance(value, str):
            return self._classify_string(value)
        if isinstance(value, list):
            return "array"
        if isinstance(value, dict):
            return "object"
        return "string"

    def _classify_string(self, value: str) -> str:
        if self.PATTERNS["email"].match(value):
            return "email"
        if _is_url(value):
            return "url"
        if len(value) >= self.MIN_DATE_LENGTH and _is_date(value):
            return "date"
        if self.PATTERNS["uuid"].match(value):
            return "uuid"
        if _is_json(value):
            return "json-string"
        return "string"


def _is_url(value: str) -> bool:
    try:
        parsed = urlparse(value)
    except ValueError:
        return False
    return bool(parsed.scheme and parsed.netloc)


def _is_date(value: str) -> bool:
    try:
        datetime.fromisoformat(value)
        return True
    except ValueError:
        pass
    try:
        return parsedate_to_datetime(value) is not None
    except (TypeError, ValueError, IndexError):
        return False


def _is_json(value: str) -> bool:
    try:
        json.loads(value)
    except ValueError:
        return False
    return True
