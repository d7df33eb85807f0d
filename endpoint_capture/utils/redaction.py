"""Redaction of sensitive header values and body fields.

Headers are matched case-insensitively by exact name. Body fields are matched
case-insensitively by substring, so a ``password`` rule also covers
``newPassword`` and ``password_confirmation``.
"""

import copy
from collections.abc import Iterable, Mapping
from typing import Any

REDACTION_MARKER = "[REDACTED]"

DEFAULT_SENSITIVE_HEADERS = ("authorization", "cookie", "x-api-key")
DEFAULT_SENSITIVE_FIELDS = ("password", "token", "secret", "key")


def is_sensitive_key(key: str, sensitive_fields: Iterable[str]) -> bool:
    """Return True if the key contains any sensitive substring."""
    lower_key = str(key).lower()
    return any(field.lower() in lower_key for field in sensitive_fields)


def sanitize_headers(
    headers: Mapping[str, Any] | None,
    sensitive_headers: Iterable[str] = DEFAULT_SENSITIVE_HEADERS,
) -> dict[str, Any]:
    """Return a shallow copy of headers with sensitive values redacted.

    Args:
        headers: Header mapping as received from the framework
        sensitive_headers: Header names to redact (exact, case-insensitive)

    Returns:
        New header dict; non-matching headers pass through unchanged
    """
    if not headers:
        return {}

    blocked = {name.lower() for name in sensitive_headers}
    sanitized = dict(headers)
    for key in sanitized:
        if key.lower() in blocked:
            sanitized[key] = REDACTION_MARKER
    return sanitized


def sanitize_body(body: Any, sensitive_fields: Iterable[str] = DEFAULT_SENSITIVE_FIELDS) -> Any:
    """Deep-copy a body and redact every field whose key looks sensitive.

    Scalars are returned as-is. Cyclic structures are tolerated: an object
    that was already visited is skipped.
    """
    if not isinstance(body, (dict, list)):
        return body

    fields = tuple(sensitive_fields)
    sanitized = copy.deepcopy(body)
    _redact_in_place(sanitized, fields, set())
    return sanitized


def _redact_in_place(node: Any, sensitive_fields: tuple[str, ...], visited: set[int]) -> None:
    if isinstance(node, list):
        if id(node) in visited:
            return
        visited.add(id(node))
        for item in node:
            _redact_in_place(item, sensitive_fields, visited)
        return

    if not isinstance(node, dict):
        return

    if id(node) in visited:
        return
    visited.add(id(node))

    for key in list(node):
        if is_sensitive_key(key, sensitive_fields):
            node[key] = REDACTION_MARKER
        else:
            _redact_in_place(node[key], sensitive_fields, visited)
