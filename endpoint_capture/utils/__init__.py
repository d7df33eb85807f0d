"""Redaction, type analysis and formatting helpers."""

from .formatting import format_duration, format_timestamp
from .redaction import REDACTION_MARKER, is_sensitive_key, sanitize_body, sanitize_headers
from .type_analyzer import BodyAnalysis, TypeAnalyzer

__all__ = [
    "REDACTION_MARKER",
    "BodyAnalysis",
    "TypeAnalyzer",
    "format_duration",
    "format_timestamp",
    "is_sensitive_key",
    "sanitize_body",
    "sanitize_headers",
]
