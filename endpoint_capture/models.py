"""Data models for captured HTTP calls.

``RequestView`` and ``ResponseView`` are the framework-neutral inputs a host
adapter fills in. ``RequestCapture``, ``ResponseCapture`` and ``CaptureRecord``
are the immutable records built from them.
"""

from dataclasses import asdict, dataclass, field
from typing import Any
from urllib.parse import urlsplit


def _header_lookup(headers: dict[str, Any], name: str) -> Any:
    lower_name = name.lower()
    for key, value in headers.items():
        if key.lower() == lower_name:
            return value
    return None


@dataclass
class RequestView:
    """Request attributes as handed over by the host framework."""

    method: str
    url: str
    path: str | None = None
    headers: dict[str, Any] = field(default_factory=dict)
    query: dict[str, Any] = field(default_factory=dict)
    path_params: dict[str, Any] = field(default_factory=dict)
    cookies: dict[str, Any] = field(default_factory=dict)
    body: Any = None
    protocol: str = "http"
    secure: bool = False
    client_ip: str | None = None
    hostname: str | None = None
    original_url: str | None = None
    base_url: str = ""

    def __post_init__(self) -> None:
        if self.path is None and self.url:
            self.path = urlsplit(self.url).path or "/"
        if self.original_url is None:
            self.original_url = self.url

    def header(self, name: str) -> Any:
        """Case-insensitive header lookup."""
        return _header_lookup(self.headers, name)


@dataclass
class ResponseView:
    """Response attributes as handed over by the host framework."""

    status_code: int
    status_message: str = ""
    headers: dict[str, Any] = field(default_factory=dict)
    body: Any = None

    def header(self, name: str) -> Any:
        """Case-insensitive header lookup."""
        return _header_lookup(self.headers, name)


@dataclass(frozen=True)
class SensitiveField:
    """A body field whose key matched a sensitive-field rule."""

    path: str
    field: str
    type: str
    actual_value: Any = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the document representation."""
        return {
            "path": self.path,
            "field": self.field,
            "type": self.type,
            "actualValue": self.actual_value,
        }


@dataclass(frozen=True)
class RequestCapture:
    """Sanitized and typed snapshot of a request."""

    timestamp: str
    method: str
    url: str
    path: str
    start_time: float
    original_path: str | None = None
    original_url: str | None = None
    base_url: str = ""
    protocol: str = "http"
    secure: bool = False
    ip: str | None = None
    hostname: str | None = None
    headers: dict[str, Any] | None = None
    query: dict[str, Any] | None = None
    params: dict[str, Any] | None = None
    cookies: dict[str, Any] | None = None
    body: Any = None
    body_actual: Any = None
    body_types: Any = None
    sensitive_fields: tuple[SensitiveField, ...] = ()
    has_sensitive_data: bool = False
    user_agent: str | None = None
    content_type: str | None = None
    content_length: str | None = None
    accept: str | None = None
    accept_encoding: str | None = None
    accept_language: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


@dataclass(frozen=True)
class ResponseCapture:
    """Sanitized and typed snapshot of a response."""

    timestamp: str
    status_code: int
    end_time: float
    status_message: str = ""
    duration: float | None = None
    duration_formatted: str | None = None
    headers: dict[str, Any] | None = None
    body: Any = None
    body_actual: Any = None
    body_types: Any = None
    sensitive_fields: tuple[SensitiveField, ...] = ()
    has_sensitive_data: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


@dataclass(frozen=True)
class CaptureRecord:
    """One observed call: request, response and capture metadata."""

    request: RequestCapture
    response: ResponseCapture
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def endpoint_key(self) -> str:
        """``METHOD:path`` identifier of the call."""
        return f"{self.request.method.upper()}:{self.request.path}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "request": self.request.to_dict(),
            "response": self.response.to_dict(),
            "metadata": dict(self.metadata),
        }
