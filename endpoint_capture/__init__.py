"""Capture HTTP traffic and turn it into OpenAPI documents."""

from .capture import EndpointCapture, format_for_logging, quick_capture
from .config import CaptureConfig, CollectionRules, ManagerOptions, SpecOptions, load_config
from .middleware import CaptureMiddleware
from .models import CaptureRecord, RequestView, ResponseView
from .synthesis import CollectionManager, SpecStore

__version__ = "1.0.0"

__all__ = [
    "CaptureConfig",
    "CaptureMiddleware",
    "CaptureRecord",
    "CollectionManager",
    "CollectionRules",
    "EndpointCapture",
    "ManagerOptions",
    "RequestView",
    "ResponseView",
    "SpecOptions",
    "SpecStore",
    "format_for_logging",
    "load_config",
    "quick_capture",
]
