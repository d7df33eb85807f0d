"""Capture of HTTP request/response pairs.

``EndpointCapture`` turns framework-neutral request/response views into
sanitized, typed capture records, and hands completed records to the
collection manager so they end up in OpenAPI documents.
"""

import copy
import csv
import io
import json
import logging
import time
from typing import Any

from rich.console import Console
from rich.table import Table

from .config import CaptureConfig
from .models import CaptureRecord, RequestCapture, RequestView, ResponseCapture, ResponseView
from .synthesis.collection_manager import AssignmentResult, CollectionManager
from .synthesis.spec_store import SpecStore
from .utils.formatting import format_duration, format_timestamp
from .utils.redaction import sanitize_body, sanitize_headers
from .utils.type_analyzer import BodyAnalysis, TypeAnalyzer

logger = logging.getLogger(__name__)

CAPTURE_FORMAT_VERSION = "1.0.0"

DISABLED_MESSAGE = "OpenAPI specification generation is not enabled"


def now_ms() -> float:
    """Monotonic clock reading in milliseconds."""
    return time.perf_counter() * 1000


class EndpointCapture:
    """Build capture records and feed them to the OpenAPI collections."""

    def __init__(
        self,
        config: CaptureConfig | dict | None = None,
        collection_manager: CollectionManager | None = None,
    ) -> None:
        self.config = CaptureConfig.build(config)
        self.analyzer = TypeAnalyzer(self.config.sensitive_fields)
        self.collection_manager: CollectionManager | None = None
        if self.config.generate_openapi_spec:
            self.collection_manager = collection_manager or CollectionManager(self.config.openapi)

    def _capture_body(self, body: Any) -> tuple[Any, Any, BodyAnalysis]:
        sanitized = sanitize_body(body, self.config.sensitive_fields)
        actual = copy.deepcopy(body)
        return sanitized, actual, self.analyzer.analyze(body)

    def capture_request(self, request: RequestView, start_time: float | None = None) -> RequestCapture:
        """Capture the request side of a call.

        Args:
            request: Request attributes from the host framework
            start_time: Monotonic start instant in milliseconds; defaults to now

        Raises:
            ValueError: If the request has no method or no url
        """
        if request is None:
            raise ValueError("Request is required")
        if not request.method or not request.url:
            raise ValueError("Request must have method and url")

        config = self.config
        fields: dict[str, Any] = {}

        if config.capture_headers:
            fields["headers"] = sanitize_headers(request.headers, config.sensitive_headers)
        if config.capture_query_params:
            fields["query"] = dict(request.query)
        if config.capture_path_params:
            fields["params"] = dict(request.path_params)
        if config.capture_cookies:
            fields["cookies"] = dict(request.cookies)

        if config.capture_request_body and request.body is not None and request.body != "":
            body, body_actual, analysis = self._capture_body(request.body)
            fields.update(
                body=body,
                body_actual=body_actual,
                body_types=analysis.types,
                sensitive_fields=tuple(analysis.sensitive_fields),
                has_sensitive_data=analysis.has_sensitive_data,
            )

        return RequestCapture(
            timestamp=format_timestamp(config.timestamp_format),
            method=request.method.upper(),
            url=request.url,
            path=request.path or "/",
            start_time=start_time if start_time is not None else now_ms(),
            original_url=request.original_url,
            base_url=request.base_url,
            protocol=request.protocol,
            secure=request.secure,
            ip=request.client_ip,
            hostname=request.hostname,
            user_agent=request.header("user-agent"),
            content_type=request.header("content-type"),
            content_length=request.header("content-length"),
            accept=request.header("accept"),
            accept_encoding=request.header("accept-encoding"),
            accept_language=request.header("accept-language"),
            **fields,
        )

    def capture_response(
        self,
        response: ResponseView,
        request_capture: RequestCapture | None = None,
    ) -> ResponseCapture:
        """Capture the response side of a call, timed against request_capture."""
        config = self.config
        end_time = now_ms()
        fields: dict[str, Any] = {}

        if config.capture_timing and request_capture is not None:
            duration = round(max(end_time - request_capture.start_time, 0.0), 2)
            fields["duration"] = duration
            fields["duration_formatted"] = format_duration(duration)

        if config.capture_headers:
            fields["headers"] = sanitize_headers(response.headers, config.sensitive_headers)

        if config.capture_response_body and response.body is not None and response.body != "":
            body, body_actual, analysis = self._capture_body(response.body)
            fields.update(
                body=body,
                body_actual=body_actual,
                body_types=analysis.types,
                sensitive_fields=tuple(analysis.sensitive_fields),
                has_sensitive_data=analysis.has_sensitive_data,
            )

        return ResponseCapture(
            timestamp=format_timestamp(config.timestamp_format),
            status_code=response.status_code,
            status_message=response.status_message,
            end_time=end_time,
            **fields,
        )

    def capture_endpoint_data(
        self,
        request: RequestView,
        response: ResponseView,
        additional_data: dict[str, Any] | None = None,
        start_time: float | None = None,
    ) -> CaptureRecord:
        """Capture a complete call.

        Args:
            request: Request attributes from the host framework
            response: Response attributes from the host framework
            additional_data: Extra metadata; a ``version`` key feeds the
                version-based collection rule
            start_time: Monotonic start instant in milliseconds
        """
        request_capture = self.capture_request(request, start_time)
        response_capture = self.capture_response(response, request_capture)
        metadata = {
            "captured_at": format_timestamp(self.config.timestamp_format),
            "capture_version": CAPTURE_FORMAT_VERSION,
            **(additional_data or {}),
        }
        return CaptureRecord(request=request_capture, response=response_capture, metadata=metadata)

    async def handle(self, record: CaptureRecord) -> list[AssignmentResult]:
        """Route a completed capture into the configured collections.

        Never raises: failures are logged and reported in the results.
        """
        if not self.config.generate_openapi_spec or self.collection_manager is None:
            return []

        try:
            results = await self.collection_manager.add_endpoint_with_rules(record)
        except Exception:
            logger.exception("Error adding endpoint to OpenAPI specification")
            return []

        for result in results:
            if not result.success:
                logger.warning(
                    "Failed to add %s to collection %s: %s",
                    record.endpoint_key,
                    result.collection_name,
                    result.error,
                )
        return results

    def get_summary(self, record: CaptureRecord) -> dict[str, Any]:
        """Key facts about a capture for quick display."""
        request, response = record.request, record.response
        return {
            "method": request.method,
            "url": request.url,
            "status_code": response.status_code,
            "duration": response.duration,
            "timestamp": request.timestamp,
            "has_request_body": bool(request.body),
            "has_response_body": bool(response.body),
            "header_count": len(request.headers or {}),
        }

    def export_data(self, record: CaptureRecord, fmt: str = "json") -> str:
        """Export a capture as ``json``, ``csv`` or ``table``; unknown formats give JSON."""
        if record is None:
            raise ValueError("Capture record is required for export")

        fmt = fmt.lower()
        if fmt == "csv":
            return self._to_csv(record)
        if fmt == "table":
            return self._to_table(record)
        return json.dumps(record.to_dict(), indent=2, ensure_ascii=False, default=str)

    def _to_csv(self, record: CaptureRecord) -> str:
        summary = self.get_summary(record)
        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(summary.keys())
        writer.writerow("" if value is None else value for value in summary.values())
        return buffer.getvalue().rstrip("\n")

    def _to_table(self, record: CaptureRecord) -> str:
        table = Table(title="Endpoint Capture Summary")
        table.add_column("Field", style="cyan")
        table.add_column("Value", justify="right")
        for key, value in self.get_summary(record).items():
            table.add_row(key, str(value))

        console = Console(file=io.StringIO(), width=80, color_system=None)
        console.print(table)
        return console.file.getvalue()

    def _require_manager(self) -> CollectionManager:
        if self.collection_manager is None:
            raise RuntimeError(DISABLED_MESSAGE)
        return self.collection_manager

    async def add_to_openapi_spec(
        self,
        collection_name: str,
        record: CaptureRecord,
        options: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Add a capture to one named collection."""
        return await self._require_manager().add_endpoint(collection_name, record, options)

    async def export_openapi_specs(self, fmt: str = "json", save_to_file: bool = False) -> dict[str, Any]:
        return await self._require_manager().export_all_collections(fmt, save_to_file)

    def get_openapi_spec_stats(self) -> dict[str, Any]:
        if self.collection_manager is None:
            return {"error": DISABLED_MESSAGE}
        return self.collection_manager.get_all_stats()

    async def create_openapi_spec_version(self, version: str) -> dict[str, Any]:
        """Snapshot every collection under version.

        Returns:
            Collection name mapped to the snapshot key, or to an error mapping
        """
        manager = self._require_manager()
        results: dict[str, Any] = {}
        for name in list(manager.collections):
            try:
                results[name] = await manager.create_version(name, version)
            except Exception as e:
                logger.exception("Error creating version %s for %s", version, name)
                results[name] = {"error": str(e)}
        return results

    async def merge_openapi_specs(
        self,
        collection_names: list[str],
        target_name: str,
        options: dict[str, Any] | None = None,
    ) -> SpecStore:
        return await self._require_manager().merge_collections(collection_names, target_name, options)


def quick_capture(
    request: RequestView,
    response: ResponseView,
    config: CaptureConfig | dict | None = None,
) -> CaptureRecord:
    """Capture one call without keeping an EndpointCapture around."""
    # One-off captures never write OpenAPI documents
    config = copy.copy(CaptureConfig.build(config))
    config.generate_openapi_spec = False
    return EndpointCapture(config).capture_endpoint_data(request, response)


def format_for_logging(record: CaptureRecord, level: str = "info") -> dict[str, Any]:
    """Structured log entry for a capture, e.g. ``GET /api/users - 200 (150ms)``."""
    summary = EndpointCapture({"generate_openapi_spec": False}).get_summary(record)
    duration = summary["duration"]
    duration_text = f"{duration:.2f}".rstrip("0").rstrip(".") + "ms" if duration is not None else "n/a"
    return {
        "level": level,
        "message": f"{summary['method']} {summary['url']} - {summary['status_code']} ({duration_text})",
        "endpoint": summary,
        "timestamp": record.request.timestamp,
        "data": record.to_dict(),
    }
