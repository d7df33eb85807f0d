"""Conversion of capture records into OpenAPI operations.

One record becomes one operation: summary, description, operationId, tags,
parameters, request body, responses, security and an ``x-actual-data``
extension holding the unredacted bodies for operators.
"""

import re
from dataclasses import dataclass
from typing import Any, ClassVar

from ..models import CaptureRecord, RequestCapture, ResponseCapture
from ..utils.formatting import iso_now
from .schema_builder import SchemaBuilder

ERROR_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "error": {"type": "string", "description": "Error message"},
        "code": {"type": "string", "description": "Error code"},
    },
}


@dataclass
class BuilderOptions:
    """Options controlling operation generation."""

    include_examples: bool = True
    include_schemas: bool = True
    group_by_path: bool = True


class DocumentBuilder:
    """Build OpenAPI operations from capture records.

    The record's request path must already be normalized.
    """

    # Headers worth documenting; any other x- header is documented as well
    RELEVANT_HEADERS: ClassVar[frozenset[str]] = frozenset(
        {"authorization", "x-api-key", "x-auth-token", "content-type", "accept"},
    )

    STATUS_DESCRIPTIONS: ClassVar[dict[int, str]] = {
        200: "OK",
        201: "Created",
        204: "No Content",
        400: "Bad Request",
        401: "Unauthorized",
        403: "Forbidden",
        404: "Not Found",
        500: "Internal Server Error",
    }

    def __init__(
        self,
        options: BuilderOptions | None = None,
        schema_builder: SchemaBuilder | None = None,
    ) -> None:
        self.options = options or BuilderOptions()
        self.schema_builder = schema_builder or SchemaBuilder()

    def build_operation(self, record: CaptureRecord) -> dict[str, Any]:
        """Convert a capture record into an OpenAPI operation object."""
        request, response = record.request, record.response

        operation: dict[str, Any] = {
            "summary": self.generate_summary(request),
            "description": self.generate_description(record),
            "operationId": self.generate_operation_id(request.method, request.path),
            "tags": self.generate_tags(request.path),
            "parameters": self.generate_parameters(request),
            "responses": self.generate_responses(response),
            "security": self.generate_security(request),
            "deprecated": False,
        }

        actual_data = self.generate_actual_data(record)
        if actual_data:
            operation["x-actual-data"] = actual_data

        request_body = self.generate_request_body(request)
        if request_body:
            operation["requestBody"] = request_body

        return operation

    @staticmethod
    def generate_summary(request: RequestCapture) -> str:
        return f"{request.method.upper()} {request.path}"

    @staticmethod
    def generate_description(record: CaptureRecord) -> str:
        """Markdown description of the last observed call."""
        request, response = record.request, record.response
        description = f"**{request.method.upper()} {request.path}**\n\n"
        description += f"- **Status Code**: {response.status_code}\n"
        if response.duration:
            description += f"- **Response Time**: {response.duration}ms\n"
        captured_at = record.metadata.get("captured_at")
        if captured_at:
            description += f"- **Last Captured**: {captured_at}\n"
        return description

    @staticmethod
    def generate_operation_id(method: str, path: str) -> str:
        """Derive a deterministic operationId, e.g. ``get_api_users_id``."""
        slug = path.replace("{", "").replace("}", "")
        slug = re.sub(r"[^a-zA-Z0-9]+", "_", slug).strip("_")
        return f"{method.lower()}_{slug}"

    def generate_tags(self, path: str) -> list[str]:
        if not self.options.group_by_path:
            return ["API"]
        segment = first_path_segment(path)
        return [segment] if segment else ["API"]

    def generate_parameters(self, request: RequestCapture) -> list[dict[str, Any]]:
        """Path, query and relevant header parameters."""
        parameters: list[dict[str, Any]] = []

        for name in request.params or {}:
            parameters.append(
                {
                    "name": name,
                    "in": "path",
                    "required": True,
                    "schema": {"type": "string"},
                    "description": f"Path parameter: {name}",
                },
            )

        for name, value in (request.query or {}).items():
            is_number = isinstance(value, (int, float)) and not isinstance(value, bool)
            parameters.append(
                {
                    "name": name,
                    "in": "query",
                    "required": False,
                    "schema": {"type": "number" if is_number else "string"},
                    "description": f"Query parameter: {name}",
                },
            )

        for name in request.headers or {}:
            lower_name = name.lower()
            if lower_name in self.RELEVANT_HEADERS or lower_name.startswith("x-"):
                parameters.append(
                    {
                        "name": name,
                        "in": "header",
                        "required": False,
                        "schema": {"type": "string"},
                        "description": f"Header: {name}",
                    },
                )

        return parameters

    def generate_request_body(self, request: RequestCapture) -> dict[str, Any] | None:
        """Request body block, or None when the request carried no body."""
        if _is_empty_body(request.body):
            return None

        content_type = request.content_type or "application/json"
        media = self._media_type(request.body, request.body_actual, request.body_types, "Request")
        return {
            "description": "Request body",
            "content": {content_type: media},
            "required": True,
        }

    def generate_responses(self, response: ResponseCapture) -> dict[str, Any]:
        """Responses map: observed status plus generic error classes."""
        status_code = response.status_code
        responses: dict[str, Any] = {
            str(status_code): {
                "description": self.get_status_description(status_code),
                "content": self.generate_response_content(response),
                "headers": self.generate_response_headers(response),
            },
        }

        if status_code >= 400:
            responses["4xx"] = {
                "description": "Client Error",
                "content": {"application/json": {"schema": ERROR_SCHEMA}},
            }
        if status_code >= 500:
            responses["5xx"] = {
                "description": "Server Error",
                "content": {"application/json": {"schema": ERROR_SCHEMA}},
            }

        return responses

    def generate_response_content(self, response: ResponseCapture) -> dict[str, Any]:
        content_type = "application/json"
        header_value = _header(response.headers, "content-type")
        if header_value:
            content_type = str(header_value).split(";")[0].strip()
        if not content_type or content_type == "text/plain":
            content_type = "application/json"

        if _is_falsy_body(response.body):
            return {content_type: {"schema": {"type": "string", "description": "Empty response"}}}

        media = self._media_type(
            response.body,
            response.body_actual,
            response.body_types,
            "Response",
        )
        return {content_type: media}

    @staticmethod
    def generate_response_headers(response: ResponseCapture) -> dict[str, Any]:
        return {
            name: {"description": f"Response header: {name}", "schema": {"type": "string"}}
            for name in response.headers or {}
        }

    @staticmethod
    def generate_security(request: RequestCapture) -> list[dict[str, list[str]]]:
        if _header(request.headers, "authorization"):
            return [{"bearerAuth": []}]
        return []

    @staticmethod
    def generate_actual_data(record: CaptureRecord) -> dict[str, Any]:
        """Unredacted request/response data, keyed so both directions coexist."""
        request, response = record.request, record.response
        actual: dict[str, Any] = {}

        if request.body_actual or request.has_sensitive_data:
            actual.update(
                {
                    "requestBody": request.body_actual,
                    "hasSensitiveData": request.has_sensitive_data,
                    "sensitiveFields": [f.to_dict() for f in request.sensitive_fields],
                    "dataTypes": request.body_types,
                    "capturedAt": record.metadata.get("captured_at") or iso_now(),
                },
            )

        if response.body_actual or response.has_sensitive_data:
            actual.update(
                {
                    "responseBody": response.body_actual,
                    "responseHasSensitiveData": response.has_sensitive_data,
                    "responseSensitiveFields": [f.to_dict() for f in response.sensitive_fields],
                    "responseDataTypes": response.body_types,
                },
            )

        return actual

    def get_status_description(self, status_code: int) -> str:
        return self.STATUS_DESCRIPTIONS.get(status_code, f"Status {status_code}")

    def _media_type(self, body: Any, body_actual: Any, body_types: Any, label: str) -> dict[str, Any]:
        media: dict[str, Any] = {}
        if self.options.include_schemas:
            media["schema"] = self.schema_builder.build(body)

        if self.options.include_examples:
            examples: dict[str, Any] = {
                "sanitized": {
                    "summary": f"Sanitized {label} Body (Safe to store)",
                    "description": f"{label} body with sensitive data redacted",
                    "value": body,
                },
            }
            if body_actual:
                examples["actual"] = {
                    "summary": f"Actual {label} Body (For reference)",
                    "description": f"Complete {label.lower()} body with actual values",
                    "value": body_actual,
                }
            if body_types:
                examples["types"] = {
                    "summary": "Data Types Analysis",
                    "description": "Data type analysis for each field",
                    "value": body_types,
                }
            media["examples"] = examples

        return media


def first_path_segment(path: str) -> str | None:
    """First non-empty segment of a path, e.g. ``api`` for ``/api/users``."""
    for segment in path.split("/"):
        if segment:
            return segment
    return None


def _header(headers: dict[str, Any] | None, name: str) -> Any:
    for key, value in (headers or {}).items():
        if key.lower() == name:
            return value
    return None


def _is_empty_body(body: Any) -> bool:
    if body is None or body == "":
        return True
    return isinstance(body, (dict, list)) and len(body) == 0


def _is_falsy_body(body: Any) -> bool:
    return body is None or body == ""
