"""Tests for the capture recorder and its helpers."""

import asyncio
import csv
import io
import json

import pytest

from endpoint_capture.capture import EndpointCapture, format_for_logging, quick_capture
from endpoint_capture.models import RequestView, ResponseView
from endpoint_capture.storage import MemoryStorage
from endpoint_capture.synthesis.collection_manager import CollectionManager
from endpoint_capture.utils.redaction import REDACTION_MARKER


@pytest.fixture
def capture() -> EndpointCapture:
    """Capture instance that does not write documents."""
    return EndpointCapture({"generate_openapi_spec": False})


@pytest.fixture
def login_request() -> RequestView:
    return RequestView(
        method="post",
        url="/api/login?next=%2Fhome",
        headers={
            "Authorization": "Bearer abc",
            "Content-Type": "application/json",
            "User-Agent": "pytest",
            "Accept": "application/json",
        },
        query={"next": "/home"},
        cookies={"session": "s1"},
        body={"email": "a@b.com", "password": "secret"},
        client_ip="127.0.0.1",
    )


class TestCaptureRequest:
    """Test request capture."""

    def test_missing_method_or_url(self, capture: EndpointCapture) -> None:
        with pytest.raises(ValueError, match="method and url"):
            capture.capture_request(RequestView(method="", url="/x"))
        with pytest.raises(ValueError, match="method and url"):
            capture.capture_request(RequestView(method="GET", url=""))

    def test_fields(self, capture: EndpointCapture, login_request: RequestView) -> None:
        request = capture.capture_request(login_request)

        assert request.method == "POST"
        assert request.path == "/api/login"
        assert request.headers["Authorization"] == REDACTION_MARKER
        assert request.query == {"next": "/home"}
        assert request.cookies == {"session": "s1"}
        assert request.user_agent == "pytest"
        assert request.content_type == "application/json"
        assert request.ip == "127.0.0.1"

    def test_body_sanitized_and_typed(self, capture: EndpointCapture, login_request: RequestView) -> None:
        request = capture.capture_request(login_request)

        assert request.body == {"email": "a@b.com", "password": REDACTION_MARKER}
        assert request.body_actual == {"email": "a@b.com", "password": "secret"}
        assert request.body_types == {"email": "email", "password": "string"}
        assert request.has_sensitive_data is True
        assert [f.field for f in request.sensitive_fields] == ["password"]

    def test_capture_toggles(self, login_request: RequestView) -> None:
        capture = EndpointCapture(
            {
                "generate_openapi_spec": False,
                "capture_headers": False,
                "capture_query_params": False,
                "capture_cookies": False,
                "capture_request_body": False,
            },
        )
        request = capture.capture_request(login_request)

        assert request.headers is None
        assert request.query is None
        assert request.cookies is None
        assert request.body is None
        assert request.has_sensitive_data is False

    def test_custom_sensitive_configuration(self) -> None:
        capture = EndpointCapture(
            {"generate_openapi_spec": False, "sensitive_headers": ["x-tenant"], "sensitive_fields": ["ssn"]},
        )
        request = capture.capture_request(
            RequestView(method="GET", url="/p", headers={"X-Tenant": "t1"}, body={"ssn": "1", "password": "p"}),
        )
        assert request.headers == {"X-Tenant": REDACTION_MARKER}
        assert request.body == {"ssn": REDACTION_MARKER, "password": "p"}


class TestCaptureEndpointData:
    """Test complete captures."""

    def test_timing(self, capture: EndpointCapture, login_request: RequestView) -> None:
        record = capture.capture_endpoint_data(login_request, ResponseView(status_code=200))

        assert record.request.start_time <= record.response.end_time
        assert record.response.duration is not None
        assert record.response.duration >= 0
        assert record.response.duration_formatted.endswith(("ms", "s", "m"))

    def test_explicit_start_time(self, capture: EndpointCapture, login_request: RequestView) -> None:
        record = capture.capture_endpoint_data(login_request, ResponseView(status_code=200), start_time=0.0)
        assert record.request.start_time == 0.0
        assert record.response.duration == round(record.response.end_time, 2)

    def test_timing_disabled(self, login_request: RequestView) -> None:
        capture = EndpointCapture({"generate_openapi_spec": False, "capture_timing": False})
        record = capture.capture_endpoint_data(login_request, ResponseView(status_code=200))
        assert record.response.duration is None

    def test_metadata(self, capture: EndpointCapture, login_request: RequestView) -> None:
        record = capture.capture_endpoint_data(login_request, ResponseView(status_code=200), {"version": "2"})

        assert record.metadata["version"] == "2"
        assert record.metadata["capture_version"] == "1.0.0"
        assert "captured_at" in record.metadata

    def test_response_body(self, capture: EndpointCapture, login_request: RequestView) -> None:
        response = ResponseView(status_code=200, status_message="OK", body={"token": "t", "id": 1})
        record = capture.capture_endpoint_data(login_request, response)

        assert record.response.body == {"token": REDACTION_MARKER, "id": 1}
        assert record.response.body_actual == {"token": "t", "id": 1}
        assert record.response.has_sensitive_data is True
        assert record.endpoint_key == "POST:/api/login"


class TestSummaryAndExport:
    """Test summaries and exports."""

    @pytest.fixture
    def record(self, capture: EndpointCapture, login_request: RequestView):
        return capture.capture_endpoint_data(login_request, ResponseView(status_code=201, body={"id": 1}))

    def test_summary(self, capture: EndpointCapture, record) -> None:
        summary = capture.get_summary(record)

        assert summary["method"] == "POST"
        assert summary["url"] == "/api/login?next=%2Fhome"
        assert summary["status_code"] == 201
        assert summary["has_request_body"] is True
        assert summary["has_response_body"] is True
        assert summary["header_count"] == 4

    def test_export_json(self, capture: EndpointCapture, record) -> None:
        data = json.loads(capture.export_data(record, "json"))
        assert data["request"]["method"] == "POST"
        assert data["response"]["status_code"] == 201

    def test_export_unknown_format_is_json(self, capture: EndpointCapture, record) -> None:
        assert capture.export_data(record, "xml") == capture.export_data(record, "json")

    def test_export_csv(self, capture: EndpointCapture, record) -> None:
        rows = list(csv.reader(io.StringIO(capture.export_data(record, "csv"))))
        assert rows[0][:3] == ["method", "url", "status_code"]
        assert rows[1][:3] == ["POST", "/api/login?next=%2Fhome", "201"]

    def test_export_table(self, capture: EndpointCapture, record) -> None:
        table = capture.export_data(record, "TABLE")
        assert "Endpoint Capture Summary" in table
        assert "status_code" in table
        assert "201" in table

    def test_export_requires_record(self, capture: EndpointCapture) -> None:
        with pytest.raises(ValueError, match="required"):
            capture.export_data(None)


class TestHelpers:
    """Test module-level helpers."""

    def test_quick_capture(self, login_request: RequestView) -> None:
        record = quick_capture(login_request, ResponseView(status_code=200), {"capture_request_body": False})
        assert record.request.method == "POST"
        assert record.request.body is None

    def test_format_for_logging(self) -> None:
        capture = EndpointCapture({"generate_openapi_spec": False})
        request = RequestView(method="GET", url="/api/users")
        record = capture.capture_endpoint_data(request, ResponseView(status_code=200), start_time=0.0)
        entry = format_for_logging(record, "debug")

        assert entry["level"] == "debug"
        assert entry["message"].startswith("GET /api/users - 200 (")
        assert entry["message"].endswith("ms)")
        assert entry["endpoint"]["status_code"] == 200
        assert entry["data"]["request"]["url"] == "/api/users"


class TestOpenApiFacade:
    """Test the OpenAPI convenience methods."""

    @pytest.fixture
    def enabled(self) -> EndpointCapture:
        manager = CollectionManager({"collection_rules": {"default_collection": "Main"}}, storage=MemoryStorage())
        return EndpointCapture({}, collection_manager=manager)

    def test_disabled_raises(self, capture: EndpointCapture, make_record) -> None:
        with pytest.raises(RuntimeError, match="not enabled"):
            asyncio.run(capture.add_to_openapi_spec("Main", make_record()))
        with pytest.raises(RuntimeError):
            asyncio.run(capture.export_openapi_specs())
        with pytest.raises(RuntimeError):
            asyncio.run(capture.create_openapi_spec_version("1.0.0"))
        with pytest.raises(RuntimeError):
            asyncio.run(capture.merge_openapi_specs(["a"], "b"))
        assert capture.get_openapi_spec_stats() == {"error": "OpenAPI specification generation is not enabled"}

    def test_disabled_handle_is_noop(self, capture: EndpointCapture, make_record) -> None:
        assert asyncio.run(capture.handle(make_record())) == []

    def test_handle_routes_with_rules(self, enabled: EndpointCapture, make_record) -> None:
        results = asyncio.run(enabled.handle(make_record()))

        assert [r.collection_name for r in results] == ["Main"]
        assert enabled.get_openapi_spec_stats()["total_operations"] == 1

    def test_versions_and_merge(self, enabled: EndpointCapture, make_record) -> None:
        asyncio.run(enabled.add_to_openapi_spec("A", make_record(path="/a")))
        asyncio.run(enabled.add_to_openapi_spec("B", make_record(path="/b")))

        versions = asyncio.run(enabled.create_openapi_spec_version("1.1.0"))
        assert versions == {"A": "versions/A_v1.1.0.json", "B": "versions/B_v1.1.0.json"}

        merged = asyncio.run(enabled.merge_openapi_specs(["A", "B"], "AB"))
        assert sorted(merged.spec["paths"]) == ["/a", "/b"]

        exports = asyncio.run(enabled.export_openapi_specs())
        assert set(exports) == {"A", "B", "AB"}
