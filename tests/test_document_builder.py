"""Unit tests for building OpenAPI operations from capture records."""

import pytest

from endpoint_capture.synthesis.document_builder import BuilderOptions, DocumentBuilder, first_path_segment
from endpoint_capture.utils.redaction import REDACTION_MARKER


@pytest.fixture
def builder() -> DocumentBuilder:
    """Create a builder with default options."""
    return DocumentBuilder()


class TestOperationId:
    """Test operationId derivation."""

    @pytest.mark.parametrize(
        ("method", "path", "expected"),
        [
            ("GET", "/api/users/{id}", "get_api_users_id"),
            ("POST", "/api/login", "post_api_login"),
            ("DELETE", "/v1/items/{id}/tags--all/", "delete_v1_items_id_tags_all"),
            ("GET", "/", "get_"),
        ],
    )
    def test_generate_operation_id(self, method: str, path: str, expected: str) -> None:
        """Braces are dropped and non-alphanumeric runs collapse to one underscore."""
        assert DocumentBuilder.generate_operation_id(method, path) == expected


class TestTags:
    """Test tag generation."""

    def test_first_segment(self, builder: DocumentBuilder) -> None:
        assert builder.generate_tags("/api/users/{id}") == ["api"]

    def test_root_path(self, builder: DocumentBuilder) -> None:
        assert builder.generate_tags("/") == ["API"]

    def test_grouping_disabled(self) -> None:
        """Without path grouping every operation is tagged API."""
        builder = DocumentBuilder(BuilderOptions(group_by_path=False))
        assert builder.generate_tags("/orders/{id}") == ["API"]

    def test_first_path_segment(self) -> None:
        assert first_path_segment("//orders/5") == "orders"
        assert first_path_segment("") is None


class TestParameters:
    """Test parameter generation."""

    def test_path_query_and_header_parameters(self, builder: DocumentBuilder, make_record) -> None:
        """Relevant headers are kept; generic browser headers are dropped."""
        record = make_record(
            path="/api/users/7",
            path_params={"id": "7"},
            query={"limit": 10, "sort": "name"},
            request_headers={
                "Authorization": "Bearer t",
                "X-Request-Id": "abc",
                "Content-Type": "application/json",
                "User-Agent": "curl/8",
                "Accept-Language": "en",
            },
        )
        parameters = builder.generate_parameters(record.request)
        by_location = {(p["in"], p["name"]): p for p in parameters}

        assert by_location[("path", "id")]["required"] is True
        assert by_location[("query", "limit")]["schema"] == {"type": "number"}
        assert by_location[("query", "sort")]["schema"] == {"type": "string"}
        assert by_location[("query", "sort")]["required"] is False
        assert ("header", "Authorization") in by_location
        assert ("header", "X-Request-Id") in by_location
        assert ("header", "Content-Type") in by_location
        assert ("header", "User-Agent") not in by_location
        assert ("header", "Accept-Language") not in by_location


class TestRequestBody:
    """Test request body blocks."""

    def test_omitted_without_body(self, builder: DocumentBuilder, make_record) -> None:
        assert builder.generate_request_body(make_record().request) is None

    def test_omitted_for_empty_object(self, builder: DocumentBuilder, make_record) -> None:
        record = make_record(method="POST", request_body={})
        assert builder.generate_request_body(record.request) is None

    def test_schema_and_examples(self, builder: DocumentBuilder, make_record) -> None:
        """The body block carries sanitized, actual and types examples."""
        record = make_record(
            method="POST",
            path="/api/login",
            request_body={"email": "a@b.com", "password": "secret"},
            request_headers={"content-type": "application/json"},
        )
        body = builder.generate_request_body(record.request)
        media = body["content"]["application/json"]

        assert body["required"] is True
        assert media["schema"]["properties"]["password"]["example"] == REDACTION_MARKER
        assert media["examples"]["sanitized"]["value"] == {"email": "a@b.com", "password": REDACTION_MARKER}
        assert media["examples"]["actual"]["value"] == {"email": "a@b.com", "password": "secret"}
        assert media["examples"]["types"]["value"] == {"email": "email", "password": "string"}

    def test_examples_disabled(self, make_record) -> None:
        builder = DocumentBuilder(BuilderOptions(include_examples=False))
        record = make_record(method="POST", request_body={"a": 1})
        media = builder.generate_request_body(record.request)["content"]["application/json"]

        assert "examples" not in media
        assert media["schema"]["type"] == "object"

    def test_schemas_disabled(self, make_record) -> None:
        builder = DocumentBuilder(BuilderOptions(include_schemas=False))
        record = make_record(method="POST", request_body={"a": 1})
        media = builder.generate_request_body(record.request)["content"]["application/json"]
        assert "schema" not in media


class TestResponses:
    """Test responses map generation."""

    def test_success_has_single_entry(self, builder: DocumentBuilder, make_record) -> None:
        record = make_record(response_body={"id": 7})
        responses = builder.generate_responses(record.response)

        assert list(responses) == ["200"]
        assert responses["200"]["description"] == "OK"

    def test_client_error_adds_4xx(self, builder: DocumentBuilder, make_record) -> None:
        record = make_record(status_code=404, response_body={"error": "missing"})
        responses = builder.generate_responses(record.response)

        assert set(responses) == {"404", "4xx"}
        assert responses["4xx"]["description"] == "Client Error"

    def test_server_error_adds_4xx_and_5xx(self, builder: DocumentBuilder, make_record) -> None:
        record = make_record(status_code=503)
        responses = builder.generate_responses(record.response)

        assert set(responses) == {"503", "4xx", "5xx"}
        assert responses["503"]["description"] == "Status 503"
        schema = responses["5xx"]["content"]["application/json"]["schema"]
        assert set(schema["properties"]) == {"error", "code"}

    def test_content_type_parameters_stripped(self, builder: DocumentBuilder, make_record) -> None:
        record = make_record(
            response_body={"id": 1},
            response_headers={"Content-Type": "application/vnd.api+json; charset=utf-8"},
        )
        content = builder.generate_response_content(record.response)
        assert list(content) == ["application/vnd.api+json"]

    def test_text_plain_normalized_to_json(self, builder: DocumentBuilder, make_record) -> None:
        record = make_record(response_body="ok", response_headers={"content-type": "text/plain"})
        assert list(builder.generate_response_content(record.response)) == ["application/json"]

    def test_empty_response(self, builder: DocumentBuilder, make_record) -> None:
        record = make_record(status_code=204, response_headers={})
        content = builder.generate_response_content(record.response)
        assert content["application/json"]["schema"] == {"type": "string", "description": "Empty response"}

    def test_response_headers_documented(self, builder: DocumentBuilder, make_record) -> None:
        record = make_record(response_headers={"content-type": "application/json", "x-rate-limit": "10"})
        headers = builder.generate_response_headers(record.response)
        assert headers["x-rate-limit"]["description"] == "Response header: x-rate-limit"


class TestOperation:
    """Test complete operations."""

    def test_security_from_authorization(self, builder: DocumentBuilder, make_record) -> None:
        record = make_record(request_headers={"authorization": "Bearer t"})
        assert builder.build_operation(record)["security"] == [{"bearerAuth": []}]

    def test_no_security_without_authorization(self, builder: DocumentBuilder, make_record) -> None:
        assert builder.build_operation(make_record())["security"] == []

    def test_operation_fields(self, builder: DocumentBuilder, make_record) -> None:
        record = make_record(path="/api/users/{id}", response_body={"id": 7})
        operation = builder.build_operation(record)

        assert operation["summary"] == "GET /api/users/{id}"
        assert operation["operationId"] == "get_api_users_id"
        assert operation["tags"] == ["api"]
        assert operation["deprecated"] is False
        assert operation["description"].startswith("**GET /api/users/{id}**")
        assert "- **Status Code**: 200" in operation["description"]
        assert "requestBody" not in operation

    def test_actual_data_extension(self, builder: DocumentBuilder, make_record) -> None:
        """Request and response actual data coexist under distinct keys."""
        record = make_record(
            method="POST",
            path="/api/login",
            request_body={"email": "a@b.com", "password": "secret"},
            response_body={"token": "abc"},
        )
        actual = builder.build_operation(record)["x-actual-data"]

        assert actual["requestBody"] == {"email": "a@b.com", "password": "secret"}
        assert actual["hasSensitiveData"] is True
        assert [f["field"] for f in actual["sensitiveFields"]] == ["password"]
        assert actual["responseBody"] == {"token": "abc"}
        assert actual["responseHasSensitiveData"] is True
        assert actual["responseSensitiveFields"][0]["actualValue"] == "abc"

    def test_no_extension_without_bodies(self, builder: DocumentBuilder, make_record) -> None:
        assert "x-actual-data" not in builder.build_operation(make_record())
