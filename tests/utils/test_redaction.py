"""Unit tests for header and body redaction."""

import pytest

from endpoint_capture.utils.redaction import (
    REDACTION_MARKER,
    is_sensitive_key,
    sanitize_body,
    sanitize_headers,
)


class TestIsSensitiveKey:
    """Test substring matching of sensitive field names."""

    @pytest.mark.parametrize(
        "key",
        ["password", "newPassword", "PASSWORD_confirmation", "api_key", "accessToken", "client_secret"],
    )
    def test_sensitive_keys(self, key: str) -> None:
        """Keys containing a sensitive substring match regardless of case."""
        assert is_sensitive_key(key, ["password", "token", "secret", "key"])

    @pytest.mark.parametrize("key", ["email", "name", "id", "username"])
    def test_plain_keys(self, key: str) -> None:
        """Keys without a sensitive substring do not match."""
        assert not is_sensitive_key(key, ["password", "token", "secret", "key"])


class TestSanitizeHeaders:
    """Test header redaction."""

    def test_redacts_case_insensitively(self) -> None:
        """Sensitive headers are matched by exact name ignoring case."""
        headers = {"Authorization": "Bearer abc", "X-API-Key": "k", "Accept": "application/json"}
        result = sanitize_headers(headers, ["authorization", "x-api-key"])

        assert result["Authorization"] == REDACTION_MARKER
        assert result["X-API-Key"] == REDACTION_MARKER
        assert result["Accept"] == "application/json"

    def test_does_not_mutate_input(self) -> None:
        """The original header mapping is left untouched."""
        headers = {"cookie": "session=1"}
        sanitize_headers(headers, ["cookie"])
        assert headers == {"cookie": "session=1"}

    def test_header_match_is_exact(self) -> None:
        """Header names are not matched by substring."""
        result = sanitize_headers({"x-authorization-hint": "none"}, ["authorization"])
        assert result == {"x-authorization-hint": "none"}

    def test_empty_headers(self) -> None:
        """Missing headers yield an empty dict."""
        assert sanitize_headers(None) == {}


class TestSanitizeBody:
    """Test body redaction."""

    def test_nested_password_redacted(self) -> None:
        """Sensitive keys are redacted at any depth, including inside arrays."""
        body = {
            "user": {"name": "Ann", "password": "secret"},
            "accounts": [{"id": 1, "userPassword": "hunter2"}, {"id": 2}],
        }
        result = sanitize_body(body, ["password"])

        assert result["user"]["password"] == REDACTION_MARKER
        assert result["accounts"][0]["userPassword"] == REDACTION_MARKER
        assert result["accounts"][1] == {"id": 2}

    def test_redacted_subtree_is_replaced(self) -> None:
        """No descendant of a redacted key survives."""
        body = {"secret": {"inner": "value", "nested": {"deep": 1}}}
        result = sanitize_body(body, ["secret"])
        assert result == {"secret": REDACTION_MARKER}

    def test_non_sensitive_values_unchanged(self) -> None:
        """Values under non-matching keys keep their original value."""
        body = {"email": "a@b.com", "count": 3, "tags": ["x", "y"], "meta": None}
        assert sanitize_body(body, ["password"]) == body

    def test_input_not_mutated(self) -> None:
        """Sanitization works on a deep copy."""
        body = {"password": "secret", "profile": {"token": "t"}}
        sanitize_body(body, ["password", "token"])
        assert body == {"password": "secret", "profile": {"token": "t"}}

    @pytest.mark.parametrize("body", [None, "plain text", 42, True])
    def test_scalars_pass_through(self, body: object) -> None:
        """Non-container bodies are returned as-is."""
        assert sanitize_body(body) == body

    def test_cyclic_body_terminates(self) -> None:
        """A self-referencing object is sanitized without infinite recursion."""
        body: dict = {"name": "loop", "password": "secret"}
        body["self"] = body

        result = sanitize_body(body, ["password"])

        assert result["password"] == REDACTION_MARKER
        assert result["self"] is result
