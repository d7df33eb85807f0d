"""Shared fixtures for capture and synthesis tests."""

from collections.abc import Callable
from typing import Any

import pytest

from endpoint_capture.capture import EndpointCapture
from endpoint_capture.models import CaptureRecord, RequestView, ResponseView

RecordFactory = Callable[..., CaptureRecord]


@pytest.fixture
def make_record() -> RecordFactory:
    """Build capture records the way the middleware does."""
    capture = EndpointCapture({"generate_openapi_spec": False})

    def factory(
        method: str = "GET",
        path: str = "/api/users/7",
        status_code: int = 200,
        request_body: Any = None,
        response_body: Any = None,
        request_headers: dict[str, Any] | None = None,
        response_headers: dict[str, Any] | None = None,
        query: dict[str, Any] | None = None,
        path_params: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> CaptureRecord:
        request = RequestView(
            method=method,
            url=path,
            path=path,
            headers=request_headers or {},
            query=query or {},
            path_params=path_params or {},
            body=request_body,
        )
        response = ResponseView(
            status_code=status_code,
            headers=response_headers if response_headers is not None else {"content-type": "application/json"},
            body=response_body,
        )
        return capture.capture_endpoint_data(request, response, metadata)

    return factory
