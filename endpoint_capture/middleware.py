"""ASGI middleware capturing every HTTP call passing through an application.

Works with any ASGI framework (Starlette, FastAPI, Quart, ...)::

    app.add_middleware(CaptureMiddleware, capture=EndpointCapture(config))

Request and response bodies are buffered while they stream through, and the
capture is built once the response has been sent. Capture failures are logged
and never change the response served to the client.
"""

import inspect
import json
import logging
from collections.abc import Awaitable, Callable
from http import HTTPStatus
from http.cookies import CookieError, SimpleCookie
from typing import Any
from urllib.parse import parse_qsl

from .capture import EndpointCapture, now_ms
from .config import CaptureConfig
from .models import CaptureRecord, RequestView, ResponseView

logger = logging.getLogger(__name__)

Scope = dict[str, Any]
Message = dict[str, Any]
Receive = Callable[[], Awaitable[Message]]
Send = Callable[[Message], Awaitable[None]]
CaptureCallback = Callable[[CaptureRecord], Any]


class _BodyBuffer:
    """Accumulate body chunks up to a size limit."""

    def __init__(self, max_size: int) -> None:
        self.max_size = max_size
        self.chunks: list[bytes] = []
        self.size = 0
        self.truncated = False

    def add(self, chunk: bytes) -> None:
        self.size += len(chunk)
        if self.size > self.max_size:
            self.truncated = True
            self.chunks.clear()
        elif not self.truncated:
            self.chunks.append(chunk)

    def getvalue(self) -> bytes | None:
        if self.truncated:
            return None
        return b"".join(self.chunks)


def decode_headers(raw_headers: list[tuple[bytes, bytes]]) -> dict[str, str]:
    """Decode ASGI header pairs; repeated headers are joined with a comma."""
    headers: dict[str, str] = {}
    for raw_name, raw_value in raw_headers:
        name = raw_name.decode("latin-1").lower()
        value = raw_value.decode("latin-1")
        headers[name] = f"{headers[name]}, {value}" if name in headers else value
    return headers


def parse_cookies(cookie_header: str | None) -> dict[str, str]:
    if not cookie_header:
        return {}
    cookie = SimpleCookie()
    try:
        cookie.load(cookie_header)
    except CookieError:
        logger.debug("Ignoring malformed cookie header")
        return {}
    return {name: morsel.value for name, morsel in cookie.items()}


def decode_body(body: bytes | None, content_type: str | None) -> Any:
    """Decode a buffered body: JSON and form bodies are parsed, others kept as text."""
    if not body:
        return None

    media_type = (content_type or "").split(";")[0].strip().lower()
    if "json" in media_type:
        try:
            return json.loads(body)
        except ValueError:
            logger.debug("Body declared as %s is not valid JSON", media_type)
    elif media_type == "application/x-www-form-urlencoded":
        return dict(parse_qsl(body.decode("utf-8", errors="replace"), keep_blank_values=True))
    elif media_type.startswith("multipart/"):
        return f"Multipart form data ({len(body)} bytes)"

    try:
        return body.decode("utf-8")
    except UnicodeDecodeError:
        return f"Binary data ({len(body)} bytes)"


def reason_phrase(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return ""


def build_request_view(scope: Scope, body: bytes | None) -> RequestView:
    """Translate an ASGI HTTP scope into a RequestView."""
    headers = decode_headers(scope.get("headers") or [])
    path = scope.get("path") or "/"
    query_string = (scope.get("query_string") or b"").decode("latin-1")
    url = f"{path}?{query_string}" if query_string else path
    scheme = scope.get("scheme", "http")
    client = scope.get("client")
    server = scope.get("server")

    return RequestView(
        method=scope.get("method", "GET"),
        url=url,
        path=path,
        headers=headers,
        query=dict(parse_qsl(query_string, keep_blank_values=True)),
        path_params=dict(scope.get("path_params") or {}),
        cookies=parse_cookies(headers.get("cookie")),
        body=decode_body(body, headers.get("content-type")),
        protocol=scheme,
        secure=scheme in ("https", "wss"),
        client_ip=client[0] if client else None,
        hostname=headers.get("host") or (server[0] if server else None),
        base_url=scope.get("root_path", ""),
    )


class CaptureMiddleware:
    """Capture each HTTP call and route it into the OpenAPI collections.

    Args:
        app: The wrapped ASGI application
        capture: Capture instance to use; built from config when omitted
        config: Capture configuration used when capture is omitted
        callback: Called with each CaptureRecord; may be a coroutine function
    """

    def __init__(
        self,
        app: Callable[[Scope, Receive, Send], Awaitable[None]],
        capture: EndpointCapture | None = None,
        config: CaptureConfig | dict | None = None,
        callback: CaptureCallback | None = None,
    ) -> None:
        self.app = app
        self.capture = capture or EndpointCapture(config)
        self.callback = callback

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        start_time = now_ms()
        max_size = self.capture.config.max_body_size
        request_body = _BodyBuffer(max_size)
        response_body = _BodyBuffer(max_size)
        response_start: Message = {}
        completed = False

        async def receive_wrapper() -> Message:
            message = await receive()
            if message["type"] == "http.request":
                request_body.add(message.get("body", b""))
            return message

        async def send_wrapper(message: Message) -> None:
            nonlocal completed
            if message["type"] == "http.response.start":
                response_start.update(message)
            elif message["type"] == "http.response.body":
                response_body.add(message.get("body", b""))
                if not message.get("more_body", False):
                    completed = True
            await send(message)

        await self.app(scope, receive_wrapper, send_wrapper)

        if completed:
            await self._record(scope, request_body, response_start, response_body, start_time)

    async def _record(
        self,
        scope: Scope,
        request_body: _BodyBuffer,
        response_start: Message,
        response_body: _BodyBuffer,
        start_time: float,
    ) -> None:
        try:
            request_view = build_request_view(scope, request_body.getvalue())
            response_headers = decode_headers(response_start.get("headers") or [])
            status_code = int(response_start.get("status", 200))
            response_view = ResponseView(
                status_code=status_code,
                status_message=reason_phrase(status_code),
                headers=response_headers,
                body=decode_body(response_body.getvalue(), response_headers.get("content-type")),
            )
            record = self.capture.capture_endpoint_data(request_view, response_view, start_time=start_time)
            await self.capture.handle(record)

            if self.callback is not None:
                result = self.callback(record)
                if inspect.isawaitable(result):
                    await result
        except Exception:
            logger.exception("Error capturing %s %s", scope.get("method"), scope.get("path"))
