"""ASGI adapter for the line protocol write endpoint.

This adapter provides a framework-agnostic ASGI application that can be used
with any ASGI server (uvicorn, hypercorn, daphne) without requiring FastAPI
as a dependency.
"""

import json
from collections.abc import Callable, Coroutine
from typing import Any
from urllib.parse import parse_qs

from influxstream.adapters.frameworks.query_params import _parse_precision_param
from influxstream.connector import Connector
from influxstream.core.errors import IngestionError, ParseError
from influxstream.core.logs import log_exception

# ASGI type aliases
Scope = dict[str, Any]
Receive = Callable[[], Coroutine[Any, Any, dict[str, Any]]]
Send = Callable[[dict[str, Any]], Coroutine[Any, Any, None]]
ASGIApp = Callable[[Scope, Receive, Send], Coroutine[Any, Any, None]]

WRITE_PATHS = frozenset({"/api/v2/write", "/write"})

SUCCESS_BODY = json.dumps({"message": "Success"})


def _parse_query_params(scope: Scope) -> dict[str, list[str]]:
    """Parse query string from ASGI scope into parameter dictionary.

    Args:
        scope: ASGI scope dictionary containing request metadata.

    Returns:
        Dictionary mapping parameter names to lists of values.
        Returns empty dict if query_string is missing or empty.
    """
    query_string = scope.get("query_string", b"").decode(errors="replace")
    return parse_qs(query_string)


async def _read_body(receive: Receive) -> bytes:
    """Collect the full request body from ``http.request`` messages."""
    chunks: list[bytes] = []
    while True:
        message = await receive()
        if message["type"] == "http.disconnect":
            break
        chunks.append(message.get("body", b""))
        if not message.get("more_body", False):
            break
    return b"".join(chunks)


async def _send_response(send: Send, status: int, content_type: str, body: str) -> None:
    """Send an HTTP response with headers and body.

    Args:
        send: ASGI send callable for writing response.
        status: HTTP status code.
        content_type: Content-Type header value.
        body: Response body as string (will be encoded to bytes).
    """
    headers = [(b"content-type", content_type.encode())]
    await send({"type": "http.response.start", "status": status, "headers": headers})
    await send({"type": "http.response.body", "body": body.encode()})


async def _handle_write(
    connector: Connector, scope: Scope, receive: Receive, send: Send
) -> None:
    """Ingest the request body and map the outcome to a status code."""
    params = _parse_query_params(scope)
    precision = _parse_precision_param(params)
    body = await _read_body(receive)
    try:
        await connector.ingest(body, precision)
    except ParseError as exc:
        await _send_response(
            send, 400, "application/json", json.dumps({"error": str(exc)})
        )
    except IngestionError as exc:
        log_exception("Error ingesting line protocol", path=scope["path"])
        await _send_response(
            send, 500, "application/json", json.dumps({"error": str(exc)})
        )
    else:
        await _send_response(send, 200, "application/json", SUCCESS_BODY)


def create_asgi_app(connector: Connector) -> ASGIApp:
    """Create an ASGI app with the /api/v2/write and /write endpoints.

    Args:
        connector: Connector that ingests request bodies.

    Returns:
        ASGI application callable.
    """

    async def app(scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            return

        path = scope["path"]
        if path not in WRITE_PATHS:
            await _send_response(send, 404, "text/plain", "Not Found")
        elif scope.get("method", "GET") != "POST":
            await _send_response(send, 405, "text/plain", "Method Not Allowed")
        else:
            await _handle_write(connector, scope, receive, send)

    return app
