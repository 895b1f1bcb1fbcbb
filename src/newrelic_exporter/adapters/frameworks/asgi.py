"""ASGI application serving the exporter's metrics and index page.

The app is framework-agnostic and runs under any ASGI server (uvicorn,
hypercorn, daphne).
"""

import json
import logging
from collections.abc import Awaitable, Callable, Coroutine
from html import escape
from typing import Any

from newrelic_exporter.adapters.prometheus import build_collector_registry, render_latest
from newrelic_exporter.core.exporter import Exporter

logger = logging.getLogger(__name__)

# ASGI type aliases
Scope = dict[str, Any]
Receive = Callable[[], Coroutine[Any, Any, dict[str, Any]]]
Send = Callable[[dict[str, Any]], Coroutine[Any, Any, None]]
ASGIApp = Callable[[Scope, Receive, Send], Coroutine[Any, Any, None]]

INDEX_TEMPLATE = """<html>
<head><title>NewRelic exporter</title></head>
<body>
<h1>NewRelic exporter</h1>
<p><a href='{metrics_path}'>Metrics</a></p>
</body>
</html>
"""


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


async def _handle_endpoint(
    send: Send,
    endpoint_func: Callable[[], Awaitable[tuple[str, str]]],
    log_message: str,
) -> None:
    """Execute an endpoint function with error handling and send response.

    Args:
        send: ASGI send callable for writing response.
        endpoint_func: Async function returning (body, content type).
        log_message: Message to log on error.
    """
    try:
        body, content_type = await endpoint_func()
        await _send_response(send, 200, content_type, body)
    except Exception:
        logger.exception(log_message)
        error_body = json.dumps({"error": "Internal Server Error"})
        await _send_response(send, 500, "application/json", error_body)


async def _handle_lifespan(receive: Receive, send: Send, exporter: Exporter) -> None:
    """Answer lifespan events, closing the upstream client on shutdown."""
    while True:
        message = await receive()
        if message["type"] == "lifespan.startup":
            await send({"type": "lifespan.startup.complete"})
        elif message["type"] == "lifespan.shutdown":
            close = getattr(exporter.api, "aclose", None)
            if close is not None:
                await close()
            await send({"type": "lifespan.shutdown.complete"})
            return


def create_asgi_app(exporter: Exporter, metrics_path: str = "/metrics") -> ASGIApp:
    """Create an ASGI app exposing ``metrics_path`` and an index page at ``/``.

    Every request on ``metrics_path`` runs one collection cycle before
    rendering. Upstream failures only show up as the
    ``newrelic_exporter_last_scrape_error`` gauge.

    Args:
        exporter: Exporter whose registry is rendered.
        metrics_path: Path of the metrics endpoint.

    Returns:
        ASGI application callable.
    """
    collectors = build_collector_registry(exporter.registry)
    index_page = INDEX_TEMPLATE.format(metrics_path=escape(metrics_path, quote=True))

    async def scrape_and_render() -> tuple[str, str]:
        await exporter.collect()
        return render_latest(collectors)

    async def app(scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "lifespan":
            await _handle_lifespan(receive, send, exporter)
            return
        if scope["type"] != "http":
            return

        path = scope["path"]

        # @tra: Adapter.ASGI.Metrics.Scrape
        # @tra: Adapter.ASGI.Metrics.UpstreamError
        # @tra: Adapter.ASGI.Metrics.InternalError
        if path == metrics_path:
            await _handle_endpoint(send, scrape_and_render, "Error serving metrics endpoint")
        # @tra: Adapter.ASGI.Index
        elif path == "/":
            await _send_response(send, 200, "text/html; charset=utf-8", index_page)
        # @tra: Adapter.ASGI.NotFound
        else:
            await _send_response(send, 404, "text/plain", "Not Found")

    return app
