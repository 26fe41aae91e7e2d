"""The ``hc listen`` command: answer relayed requests until stopped."""

import asyncio
import logging
from dataclasses import dataclass

from relay_diag.hybrid.echo import StreamingEchoPump
from relay_diag.hybrid.http import log_http_request
from relay_diag.hybrid.messages import DEFAULT_LISTEN_RESPONSE
from relay_diag.hybrid.suite import DEFAULT_PATH, SuiteTimeouts, log_listener_status
from relay_diag.lifecycle import ResourceLifecycleGuard
from relay_diag.transports.base import (
    RelayedHttpContext,
    RelayTransport,
    RequestHandler,
)

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class ListenOptions:
    """How the listener answers each request."""

    response: str = DEFAULT_LISTEN_RESPONSE
    chunk_length: int | None = None
    status_code: int = 200
    reason: str | None = None
    content_type: str = "text/html"


def make_response_handler(options: ListenOptions) -> RequestHandler:
    """Build a request handler writing the configured response in chunks."""
    body = options.response.encode()
    chunk_length = options.chunk_length or len(body) or 1

    async def handle(context: RelayedHttpContext) -> None:
        log_http_request(context.request)
        response = context.response
        try:
            response.status_code = options.status_code
            response.reason = options.reason
            response.headers["Content-Type"] = options.content_type
            for offset in range(0, len(body), chunk_length):
                chunk = body[offset : offset + chunk_length]
                await response.write(chunk)
                log.debug("Sent %d bytes", len(chunk))
            await response.close()
        except Exception as e:
            log.error("Request handler error. %s: %s", type(e).__name__, e)

    return handle


async def run_listener(
    transport: RelayTransport,
    path: str = DEFAULT_PATH,
    options: ListenOptions | None = None,
    stop_event: asyncio.Event | None = None,
    timeouts: SuiteTimeouts | None = None,
) -> int:
    """Listen on ``path`` until ``stop_event`` is set or the task is cancelled.

    Stream connections are echoed back. The path is created when missing and
    deleted again on the way out if this call created it.
    """
    options = options or ListenOptions()
    stop_event = stop_event or asyncio.Event()
    timeouts = timeouts or SuiteTimeouts()

    guard = ResourceLifecycleGuard(transport=transport)
    async with guard.guarded(path) as state:
        listener = transport.create_listener(path, dynamic=not state.known_to_exist)
        listener.set_status_handler(
            lambda status: log_listener_status(listener, status)
        )
        listener.request_handler = make_response_handler(options)
        pump = StreamingEchoPump(
            listener, close_timeout=timeouts.stream_close_timeout
        )

        log.info("Opening %s", listener)
        await listener.open(timeouts.open_timeout)
        try:
            pump.start()
            log.info("Listening on %s, interrupt to stop", transport.http_url(path))
            await stop_event.wait()
        finally:
            await pump.stop()
            await listener.close(timeouts.close_timeout)
            listener.set_status_handler(None)

    return 0
