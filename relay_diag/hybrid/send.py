"""The ``hc send`` command: send requests to an endpoint and time them."""

import asyncio
import logging

from relay_diag.hybrid.http import DEFAULT_REQUEST_TIMEOUT, RelayHttpSender
from relay_diag.hybrid.suite import DEFAULT_PATH
from relay_diag.transports.base import RelayTransport

log = logging.getLogger(__name__)


async def send_requests(
    transport: RelayTransport,
    path: str = DEFAULT_PATH,
    count: int = 1,
    method: str = "GET",
    body: str | None = None,
    timeout: float = DEFAULT_REQUEST_TIMEOUT,
) -> int:
    """Send ``count`` requests one after another, logging each round trip.

    The response status does not affect the exit code; transport errors
    propagate.
    """
    data = body.encode() if body is not None else None
    loop = asyncio.get_running_loop()

    async with RelayHttpSender.from_transport(transport, path, timeout) as sender:
        for _ in range(count):
            start = loop.time()
            await sender.send(method.upper(), data)
            log.info("Elapsed:  %d ms", (loop.time() - start) * 1000)

    return 0
