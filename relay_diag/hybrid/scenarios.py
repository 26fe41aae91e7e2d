"""Request/response and duplex stream scenarios run against a live endpoint."""

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from relay_diag.errors import ScenarioError
from relay_diag.hybrid.echo import (
    DEFAULT_BUFFER_SIZE,
    DEFAULT_CLOSE_TIMEOUT,
    pump_stream,
)
from relay_diag.hybrid.http import RelayHttpSender, log_http_request
from relay_diag.hybrid.messages import get_message_body
from relay_diag.transports.base import (
    RelayClient,
    RelayedHttpContext,
    RelayedHttpRequest,
    RelayListener,
)

log = logging.getLogger(__name__)

SMALL_RESPONSE = b"small response"
LARGE_PAYLOAD_SIZE = 65536


@dataclass(frozen=True, kw_only=True)
class RequestResponseScenario:
    """One HTTP exchange through the relay and the response the listener sends.

    Small bodies fit on the listener's control channel; large ones make the
    relay switch the exchange to a rendezvous connection.
    """

    name: str
    method: str
    request_body: bytes | None
    response_body: bytes


REQUEST_RESPONSE_SCENARIOS: Sequence[RequestResponseScenario] = (
    RequestResponseScenario(
        name="PostLargeRequestSmallResponse",
        method="POST",
        request_body=b"a" * LARGE_PAYLOAD_SIZE,
        response_body=SMALL_RESPONSE,
    ),
    RequestResponseScenario(
        name="PostLargeRequestLargeResponse",
        method="POST",
        request_body=b"b" * LARGE_PAYLOAD_SIZE,
        response_body=b"b" * LARGE_PAYLOAD_SIZE,
    ),
    RequestResponseScenario(
        name="GetLargeResponse",
        method="GET",
        request_body=None,
        response_body=b"b" * LARGE_PAYLOAD_SIZE,
    ),
    RequestResponseScenario(
        name="GetSmallResponse",
        method="GET",
        request_body=None,
        response_body=SMALL_RESPONSE,
    ),
)


async def run_request_response_scenario(
    listener: RelayListener,
    sender: RelayHttpSender,
    scenario: RequestResponseScenario,
) -> None:
    """Send one request and check what both ends observed.

    A fresh request handler is installed before the request goes out; it
    records every request it sees and answers with the scenario's body.

    Raises:
        ScenarioError: If the status is not 2xx, the listener did not see
            exactly one request with the full body, or the response body
            differs

    """
    log.info("Scenario %s", scenario.name)
    observed: list[RelayedHttpRequest] = []

    async def handle(context: RelayedHttpContext) -> None:
        log_http_request(context.request)
        observed.append(context.request)
        context.response.headers["Content-Type"] = "application/octet-stream"
        await context.response.write(scenario.response_body)
        await context.response.close()

    listener.request_handler = handle
    exchange = await sender.send(scenario.method, scenario.request_body)

    if not exchange.succeeded:
        raise ScenarioError(
            f"{scenario.name}: expected a 2xx status, got "
            f"{exchange.status} {exchange.reason}"
        )
    if len(observed) != 1:
        raise ScenarioError(
            f"{scenario.name}: listener observed {len(observed)} request(s)"
        )

    expected_request = scenario.request_body or b""
    if observed[0].body != expected_request:
        raise ScenarioError(
            f"{scenario.name}: listener received {len(observed[0].body)} "
            f"request bytes, expected {len(expected_request)}"
        )
    if exchange.body != scenario.response_body:
        raise ScenarioError(
            f"{scenario.name}: received {len(exchange.body)} response bytes, "
            f"expected {len(scenario.response_body)}"
        )


async def run_request_response_scenarios(
    listener: RelayListener,
    sender: RelayHttpSender,
    scenarios: Sequence[RequestResponseScenario] = REQUEST_RESPONSE_SCENARIOS,
) -> None:
    """Run the scenarios one after another on a shared listener and sender."""
    for scenario in scenarios:
        await run_request_response_scenario(listener, sender, scenario)


def stream_payload(size: int) -> bytes:
    body = get_message_body(None, size) or ""
    return body.encode()


async def run_stream_echo_scenario(
    client: RelayClient,
    size: int,
    *,
    write_size: int = DEFAULT_BUFFER_SIZE,
    close_timeout: float = DEFAULT_CLOSE_TIMEOUT,
) -> None:
    """Write ``size`` bytes, half-close, and expect them echoed back.

    The payload goes out in ``write_size`` chunks so it spans several reads
    on the listener side. Reading stops once the listener closes its end.

    Raises:
        ScenarioError: If the echoed bytes differ from what was written

    """
    payload = stream_payload(size)
    connection = await client.create_connection()
    log.info("Opened %s, writing %d bytes", connection, len(payload))

    received = bytearray()
    try:
        for offset in range(0, len(payload), write_size):
            await connection.write(payload[offset : offset + write_size])
        await connection.shutdown()
        await pump_stream(connection, received=received, close_timeout=close_timeout)
    except BaseException:
        await connection.close()
        raise

    if bytes(received) != payload:
        raise ScenarioError(
            f"{connection}: echoed {len(received)} bytes, expected {len(payload)}"
        )


async def run_concurrent_stream_echo(
    client: RelayClient,
    size: int,
    connections: int,
    *,
    close_timeout: float = DEFAULT_CLOSE_TIMEOUT,
) -> None:
    """Run several echo scenarios at once over separate connections."""
    await asyncio.gather(
        *(
            run_stream_echo_scenario(client, size, close_timeout=close_timeout)
            for _ in range(connections)
        )
    )
