"""End-to-end hybrid connection test suite against one endpoint path."""

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass

from relay_diag.hybrid.echo import DEFAULT_BUFFER_SIZE, StreamingEchoPump
from relay_diag.hybrid.http import RelayHttpSender
from relay_diag.hybrid.scenarios import (
    LARGE_PAYLOAD_SIZE,
    run_concurrent_stream_echo,
    run_request_response_scenarios,
    run_stream_echo_scenario,
)
from relay_diag.lifecycle import ResourceLifecycleGuard
from relay_diag.orchestrator import (
    TestCase,
    TestOrchestrator,
    exit_code,
    log_suite_summary,
)
from relay_diag.transports.base import (
    ListenerStatus,
    RelayClient,
    RelayListener,
    RelayTransport,
)

log = logging.getLogger(__name__)

DEFAULT_PATH = "RelayDiagHc"
CONCURRENT_CONNECTIONS = 5


@dataclass(frozen=True, kw_only=True)
class SuiteTimeouts:
    """Seconds allowed for each remote operation of a suite run."""

    open_timeout: float = 70.0
    close_timeout: float = 20.0
    request_timeout: float = 60.0
    stream_close_timeout: float = 10.0


def log_listener_status(listener: RelayListener, status: ListenerStatus) -> None:
    """Log a listener state change, including the last error when offline."""
    match status:
        case ListenerStatus.CONNECTING:
            log.info("%s connecting", listener)
        case ListenerStatus.ONLINE:
            log.info("%s online", listener)
        case ListenerStatus.OFFLINE:
            if listener.last_error is not None:
                log.warning(
                    "%s offline. %s: %s",
                    listener,
                    type(listener.last_error).__name__,
                    listener.last_error,
                )
            else:
                log.info("%s offline", listener)


def bounded(
    action: Callable[[], Awaitable[None]], timeout: float
) -> Callable[[], Awaitable[None]]:
    """Wrap a case action so it fails with TimeoutError after ``timeout``."""

    async def run() -> None:
        async with asyncio.timeout(timeout):
            await action()

    return run


def build_test_cases(
    listener: RelayListener,
    sender: RelayHttpSender,
    client: RelayClient,
    timeouts: SuiteTimeouts,
) -> Sequence[TestCase]:
    """Return the suite's cases in execution order."""
    close_timeout = timeouts.stream_close_timeout

    async def request_response() -> None:
        await run_request_response_scenarios(listener, sender)

    async def stream_echo() -> None:
        size = DEFAULT_BUFFER_SIZE * 3 + DEFAULT_BUFFER_SIZE // 2
        await run_stream_echo_scenario(client, size, close_timeout=close_timeout)

    async def stream_large_echo() -> None:
        await run_stream_echo_scenario(
            client, LARGE_PAYLOAD_SIZE + 1, close_timeout=close_timeout
        )

    async def stream_concurrent_echo() -> None:
        await run_concurrent_stream_echo(
            client,
            DEFAULT_BUFFER_SIZE * 2,
            CONCURRENT_CONNECTIONS,
            close_timeout=close_timeout,
        )

    async def stream_empty() -> None:
        await run_stream_echo_scenario(client, 0, close_timeout=close_timeout)

    cases = [
        ("RequestResponse", request_response),
        ("StreamEcho", stream_echo),
        ("StreamLargeEcho", stream_large_echo),
        ("StreamConcurrentEcho", stream_concurrent_echo),
        ("StreamEmpty", stream_empty),
    ]
    return [
        TestCase(name=name, action=bounded(action, timeouts.request_timeout))
        for name, action in cases
    ]


async def run_hybrid_connection_tests(
    transport: RelayTransport,
    path: str = DEFAULT_PATH,
    filter_pattern: str | re.Pattern[str] | None = None,
    timeouts: SuiteTimeouts | None = None,
) -> int:
    """Run the hybrid connection suite against ``path``.

    The path is created when missing and deleted afterwards if this run
    created it. A listener is opened for the whole run and echoes every
    stream connection it accepts.

    Args:
        transport: Relay transport of the namespace under test
        path: Endpoint path
        filter_pattern: Regular expression selecting cases by name
        timeouts: Remote operation timeouts

    Returns:
        Number of failed cases

    Raises:
        Exception: Setup failures, e.g. the listener could not be opened

    """
    timeouts = timeouts or SuiteTimeouts()
    guard = ResourceLifecycleGuard(transport=transport)
    async with guard.guarded(path) as state:
        listener = transport.create_listener(path, dynamic=not state.known_to_exist)
        listener.set_status_handler(
            lambda status: log_listener_status(listener, status)
        )
        pump = StreamingEchoPump(
            listener, close_timeout=timeouts.stream_close_timeout
        )
        try:
            log.info("Opening %s", listener)
            await listener.open(timeouts.open_timeout)
            pump.start()

            async with RelayHttpSender.from_transport(
                transport, path, timeouts.request_timeout
            ) as sender:
                cases = build_test_cases(
                    listener, sender, transport.create_client(path), timeouts
                )
                results = await TestOrchestrator(cases=cases).run_suite(
                    filter_pattern
                )

            log_suite_summary(results)
            return exit_code(results)
        finally:
            await pump.stop()
            try:
                await listener.close(timeouts.close_timeout)
            except Exception as e:
                log.warning(
                    "Closing %s failed. %s: %s", listener, type(e).__name__, e
                )
            listener.set_status_handler(None)
