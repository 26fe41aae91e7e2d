"""TCP reachability probing of relay hosts and gateway instances."""

import asyncio
import logging
import socket
from collections.abc import Iterable, Sequence
from typing import TextIO

from relay_diag.models.namespace import NamespaceDetails
from relay_diag.models.probe import ProbeReport, ProbeResult, ProbeTarget

log = logging.getLogger(__name__)

RELAY_PORTS: Sequence[int] = (80, 443, 5671, 9350, 9351, 9352, 9353, 9354)
MAX_GATEWAY_INSTANCE_COUNT = 64
DEFAULT_PROBE_TIMEOUT = 10.0


async def probe_tcp_port(
    target: ProbeTarget, timeout: float = DEFAULT_PROBE_TIMEOUT
) -> ProbeResult:
    """Dial one address/port pair and report how it went.

    Connection failures are returned as a failed result, never raised. The
    socket is closed before returning.
    """
    loop = asyncio.get_running_loop()
    start = loop.time()
    try:
        _, writer = await asyncio.wait_for(
            asyncio.open_connection(target.address, target.port), timeout=timeout
        )
    except TimeoutError:
        return ProbeResult(
            target=target,
            succeeded=False,
            elapsed_ms=(loop.time() - start) * 1000.0,
            error_kind="TimeoutError",
            error_message=f"Connect did not complete within {timeout} seconds",
        )
    except Exception as e:
        return ProbeResult(
            target=target,
            succeeded=False,
            elapsed_ms=(loop.time() - start) * 1000.0,
            error_kind=type(e).__name__,
            error_message=str(e),
        )

    elapsed_ms = (loop.time() - start) * 1000.0
    writer.close()
    try:
        await writer.wait_closed()
    except OSError as e:
        log.debug("Error closing probe socket to %s: %s", target, e)

    return ProbeResult(target=target, succeeded=True, elapsed_ms=elapsed_ms)


async def resolve_addresses(host: str) -> Sequence[str]:
    """Resolve a host name to its unique addresses, in resolver order."""
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(host, None, type=socket.SOCK_STREAM)
    addresses: list[str] = []
    for _, _, _, _, sockaddr in infos:
        address = str(sockaddr[0])
        if address not in addresses:
            addresses.append(address)
    return addresses


def probe_ports(extra_ports: Iterable[int] = ()) -> Sequence[int]:
    """Return the well-known relay ports followed by any extra ones."""
    ports = list(RELAY_PORTS)
    for port in extra_ports:
        if port not in ports:
            ports.append(port)
    return ports


async def verify_relay_ports(
    host: str,
    extra_ports: Iterable[int] = (),
    timeout: float = DEFAULT_PROBE_TIMEOUT,
) -> ProbeReport:
    """Probe every relay port on every address of ``host`` concurrently.

    A resolution failure, including a host name that cannot be encoded, is
    captured in the report's ``error`` since there is nothing to probe.
    """
    try:
        addresses = await resolve_addresses(host)
    except (OSError, UnicodeError) as e:
        log.debug("Resolving %s failed", host, exc_info=True)
        return ProbeReport(host=host, error=f"{type(e).__name__}: {e}")

    targets = [
        ProbeTarget(address=address, port=port)
        for address in addresses
        for port in probe_ports(extra_ports)
    ]
    log.debug("Probing %d endpoint(s) for %s", len(targets), host)

    results = await asyncio.gather(
        *(probe_tcp_port(target, timeout) for target in targets)
    )
    return ProbeReport(host=host, results=results)


def gateway_hosts(details: NamespaceDetails, instance_count: int) -> Sequence[str]:
    """Expand the gateway DNS template for instances ``0..instance_count-1``."""
    if not details.gateway_dns_format:
        return []
    count = max(1, min(instance_count, MAX_GATEWAY_INSTANCE_COUNT))
    return [details.gateway_host(instance) for instance in range(count)]


async def run_port_diagnostics(
    details: NamespaceDetails,
    gateway_instance_count: int = 1,
    extra_ports: Iterable[int] = (),
    timeout: float = DEFAULT_PROBE_TIMEOUT,
) -> Sequence[ProbeReport]:
    """Probe the namespace host and its gateway instances.

    Returns one report per host: the namespace first, then each gateway
    instance in index order.
    """
    extra = list(extra_ports)
    hosts = [
        details.service_namespace,
        *gateway_hosts(details, gateway_instance_count),
    ]
    return await asyncio.gather(
        *(verify_relay_ports(host, extra, timeout) for host in hosts)
    )


def write_reports(reports: Iterable[ProbeReport], output: TextIO) -> None:
    """Write rendered reports to the output stream."""
    for report in reports:
        output.write(report.render())
