"""Tests for the diag command."""

import io
from collections.abc import Generator
from unittest.mock import AsyncMock, patch

import pytest

from relay_diag.diagnostics.commands import (
    DiagnosticOptions,
    print_section_header,
    run_diagnostics,
)
from relay_diag.models.namespace import NamespaceDetails
from relay_diag.models.probe import ProbeReport

MODULE = "relay_diag.diagnostics.commands"
DETAILS = NamespaceDetails(
    service_namespace="foo.servicebus.windows.net",
    deployment="PROD-BY3-003",
    gateway_dns_format="g{}-prod-by3-003-sb.servicebus.windows.net",
)


def header(name: str) -> str:
    return f"{'*' * 30} {name} {'*' * 30}"


@pytest.fixture
def mocks() -> Generator[dict[str, AsyncMock], None, None]:
    """Patch every section's worker."""
    targets = {
        "details": AsyncMock(return_value=DETAILS),
        "platform": AsyncMock(),
        "netstat": AsyncMock(),
        "ports": AsyncMock(return_value=[ProbeReport(host="foo")]),
    }
    with (
        patch(f"{MODULE}.get_namespace_details", targets["details"]),
        patch(f"{MODULE}.report_platform", targets["platform"]),
        patch(f"{MODULE}.run_netstat", targets["netstat"]),
        patch(f"{MODULE}.run_port_diagnostics", targets["ports"]),
    ):
        yield targets


def test_print_section_header() -> None:
    output = io.StringIO()

    print_section_header(output, "Ports")

    assert output.getvalue() == f"\n{header('Ports')}\n"


async def test_default_sections(mocks: dict[str, AsyncMock]) -> None:
    """Platform, namespace and ports run by default; netstat does not."""
    output = io.StringIO()

    exit_code = await run_diagnostics("foo", output)

    text = output.getvalue()
    assert exit_code == 0
    assert header("OS/Platform") in text
    assert header("Namespace Details") in text
    assert header("Ports") in text
    assert header("NetStat") not in text
    assert "Checking foo" in text
    mocks["netstat"].assert_not_called()
    mocks["ports"].assert_awaited_once_with(
        DETAILS, gateway_instance_count=1, extra_ports=(), timeout=10.0
    )


async def test_all_includes_netstat_first(mocks: dict[str, AsyncMock]) -> None:
    output = io.StringIO()

    await run_diagnostics("foo", output, DiagnosticOptions(show_all=True))

    text = output.getvalue()
    assert text.index(header("NetStat")) < text.index(header("OS/Platform"))
    mocks["netstat"].assert_awaited_once()


async def test_instance_ports_selects_ports_only(
    mocks: dict[str, AsyncMock],
) -> None:
    """Asking for gateway instances runs the ports section with that count."""
    output = io.StringIO()

    await run_diagnostics("foo", output, DiagnosticOptions(instance_count=4))

    text = output.getvalue()
    assert header("Ports") in text
    assert header("OS/Platform") not in text
    assert mocks["ports"].await_args.kwargs["gateway_instance_count"] == 4


async def test_lookup_failure_is_reported(mocks: dict[str, AsyncMock]) -> None:
    """DNS errors are written out and the remaining sections still run."""
    mocks["details"].side_effect = OSError("Name or service not known")
    output = io.StringIO()

    exit_code = await run_diagnostics("missing", output)

    text = output.getvalue()
    assert exit_code == 0
    assert "Error getting namespace details. OSError: Name or service" in text
    assert "Relay Namespace or ConnectionString is required" in text
    mocks["ports"].assert_not_called()


async def test_netstat_failure_is_reported(mocks: dict[str, AsyncMock]) -> None:
    mocks["netstat"].side_effect = FileNotFoundError("netstat")
    output = io.StringIO()

    await run_diagnostics("foo", output, DiagnosticOptions(netstat=True))

    assert "ERROR: FileNotFoundError: netstat" in output.getvalue()


@pytest.mark.parametrize("host", ["a" * 64, "foo..bar"])
async def test_unencodable_host_is_reported(host: str) -> None:
    """A name the resolver cannot encode is reported like a DNS failure."""
    output = io.StringIO()

    exit_code = await run_diagnostics(
        host, output, DiagnosticOptions(namespace=True)
    )

    text = output.getvalue()
    assert exit_code == 0
    assert "Error getting namespace details. UnicodeError: " in text
    assert "Relay Namespace or ConnectionString is required" in text
