"""The ``diag`` command: platform, namespace, port and netstat sections."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TextIO

from relay_diag.diagnostics.host import report_platform
from relay_diag.diagnostics.namespace import (
    TARGET_REQUIRED_MESSAGE,
    get_namespace_details,
    render_namespace_details,
)
from relay_diag.diagnostics.netstat import run_netstat
from relay_diag.diagnostics.ports import (
    DEFAULT_PROBE_TIMEOUT,
    run_port_diagnostics,
    write_reports,
)
from relay_diag.models.namespace import NamespaceDetails

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class DiagnosticOptions:
    """Which diagnostic sections to run.

    With no section selected the platform, namespace and ports sections run.
    NetStat only runs when asked for explicitly or with ``show_all``.
    """

    show_all: bool = False
    namespace: bool = False
    netstat: bool = False
    ports: bool = False
    platform: bool = False
    instance_count: int | None = None
    extra_ports: Sequence[int] = ()
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT

    @property
    def defaults(self) -> bool:
        return not (
            self.show_all
            or self.namespace
            or self.netstat
            or self.ports
            or self.platform
            or self.instance_count is not None
        )

    def wants(self, selected: bool) -> bool:
        return self.defaults or self.show_all or selected


def print_section_header(output: TextIO, name: str) -> None:
    """Write a visual separator introducing a report section."""
    output.write(f"\n{'*' * 30} {name} {'*' * 30}\n")


async def resolve_details(host: str | None, output: TextIO) -> NamespaceDetails:
    """Look up namespace details, reporting failures instead of raising."""
    if not host:
        return NamespaceDetails()
    try:
        return await get_namespace_details(host)
    except (OSError, UnicodeError) as e:
        log.debug("Namespace lookup for %s failed", host, exc_info=True)
        output.write(f"Error getting namespace details. {type(e).__name__}: {e}\n")
        return NamespaceDetails()


async def run_diagnostics(
    host: str | None,
    output: TextIO,
    options: DiagnosticOptions | None = None,
) -> int:
    """Run the selected diagnostic sections against ``host``.

    Args:
        host: Namespace name, namespace host name or deployment name
        output: Stream receiving the report
        options: Sections to run (defaults when omitted)

    Returns:
        Process exit code

    """
    options = options or DiagnosticOptions()

    # Before the namespace lookup so our own sockets stay out of the table
    if options.netstat or options.show_all:
        print_section_header(output, "NetStat")
        try:
            await run_netstat(output)
        except (OSError, RuntimeError) as e:
            output.write(f"ERROR: {type(e).__name__}: {e}\n")

    details = await resolve_details(host, output)

    if options.wants(options.platform):
        print_section_header(output, "OS/Platform")
        await report_platform(output, details)

    if options.wants(options.namespace):
        print_section_header(output, "Namespace Details")
        render_namespace_details(details, output)

    if options.wants(options.ports or options.instance_count is not None):
        print_section_header(output, "Ports")
        if not details.service_namespace:
            output.write(f"{TARGET_REQUIRED_MESSAGE}\n")
        else:
            reports = await run_port_diagnostics(
                details,
                gateway_instance_count=options.instance_count or 1,
                extra_ports=options.extra_ports,
                timeout=options.probe_timeout,
            )
            write_reports(reports, output)

    return 0
