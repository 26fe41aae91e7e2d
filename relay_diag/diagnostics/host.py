"""Host platform and clock report."""

import logging
import os
import platform
import sys
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import TextIO

import aiohttp

from relay_diag.diagnostics.namespace import DETAILS_FORMAT
from relay_diag.models.namespace import NamespaceDetails

log = logging.getLogger(__name__)

SERVER_TIME_TIMEOUT = 30.0


async def fetch_server_time(url: str, timeout: float = SERVER_TIME_TIMEOUT) -> str:
    """Return the ``Date`` header the relay front end sends for ``GET url``."""
    async with (
        aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout)) as session,
        session.get(url) as response,
    ):
        return response.headers.get("Date", "")


def local_time_string(now: datetime) -> str:
    """RFC 1123 style timestamp with a numeric UTC offset."""
    return now.astimezone().strftime("%a, %d %b %Y %H:%M:%S (%z)")


async def report_platform(
    output: TextIO,
    details: NamespaceDetails,
    now: datetime | None = None,
) -> None:
    """Write OS, runtime and clock information.

    When the namespace is known its server clock is included, so skew
    between this machine and the relay shows up side by side.
    """

    def line(name: str, value: object) -> None:
        output.write(DETAILS_FORMAT.format(name=f"{name}:", value=value))

    line("OSVersion", platform.platform())
    line("ProcessorCount", os.cpu_count())
    line("Is64BitOperatingSystem", sys.maxsize > 2**32)
    line("Python Version", platform.python_version())
    line("aiohttp Version", aiohttp.__version__)

    if details.service_namespace:
        url = f"https://{details.service_namespace}"
        try:
            line("Azure Time", await fetch_server_time(url))
        except (aiohttp.ClientError, TimeoutError, ValueError) as e:
            log.debug("GET %s failed", url, exc_info=True)
            line("Azure Time", f"unavailable ({type(e).__name__}: {e})")

    utc_now = now or datetime.now(timezone.utc)
    line("Machine Time(UTC)", format_datetime(utc_now, usegmt=True))
    line("Machine Time(Local)", local_time_string(utc_now))
