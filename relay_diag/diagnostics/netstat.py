"""Capture the machine's socket table with netstat."""

import asyncio
import logging
import sys
from collections.abc import Sequence
from typing import TextIO

log = logging.getLogger(__name__)

NETSTAT_TIMEOUT = 30.0


def netstat_command() -> Sequence[str]:
    """Return the netstat invocation for the current platform."""
    if sys.platform == "win32":
        return ("netstat", "-ano", "-p", "tcp")
    return ("netstat", "-an")


async def run_netstat(
    output: TextIO,
    command: Sequence[str] | None = None,
    timeout: float = NETSTAT_TIMEOUT,
) -> None:
    """Run netstat and copy its output, prefixing stderr lines with ``ERROR:``.

    Raises:
        TimeoutError: If the process does not finish within ``timeout``
        RuntimeError: If the process exits with a non-zero code

    """
    args = list(command or netstat_command())
    display = " ".join(args)
    log.debug("Executing '%s'", display)

    process = await asyncio.create_subprocess_exec(
        *args,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        async with asyncio.timeout(timeout):
            stdout, stderr = await process.communicate()
    except TimeoutError:
        process.kill()
        await process.wait()
        raise TimeoutError(
            f"Executing '{display}' did not complete within {timeout} seconds"
        ) from None

    for text in stdout.decode(errors="replace").splitlines():
        output.write(f"{text}\n")
    for text in stderr.decode(errors="replace").splitlines():
        output.write(f"ERROR: {text}\n")

    if process.returncode != 0:
        raise RuntimeError(
            f"Executing '{display}' failed with exit code: {process.returncode}"
        )
