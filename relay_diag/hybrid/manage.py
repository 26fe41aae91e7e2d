"""The ``hc create``, ``hc list`` and ``hc delete`` commands."""

import logging
from typing import TextIO

from relay_diag.transports.base import RelayTransport

log = logging.getLogger(__name__)

LIST_FORMAT = "{path:<38} {listener_count:<15} {requires:<20}"


async def create_endpoint(
    transport: RelayTransport, path: str, *, requires_client_authorization: bool
) -> int:
    log.info("Creating endpoint '%s'...", path)
    await transport.create_resource(
        path, requires_client_authorization=requires_client_authorization
    )
    log.info("Creating endpoint '%s' succeeded", path)
    return 0


async def list_endpoints(transport: RelayTransport, output: TextIO) -> int:
    """Write one table row per endpoint registered in the namespace."""
    resources = await transport.list_resources()
    header = LIST_FORMAT.format(
        path="Path", listener_count="ListenerCount", requires="RequiresClientAuth"
    )
    output.write(f"{header.rstrip()}\n")
    for resource in resources:
        row = LIST_FORMAT.format(
            path=resource.path,
            listener_count=resource.listener_count,
            requires=str(resource.requires_client_authorization),
        )
        output.write(f"{row.rstrip()}\n")
    return 0


async def delete_endpoint(transport: RelayTransport, path: str) -> int:
    log.info("Deleting endpoint '%s'...", path)
    await transport.delete_resource(path)
    log.info("Deleting endpoint '%s' succeeded", path)
    return 0
