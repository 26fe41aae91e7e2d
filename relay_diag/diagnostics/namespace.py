"""Resolve a relay namespace to its deployment topology."""

import asyncio
import logging
import re
import socket
from typing import TextIO

from relay_diag.models.namespace import NamespaceDetails

log = logging.getLogger(__name__)

DEFAULT_SUFFIX = "servicebus.windows.net"
NAMESPACE_PREFIX_PATTERN = re.compile("(ns-sb2-|ns-sbeh-|ns-eh2-)", re.IGNORECASE)
DEPLOYMENT_PATTERN = re.compile(
    r"^\w*(PROD|PPE|INT|BVT)\w*-\w{3,}-\d{3,}$", re.IGNORECASE
)
DETAILS_FORMAT = "{name:<26}{value}\n"
TARGET_REQUIRED_MESSAGE = "Relay Namespace or ConnectionString is required"


async def lookup_host(host: str) -> tuple[str, list[str], list[str]]:
    """Return the canonical host name, aliases and addresses for ``host``."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, socket.gethostbyname_ex, host)


async def get_namespace_details(name_or_host: str) -> NamespaceDetails:
    """Work out the deployment a namespace (or deployment name) lives on.

    A bare deployment-cluster name such as ``prod-by3-001`` is returned as is
    without a DNS lookup. Anything else is treated as a namespace, qualified
    with the default suffix when it has no dot, and resolved.

    Raises:
        OSError: If the DNS lookup fails
        UnicodeError: If the host name has an empty or over-long label

    """
    name = name_or_host.strip()
    if DEPLOYMENT_PATTERN.match(name) and "." not in name:
        return NamespaceDetails(deployment=name.upper())

    _, dot, suffix = name.partition(".")
    if dot:
        service_namespace = name
    else:
        service_namespace = f"{name}.{DEFAULT_SUFFIX}"
        suffix = DEFAULT_SUFFIX

    host_name, aliases, addresses = await lookup_host(service_namespace)
    log.debug("%s resolved to %s (%s)", service_namespace, host_name, addresses)

    # e.g. ns-sb2-prod-by3-003.cloudapp.net -> prod-by3-003
    deployment = NAMESPACE_PREFIX_PATTERN.sub("", host_name.split(".")[0])

    return NamespaceDetails(
        service_namespace=service_namespace,
        host_name=host_name,
        suffix=suffix,
        deployment=deployment.upper(),
        address_list=addresses,
        gateway_dns_format=f"g{{}}-{deployment}-sb.{suffix}",
        aliases=aliases,
    )


def render_namespace_details(details: NamespaceDetails, output: TextIO) -> None:
    """Write the known namespace fields, one per line."""
    fields = [
        ("ServiceNamespace", details.service_namespace),
        ("Address(VIP)", ",".join(details.address_list)),
        ("Deployment", details.deployment),
        ("HostName", details.host_name),
        ("GatewayDnsFormat", details.gateway_dns_format),
    ]

    found_any = False
    for name, value in fields:
        if value:
            output.write(DETAILS_FORMAT.format(name=f"{name}:", value=value))
            found_any = True

    if not found_any:
        output.write(f"{TARGET_REQUIRED_MESSAGE}\n")
