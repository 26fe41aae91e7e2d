"""Models describing a relay namespace's deployment topology."""

from collections.abc import Sequence
from dataclasses import dataclass


@dataclass(frozen=True, kw_only=True)
class NamespaceDetails:
    """What is known about a namespace.

    Empty values mean "unknown". When the input was a bare deployment name
    only ``deployment`` is set; a DNS-backed lookup fills every field.
    """

    service_namespace: str = ""
    host_name: str = ""
    suffix: str = ""
    deployment: str = ""
    address_list: Sequence[str] = ()
    gateway_dns_format: str = ""
    aliases: Sequence[str] = ()

    def gateway_host(self, instance: int) -> str:
        """Expand the gateway DNS template for one instance index."""
        return self.gateway_dns_format.format(instance)
