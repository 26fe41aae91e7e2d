"""Loopback transport manifest."""

from relay_diag.transports.loopback.config import LoopbackConfig
from relay_diag.transports.loopback.transport import LoopbackTransport
from relay_diag.transports.manifest import TransportManifest

loopback_manifest = TransportManifest(
    config_cls=LoopbackConfig,
    transport_factory=LoopbackTransport.from_config,
)
