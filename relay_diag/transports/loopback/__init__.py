"""Loopback transport module."""

from relay_diag.transports.loopback.config import LoopbackConfig
from relay_diag.transports.loopback.manifest import loopback_manifest
from relay_diag.transports.loopback.transport import LoopbackTransport

__all__ = ["LoopbackConfig", "LoopbackTransport", "loopback_manifest"]
