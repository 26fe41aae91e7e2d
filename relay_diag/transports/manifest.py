"""What a relay transport plugin exports through its entry point."""

from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass

from pydantic import BaseModel

from relay_diag.transports.base import RelayTransport


@dataclass(frozen=True, kw_only=True)
class TransportManifest[ConfigT: BaseModel]:
    """Pairs a transport's settings model with the factory that opens it.

    The CLI validates ``--transport-config`` against ``config_cls`` and then
    enters ``transport_factory(config)``. The factory yields a connected
    ``RelayTransport`` and releases its sessions and sockets on exit.
    """

    config_cls: type[ConfigT]
    transport_factory: Callable[[ConfigT], AbstractAsyncContextManager[RelayTransport]]
