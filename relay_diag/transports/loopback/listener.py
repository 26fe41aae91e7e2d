"""Listener and sender for the loopback relay."""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field

import aiohttp

from relay_diag.transports.base import (
    AUTHORIZATION_HEADER,
    ListenerStatus,
    RelayClient,
    RelayListener,
    ResourceNotFoundError,
    StreamConnection,
)
from relay_diag.transports.loopback.stream import WebSocketStreamConnection

log = logging.getLogger(__name__)

TRACKING_ID_HEADER = "X-Relay-Tracking-Id"


@dataclass(kw_only=True)
class LoopbackNamespace:
    """Registered paths and online listeners of the in-process relay."""

    resources: dict[str, bool] = field(default_factory=dict)
    listeners: dict[str, "LoopbackListener"] = field(default_factory=dict)
    connections: set[WebSocketStreamConnection] = field(default_factory=set)

    def listener_count(self, path: str) -> int:
        return 1 if path in self.listeners else 0

    async def close_connections(self) -> None:
        """Close every server-side stream still open."""
        for connection in list(self.connections):
            await connection.close()
        self.connections.clear()


class LoopbackListener(RelayListener):
    """Listener registered directly in the loopback namespace."""

    def __init__(
        self, namespace: LoopbackNamespace, path: str, *, dynamic: bool
    ) -> None:
        super().__init__(path)
        self._namespace = namespace
        self._dynamic = dynamic
        self._pending: asyncio.Queue[WebSocketStreamConnection | None] = (
            asyncio.Queue()
        )
        self.is_online = False

    async def open(self, timeout: float) -> None:
        async with asyncio.timeout(timeout):
            self.notify_status(ListenerStatus.CONNECTING)
            if self.path not in self._namespace.resources:
                if not self._dynamic:
                    error = ResourceNotFoundError(
                        f"Endpoint '{self.path}' does not exist"
                    )
                    self.last_error = error
                    raise error
                log.debug("Binding dynamic endpoint %s", self.path)
            if self.path in self._namespace.listeners:
                raise RuntimeError(f"Endpoint '{self.path}' already has a listener")
            self._namespace.listeners[self.path] = self
            self.is_online = True
        self.notify_status(ListenerStatus.ONLINE)

    async def close(self, timeout: float) -> None:
        async with asyncio.timeout(timeout):
            if self._namespace.listeners.get(self.path) is self:
                del self._namespace.listeners[self.path]
            was_online = self.is_online
            self.is_online = False
            while not self._pending.empty():
                pending = self._pending.get_nowait()
                if pending is not None:
                    await pending.close()
            self._pending.put_nowait(None)
        if was_online:
            self.notify_status(ListenerStatus.OFFLINE)

    async def accept_connection(self) -> StreamConnection | None:
        connection = await self._pending.get()
        if connection is None:
            # Keep the shutdown signal visible to any other waiter.
            self._pending.put_nowait(None)
        return connection

    def deliver(self, connection: WebSocketStreamConnection) -> None:
        """Queue an inbound connection for ``accept_connection``."""
        self._pending.put_nowait(connection)


@dataclass(frozen=True, kw_only=True)
class LoopbackClient(RelayClient):
    """Sender that dials the loopback relay's WebSocket route."""

    session: aiohttp.ClientSession = field(repr=False)
    url: str
    token: str | None = None

    async def create_connection(self) -> StreamConnection:
        tracking_id = str(uuid.uuid4())
        headers = {TRACKING_ID_HEADER: tracking_id}
        if self.token is not None:
            headers[AUTHORIZATION_HEADER] = self.token
        ws = await self.session.ws_connect(self.url, headers=headers)
        return WebSocketStreamConnection(ws, tracking_id)
