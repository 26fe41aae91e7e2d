"""In-process relay served by a local aiohttp application.

HTTP requests sent to ``/<path>`` are handed to the listener registered for
that path; WebSocket upgrades on ``/$hc/<path>`` become stream connections
that the listener accepts.
"""

import logging
import uuid
from collections.abc import AsyncGenerator, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

import aiohttp
from aiohttp import web

from relay_diag.models.resource import ResourceDescription
from relay_diag.transports.base import (
    AUTHORIZATION_HEADER,
    RelayClient,
    RelayedHttpContext,
    RelayedHttpRequest,
    RelayedHttpResponse,
    RelayListener,
    RelayTransport,
    ResourceNotFoundError,
)
from relay_diag.transports.loopback.config import LoopbackConfig
from relay_diag.transports.loopback.listener import (
    TRACKING_ID_HEADER,
    LoopbackClient,
    LoopbackListener,
    LoopbackNamespace,
)
from relay_diag.transports.loopback.stream import WebSocketStreamConnection

log = logging.getLogger(__name__)

STREAM_PREFIX = "$hc"


class LoopbackHttpResponse(RelayedHttpResponse):
    """Relayed response streamed straight back to the HTTP sender."""

    def __init__(self, request: web.Request) -> None:
        super().__init__()
        self._request = request
        self._closed = False
        self.stream: web.StreamResponse | None = None

    async def prepare(self) -> web.StreamResponse:
        if self.stream is None:
            self.stream = web.StreamResponse(
                status=self.status_code, reason=self.reason, headers=self.headers
            )
            await self.stream.prepare(self._request)
        return self.stream

    async def write(self, data: bytes) -> None:
        stream = await self.prepare()
        await stream.write(data)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        stream = await self.prepare()
        await stream.write_eof()


@dataclass(frozen=True, kw_only=True)
class LoopbackRoutes:
    """aiohttp handlers that route traffic to registered listeners."""

    namespace: LoopbackNamespace
    token: str | None

    def _reject(self, request: web.Request) -> web.Response | None:
        path = request.match_info["path"]
        if path not in self.namespace.listeners:
            return web.Response(status=404, text=f"Endpoint '{path}' has no listener")

        requires_auth = self.namespace.resources.get(path, True)
        if (
            requires_auth
            and self.token is not None
            and request.headers.get(AUTHORIZATION_HEADER) != self.token
        ):
            return web.Response(status=401, text="Missing or invalid token")
        return None

    async def handle_request(self, request: web.Request) -> web.StreamResponse:
        if (rejection := self._reject(request)) is not None:
            return rejection

        listener = self.namespace.listeners[request.match_info["path"]]
        if listener.request_handler is None:
            return web.Response(status=503, text="Listener has no request handler")

        body = await request.read()
        response = LoopbackHttpResponse(request)
        context = RelayedHttpContext(
            request=RelayedHttpRequest(
                method=request.method,
                url=str(request.url),
                headers=dict(request.headers),
                body=body,
                tracking_id=request.headers.get(TRACKING_ID_HEADER)
                or str(uuid.uuid4()),
            ),
            response=response,
        )

        try:
            await listener.request_handler(context)
        except Exception as e:
            log.warning("Request handler failed: %s: %s", type(e).__name__, e)
            if response.stream is None:
                return web.Response(status=500, text=str(e))

        await response.close()
        return await response.prepare()

    async def handle_stream(self, request: web.Request) -> web.StreamResponse:
        if (rejection := self._reject(request)) is not None:
            return rejection

        listener = self.namespace.listeners[request.match_info["path"]]
        ws = web.WebSocketResponse()
        await ws.prepare(request)

        connection = WebSocketStreamConnection(
            ws, request.headers.get(TRACKING_ID_HEADER) or str(uuid.uuid4())
        )
        self.namespace.connections.add(connection)
        listener.deliver(connection)
        try:
            await connection.wait_finished()
        finally:
            self.namespace.connections.discard(connection)
        return ws


@dataclass(frozen=True, kw_only=True)
class LoopbackTransport(RelayTransport):
    """Relay transport backed by a local HTTP/WebSocket server."""

    config: LoopbackConfig
    namespace: LoopbackNamespace = field(repr=False)
    session: aiohttp.ClientSession = field(repr=False)
    base_url: str

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls, config: LoopbackConfig
    ) -> AsyncGenerator["LoopbackTransport", None]:
        """Start the local relay and stop it on exit."""
        namespace = LoopbackNamespace(resources={path: True for path in config.paths})
        token = config.token.get_secret_value() if config.token else None
        routes = LoopbackRoutes(namespace=namespace, token=token)

        app = web.Application()
        app.router.add_get(f"/{STREAM_PREFIX}/{{path:.+}}", routes.handle_stream)
        app.router.add_route("*", "/{path:.+}", routes.handle_request)

        runner = web.AppRunner(app)
        await runner.setup()
        try:
            site = web.TCPSite(runner, config.host, config.port)
            await site.start()
            port = runner.addresses[0][1]
            base_url = f"http://{config.host}:{port}"
            log.info("Loopback relay listening on %s", base_url)

            async with aiohttp.ClientSession() as session:
                yield cls(
                    config=config,
                    namespace=namespace,
                    session=session,
                    base_url=base_url,
                )
        finally:
            await namespace.close_connections()
            await runner.cleanup()

    async def resource_exists(self, path: str) -> bool:
        return path in self.namespace.resources

    async def create_resource(
        self, path: str, *, requires_client_authorization: bool = True
    ) -> None:
        self.namespace.resources[path] = requires_client_authorization

    async def delete_resource(self, path: str) -> None:
        try:
            del self.namespace.resources[path]
        except KeyError:
            raise ResourceNotFoundError(f"Endpoint '{path}' does not exist") from None

    async def list_resources(self) -> Sequence[ResourceDescription]:
        return [
            ResourceDescription(
                path=path,
                listener_count=self.namespace.listener_count(path),
                requires_client_authorization=requires_auth,
            )
            for path, requires_auth in sorted(self.namespace.resources.items())
        ]

    def create_listener(self, path: str, *, dynamic: bool = False) -> RelayListener:
        return LoopbackListener(self.namespace, path, dynamic=dynamic)

    def create_client(self, path: str) -> RelayClient:
        return LoopbackClient(
            session=self.session,
            url=f"{self.base_url}/{STREAM_PREFIX}/{path}",
            token=self.config.token.get_secret_value() if self.config.token else None,
        )

    def http_url(self, path: str) -> str:
        return f"{self.base_url}/{path}"

    async def get_token(self, audience: str) -> str | None:
        if self.config.token is None:
            return None
        return self.config.token.get_secret_value()
