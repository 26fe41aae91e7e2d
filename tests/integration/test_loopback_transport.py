"""Integration tests for the loopback transport."""

import asyncio

import aiohttp
import pytest

from relay_diag.hybrid.echo import StreamingEchoPump, pump_stream
from relay_diag.transports.base import (
    AUTHORIZATION_HEADER,
    ListenerStatus,
    RelayedHttpContext,
    ResourceNotFoundError,
)
from relay_diag.transports.loopback import LoopbackTransport


class TestResourceManagement:
    """Tests for endpoint management."""

    async def test_create_list_delete(self, transport: LoopbackTransport) -> None:
        await transport.create_resource("hc1", requires_client_authorization=False)

        assert await transport.resource_exists("hc1")
        resources = {r.path: r for r in await transport.list_resources()}
        assert set(resources) == {"existing", "hc1"}
        assert not resources["hc1"].requires_client_authorization
        assert resources["hc1"].listener_count == 0

        await transport.delete_resource("hc1")

        assert not await transport.resource_exists("hc1")

    async def test_delete_missing_raises(self, transport: LoopbackTransport) -> None:
        with pytest.raises(ResourceNotFoundError):
            await transport.delete_resource("missing")


class TestListener:
    """Tests for listener lifecycle."""

    async def test_open_reports_status_and_counts_listener(
        self, transport: LoopbackTransport
    ) -> None:
        listener = transport.create_listener("existing")
        seen: list[ListenerStatus] = []
        listener.set_status_handler(seen.append)

        await listener.open(5.0)
        resources = {r.path: r for r in await transport.list_resources()}
        await listener.close(5.0)

        assert resources["existing"].listener_count == 1
        assert seen == [
            ListenerStatus.CONNECTING,
            ListenerStatus.ONLINE,
            ListenerStatus.OFFLINE,
        ]

    async def test_open_missing_path_fails_unless_dynamic(
        self, transport: LoopbackTransport
    ) -> None:
        listener = transport.create_listener("missing")

        with pytest.raises(ResourceNotFoundError):
            await listener.open(5.0)
        assert isinstance(listener.last_error, ResourceNotFoundError)

        dynamic = transport.create_listener("missing", dynamic=True)
        await dynamic.open(5.0)
        await dynamic.close(5.0)

    async def test_close_ends_accept(self, transport: LoopbackTransport) -> None:
        """Pending and later accepts return None once the listener closed."""
        listener = transport.create_listener("existing")
        await listener.open(5.0)
        pending = asyncio.create_task(listener.accept_connection())
        await asyncio.sleep(0)

        await listener.close(5.0)

        assert await asyncio.wait_for(pending, 5.0) is None
        assert await listener.accept_connection() is None


class TestHttp:
    """Tests for relayed HTTP requests."""

    async def test_request_reaches_handler(
        self, transport: LoopbackTransport, token: str
    ) -> None:
        listener = transport.create_listener("existing")
        bodies: list[bytes] = []

        async def handle(context: RelayedHttpContext) -> None:
            bodies.append(context.request.body)
            context.response.status_code = 201
            context.response.reason = "Made"
            await context.response.write(b"part1,")
            await context.response.write(b"part2")
            await context.response.close()

        listener.request_handler = handle
        await listener.open(5.0)
        try:
            async with (
                aiohttp.ClientSession() as session,
                session.post(
                    transport.http_url("existing"),
                    data=b"payload",
                    headers={AUTHORIZATION_HEADER: token},
                ) as response,
            ):
                body = await response.read()
        finally:
            await listener.close(5.0)

        assert response.status == 201
        assert response.reason == "Made"
        assert body == b"part1,part2"
        assert bodies == [b"payload"]

    async def test_rejects_missing_token(self, transport: LoopbackTransport) -> None:
        listener = transport.create_listener("existing")
        await listener.open(5.0)
        try:
            async with (
                aiohttp.ClientSession() as session,
                session.get(transport.http_url("existing")) as response,
            ):
                status = response.status
        finally:
            await listener.close(5.0)

        assert status == 401

    async def test_no_listener_is_not_found(
        self, transport: LoopbackTransport, token: str
    ) -> None:
        async with (
            aiohttp.ClientSession() as session,
            session.get(
                transport.http_url("existing"),
                headers={AUTHORIZATION_HEADER: token},
            ) as response,
        ):
            assert response.status == 404


class TestStreams:
    """Tests for duplex stream connections."""

    async def test_echo_across_multiple_buffers(
        self, transport: LoopbackTransport
    ) -> None:
        """Data larger than one buffer comes back intact after a half-close."""
        listener = transport.create_listener("existing")
        await listener.open(5.0)
        pump = StreamingEchoPump(listener, buffer_size=1024)
        pump.start()
        payload = bytes(range(256)) * 14
        try:
            connection = await transport.create_client("existing").create_connection()
            await connection.write(payload[:2000])
            await connection.write(payload[2000:])
            await connection.shutdown()
            received = bytearray()
            total = await asyncio.wait_for(
                pump_stream(connection, received=received), 10.0
            )
        finally:
            await pump.stop()
            await listener.close(5.0)

        assert total == len(payload)
        assert bytes(received) == payload

    async def test_connect_without_listener_fails(
        self, transport: LoopbackTransport
    ) -> None:
        client = transport.create_client("existing")

        with pytest.raises(aiohttp.WSServerHandshakeError):
            await client.create_connection()
