"""Duplex stream connections carried over a local WebSocket."""

import asyncio

import aiohttp
from aiohttp import web

from relay_diag.transports.base import StreamConnection

type WebSocket = web.WebSocketResponse | aiohttp.ClientWebSocketResponse


class WebSocketStreamConnection(StreamConnection):
    """Byte stream over binary WebSocket frames.

    An empty binary frame marks a half-close from the sending side; a close
    frame ends both directions.
    """

    def __init__(self, ws: WebSocket, tracking_id: str) -> None:
        self._ws = ws
        self._tracking_id = tracking_id
        self._buffer = bytearray()
        self._eof = False
        self._finished = asyncio.Event()

    @property
    def tracking_id(self) -> str:
        return self._tracking_id

    async def read(self, size: int) -> bytes:
        while not self._buffer and not self._eof:
            message = await self._ws.receive()
            match message.type:
                case aiohttp.WSMsgType.BINARY:
                    if message.data:
                        self._buffer.extend(message.data)
                    else:
                        self._eof = True
                case aiohttp.WSMsgType.TEXT:
                    self._buffer.extend(message.data.encode())
                case aiohttp.WSMsgType.ERROR:
                    self._finished.set()
                    raise ConnectionError(
                        f"Stream {self._tracking_id} failed: {self._ws.exception()}"
                    )
                case _:
                    self._eof = True
                    self._finished.set()

        chunk = bytes(self._buffer[:size])
        del self._buffer[:size]
        return chunk

    async def write(self, data: bytes) -> None:
        if data:
            await self._ws.send_bytes(data)

    async def shutdown(self) -> None:
        await self._ws.send_bytes(b"")

    async def close(self) -> None:
        try:
            await self._ws.close()
        finally:
            self._finished.set()

    async def wait_finished(self) -> None:
        """Wait until the connection has been closed by either side."""
        await self._finished.wait()
