"""Accept loop and read/echo pump for duplex stream connections."""

import asyncio
import logging
from collections.abc import Coroutine
from typing import Any

from relay_diag.errors import log_exception
from relay_diag.transports.base import RelayListener, StreamConnection

log = logging.getLogger(__name__)

DEFAULT_BUFFER_SIZE = 1024
DEFAULT_CLOSE_TIMEOUT = 10.0
ACCEPT_RETRY_DELAY = 1.0


async def pump_stream(
    connection: StreamConnection,
    *,
    echo: bool = False,
    buffer_size: int = DEFAULT_BUFFER_SIZE,
    close_timeout: float = DEFAULT_CLOSE_TIMEOUT,
    received: bytearray | None = None,
) -> int:
    """Read ``connection`` until the peer ends the stream, then close it.

    Args:
        connection: Stream to drain
        echo: Write every chunk back before reading the next one
        buffer_size: Maximum bytes per read
        close_timeout: Seconds allowed for the final close
        received: Optional buffer collecting everything read

    Returns:
        Total number of bytes read

    Raises:
        TimeoutError: If closing takes longer than ``close_timeout``

    """
    total = 0
    while True:
        data = await connection.read(buffer_size)
        if not data:
            log.info("%s end of stream after %d bytes, closing", connection, total)
            async with asyncio.timeout(close_timeout):
                await connection.close()
            return total

        total += len(data)
        log.debug("%s read %d bytes", connection, len(data))
        if received is not None:
            received.extend(data)
        if echo:
            await connection.write(data)


class StreamingEchoPump:
    """Accepts stream connections on a listener and pumps each independently.

    The accept loop and every connection pump run as detached tasks; their
    failures are logged and never reach a caller. ``stop`` must be awaited
    before the listener goes away so no task is left behind.
    """

    def __init__(
        self,
        listener: RelayListener,
        *,
        echo: bool = True,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        close_timeout: float = DEFAULT_CLOSE_TIMEOUT,
        accept_retry_delay: float = ACCEPT_RETRY_DELAY,
    ) -> None:
        self.listener = listener
        self.echo = echo
        self.buffer_size = buffer_size
        self.close_timeout = close_timeout
        self.accept_retry_delay = accept_retry_delay
        self._accept_task: asyncio.Task[None] | None = None
        self._pumps: set[asyncio.Task[Any]] = set()

    def start(self) -> None:
        """Launch the accept loop in the background."""
        if self._accept_task is None:
            self._accept_task = self._spawn(self.accept_loop(), "accept-loop")

    async def stop(self) -> None:
        """Cancel the accept loop and all pumps, then wait for them."""
        tasks: list[asyncio.Task[Any]] = list(self._pumps)
        if self._accept_task is not None:
            tasks.append(self._accept_task)
            self._accept_task = None
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    @property
    def active_pumps(self) -> int:
        return len(self._pumps)

    async def accept_loop(self) -> None:
        """Accept connections until the listener signals shutdown."""
        while True:
            try:
                connection = await self.listener.accept_connection()
            except Exception as e:
                log_exception(log, e, prefix="Accept failed. ")
                await asyncio.sleep(self.accept_retry_delay)
                continue

            if connection is None:
                log.debug("%s stopped accepting", self.listener)
                return

            log.info("Accepted %s", connection)
            self._pumps.add(self._spawn(self.pump(connection), str(connection)))

    async def pump(self, connection: StreamConnection) -> int:
        """Pump one connection; errors end only this connection."""
        try:
            return await pump_stream(
                connection,
                echo=self.echo,
                buffer_size=self.buffer_size,
                close_timeout=self.close_timeout,
            )
        except Exception as e:
            log_exception(log, e, prefix=f"{connection} pump failed. ")
            return 0

    def _spawn(self, coro: Coroutine[Any, Any, Any], name: str) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro, name=name)
        task.add_done_callback(self._on_task_done)
        return task

    def _on_task_done(self, task: asyncio.Task[Any]) -> None:
        self._pumps.discard(task)
        if task.cancelled():
            return
        if (exc := task.exception()) is not None:
            log_exception(
                log, exc, prefix=f"Background task {task.get_name()} failed. "
            )
