"""Sending HTTP requests to a relay endpoint and logging both sides."""

import logging
from collections.abc import AsyncGenerator, Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

import aiohttp

from relay_diag.transports.base import (
    AUTHORIZATION_HEADER,
    RelayedHttpRequest,
    RelayTransport,
)

log = logging.getLogger(__name__)

DEFAULT_REQUEST_TIMEOUT = 60.0


@dataclass(frozen=True, kw_only=True)
class HttpExchange:
    """Outcome of one request as seen by the sender."""

    status: int
    reason: str | None
    headers: Mapping[str, str]
    body: bytes

    @property
    def succeeded(self) -> bool:
        return 200 <= self.status < 300


@dataclass(frozen=True, kw_only=True)
class RelayHttpSender:
    """Sends HTTP requests to one relay endpoint."""

    session: aiohttp.ClientSession = field(repr=False)
    url: str
    token: str | None = None

    @classmethod
    @asynccontextmanager
    async def from_transport(
        cls,
        transport: RelayTransport,
        path: str,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ) -> AsyncGenerator["RelayHttpSender", None]:
        """Create a sender with managed session lifecycle."""
        url = transport.http_url(path)
        token = await transport.get_token(url)
        async with aiohttp.ClientSession(
            timeout=aiohttp.ClientTimeout(total=timeout)
        ) as session:
            yield cls(session=session, url=url, token=token)

    async def send(self, method: str, body: bytes | None = None) -> HttpExchange:
        """Send one request and read the whole response."""
        headers = {}
        if self.token is not None:
            headers[AUTHORIZATION_HEADER] = self.token

        log.info("Request:  %s %s", method, self.url)
        if body is not None:
            log.debug("%d byte request body", len(body))

        async with self.session.request(
            method, self.url, data=body, headers=headers
        ) as response:
            content = await response.read()
            exchange = HttpExchange(
                status=response.status,
                reason=response.reason,
                headers=dict(response.headers),
                body=content,
            )

        log_http_response(exchange)
        return exchange


def log_http_request(request: RelayedHttpRequest) -> None:
    """Log a request as the listener received it."""
    log.info(
        "Request:  %s %s (%d bytes, %s)",
        request.method,
        request.url,
        len(request.body),
        request.tracking_id,
    )
    if request.body and log.isEnabledFor(logging.DEBUG):
        log.debug("%s", request.body.decode(errors="replace"))


def log_http_response(exchange: HttpExchange) -> None:
    """Log a response, warning on 4xx and erroring on 5xx."""
    level = logging.INFO
    if exchange.status >= 500:
        level = logging.ERROR
    elif exchange.status >= 400:
        level = logging.WARNING

    log.log(
        level,
        "Response: %d %s (%d bytes)",
        exchange.status,
        exchange.reason,
        len(exchange.body),
    )
    if log.isEnabledFor(logging.DEBUG):
        for name, value in exchange.headers.items():
            log.debug("%s: %s", name, value)
