"""Abstract interfaces implemented by relay client libraries.

The diagnostic engine never speaks the relay protocol itself. A transport
wraps whatever client library talks to the relay and exposes namespace
management, listeners, senders and duplex stream connections through the
classes below.
"""

import enum
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass

from relay_diag.models.resource import ResourceDescription

log = logging.getLogger(__name__)

AUTHORIZATION_HEADER = "ServiceBusAuthorization"


class ResourceNotFoundError(Exception):
    """Raised when a relay endpoint path does not exist."""


class ListenerStatus(enum.Enum):
    """Connection state changes reported by a listener."""

    CONNECTING = "connecting"
    ONLINE = "online"
    OFFLINE = "offline"


type StatusHandler = Callable[[ListenerStatus], None]


@dataclass(frozen=True, kw_only=True)
class RelayedHttpRequest:
    """An HTTP request delivered to a listener through the relay."""

    method: str
    url: str
    headers: Mapping[str, str]
    body: bytes
    tracking_id: str


class RelayedHttpResponse(ABC):
    """Response side of a relayed HTTP exchange.

    Status, reason and headers may be changed until the first ``write``.
    """

    def __init__(self) -> None:
        self.status_code = 200
        self.reason: str | None = None
        self.headers: dict[str, str] = {}

    @abstractmethod
    async def write(self, data: bytes) -> None:
        """Send a chunk of the response body."""

    @abstractmethod
    async def close(self) -> None:
        """Complete the response. Calling it more than once is allowed."""


@dataclass(frozen=True, kw_only=True)
class RelayedHttpContext:
    """Request/response pair handed to a listener's request handler."""

    request: RelayedHttpRequest
    response: RelayedHttpResponse


type RequestHandler = Callable[[RelayedHttpContext], Awaitable[None]]


class StreamConnection(ABC):
    """A duplex byte stream tunneled through the relay."""

    @property
    @abstractmethod
    def tracking_id(self) -> str:
        """Identifier used to correlate both ends of the connection."""

    @abstractmethod
    async def read(self, size: int) -> bytes:
        """Read up to ``size`` bytes. An empty result means end of stream."""

    @abstractmethod
    async def write(self, data: bytes) -> None:
        """Write all of ``data``."""

    @abstractmethod
    async def shutdown(self) -> None:
        """Signal end of stream to the peer while keeping reads open."""

    @abstractmethod
    async def close(self) -> None:
        """Close both directions."""

    def __str__(self) -> str:
        return f"{type(self).__name__}({self.tracking_id})"


class RelayListener(ABC):
    """Listener side of a relay endpoint.

    Incoming HTTP requests go to ``request_handler``; incoming stream
    connections are taken with ``accept_connection``.
    """

    def __init__(self, path: str) -> None:
        self.path = path
        self.request_handler: RequestHandler | None = None
        self.last_error: BaseException | None = None
        self._status_handler: StatusHandler | None = None

    def set_status_handler(self, handler: StatusHandler | None) -> None:
        """Subscribe a single handler to status changes."""
        self._status_handler = handler

    def notify_status(self, status: ListenerStatus) -> None:
        """Deliver a status change to the subscribed handler."""
        if self._status_handler is None:
            return
        try:
            self._status_handler(status)
        except Exception:
            log.exception("Listener status handler failed for %s", status.value)

    @abstractmethod
    async def open(self, timeout: float) -> None:
        """Connect the listener, failing with TimeoutError after ``timeout``."""

    @abstractmethod
    async def close(self, timeout: float) -> None:
        """Disconnect; pending ``accept_connection`` calls return None."""

    @abstractmethod
    async def accept_connection(self) -> StreamConnection | None:
        """Wait for the next inbound stream, None once the listener closed."""

    def __str__(self) -> str:
        return f"{type(self).__name__}({self.path})"


class RelayClient(ABC):
    """Sender side of a relay endpoint."""

    @abstractmethod
    async def create_connection(self) -> StreamConnection:
        """Open a new stream connection to the endpoint's listener."""


@dataclass(frozen=True, kw_only=True)
class RelayTransport(ABC):
    """Entry point into a relay client library for one namespace."""

    @abstractmethod
    async def resource_exists(self, path: str) -> bool:
        """Check whether the endpoint path is registered."""

    @abstractmethod
    async def create_resource(
        self, path: str, *, requires_client_authorization: bool = True
    ) -> None:
        """Register the endpoint path."""

    @abstractmethod
    async def delete_resource(self, path: str) -> None:
        """Remove the endpoint path.

        Raises:
            ResourceNotFoundError: If the path is not registered

        """

    @abstractmethod
    async def list_resources(self) -> Sequence[ResourceDescription]:
        """List every endpoint registered in the namespace."""

    @abstractmethod
    def create_listener(self, path: str, *, dynamic: bool = False) -> RelayListener:
        """Create an unopened listener.

        ``dynamic`` asks the library to bind even when the path is not
        registered; it is only requested when the path is not known to exist.
        """

    @abstractmethod
    def create_client(self, path: str) -> RelayClient:
        """Create a sender for the endpoint path."""

    @abstractmethod
    def http_url(self, path: str) -> str:
        """Return the absolute HTTP(S) address senders use for ``path``."""

    @abstractmethod
    async def get_token(self, audience: str) -> str | None:
        """Return a token for the ``ServiceBusAuthorization`` header, if any."""
