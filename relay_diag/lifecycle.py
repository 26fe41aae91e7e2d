"""Create-if-absent and guaranteed cleanup of the endpoint under test."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from relay_diag.errors import log_exception
from relay_diag.models.resource import ResourceState
from relay_diag.transports.base import RelayTransport

log = logging.getLogger(__name__)


@dataclass(frozen=True, kw_only=True)
class ResourceLifecycleGuard:
    """Makes sure an endpoint exists for a run and removes it afterwards.

    Only an endpoint created by this run is deleted. Concurrent runs against
    the same path are not coordinated.
    """

    transport: RelayTransport

    async def ensure_exists(self, path: str) -> ResourceState:
        """Create ``path`` if it is missing.

        A failing existence check is logged and the endpoint is treated as
        not known to exist; nothing is created in that case.

        Raises:
            Exception: Whatever the transport raises when creation fails

        """
        try:
            exists = await self.transport.resource_exists(path)
        except Exception as e:
            log_exception(
                log, e, prefix=f"Checking whether '{path}' exists failed. "
            )
            return ResourceState(
                path=path, created_by_this_run=False, known_to_exist=False
            )

        if exists:
            log.debug("Endpoint '%s' already exists", path)
            return ResourceState(
                path=path, created_by_this_run=False, known_to_exist=True
            )

        log.info("Creating endpoint '%s'", path)
        await self.transport.create_resource(path)
        return ResourceState(
            path=path, created_by_this_run=True, known_to_exist=True
        )

    async def cleanup(self, state: ResourceState) -> None:
        """Delete the endpoint if this run created it. Never raises."""
        if not state.created_by_this_run:
            return

        log.info("Deleting endpoint '%s'", state.path)
        try:
            await self.transport.delete_resource(state.path)
        except Exception as e:
            log.warning(
                "Error during cleanup: %s: %s",
                type(e).__name__,
                e,
                exc_info=e if log.isEnabledFor(logging.DEBUG) else None,
            )

    @asynccontextmanager
    async def guarded(self, path: str) -> AsyncGenerator[ResourceState, None]:
        """Ensure ``path`` exists for the duration of the block."""
        state = await self.ensure_exists(path)
        try:
            yield state
        finally:
            await self.cleanup(state)
