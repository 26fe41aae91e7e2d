"""Models for relay endpoints (hybrid connection paths)."""

from dataclasses import dataclass

from pydantic import Field

from relay_diag.models.base import Model


class ResourceDescription(Model):
    """An addressable endpoint registered in a relay namespace."""

    path: str = Field(..., description="Entity path within the namespace")
    listener_count: int = Field(default=0, description="Connected listeners")
    requires_client_authorization: bool = Field(
        default=True, description="Whether senders must present a token"
    )


@dataclass(frozen=True, kw_only=True)
class ResourceState:
    """Lifecycle bookkeeping for the endpoint under test."""

    path: str
    created_by_this_run: bool
    known_to_exist: bool
