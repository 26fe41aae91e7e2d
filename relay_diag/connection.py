"""Connection target resolution from arguments and the environment."""

import os
import re

from pydantic import Field
from yarl import URL

from relay_diag.models.base import Model

CONNECTION_STRING_ENV_VARS = ("RELAY_CONNECTION_STRING",)
CONNECTION_STRING_PATTERN = re.compile(r"\w*Endpoint=(http|https|sb)://", re.IGNORECASE)


class ConnectionTarget(Model):
    """Where a command points: a namespace host and an optional entity path."""

    host: str = Field(..., description="Namespace host name, or a bare name")
    entity_path: str | None = Field(default=None, description="Endpoint path")


def is_connection_string(value: str) -> bool:
    return bool(CONNECTION_STRING_PATTERN.search(value))


def resolve_connection_string(argument: str | None) -> str | None:
    """Return the argument, or the first connection string set in the environment."""
    if argument:
        return argument
    for name in CONNECTION_STRING_ENV_VARS:
        if value := os.environ.get(name):
            return value
    return None


def parse_connection_target(value: str) -> ConnectionTarget:
    """Parse ``Endpoint=sb://host/;EntityPath=...`` or a bare namespace/host.

    Raises:
        ValueError: If a connection string has no usable endpoint host

    """
    value = value.strip()
    if not is_connection_string(value):
        return ConnectionTarget(host=value)

    parts: dict[str, str] = {}
    for part in value.split(";"):
        key, sep, item = part.partition("=")
        if sep:
            parts[key.strip().lower()] = item.strip()

    host = URL(parts.get("endpoint", "")).host
    if not host:
        raise ValueError(f"Connection string has no endpoint host: {value!r}")

    return ConnectionTarget(host=host, entity_path=parts.get("entitypath") or None)
