"""Lookup of relay transport plugins registered under ``relay_diag.transports``."""

from importlib.metadata import entry_points
from typing import Any

from relay_diag.transports.manifest import TransportManifest

ENTRY_POINT_GROUP = "relay_diag.transports"


class TransportNotFoundError(Exception):
    """No installed distribution registers a transport under the requested name."""


def load_transport_manifest(key: str) -> TransportManifest[Any]:
    """Import the manifest the ``--transport`` option names.

    Only the matching entry point is imported, so a relay client library that
    is installed but not selected is never loaded.

    Args:
        key: Entry point name, such as ``loopback``

    Returns:
        The manifest, ready to validate ``--transport-config`` JSON

    Raises:
        TransportNotFoundError: If nothing is registered as ``key``. The
            message lists the names that are registered.

    """
    entries = entry_points(group=ENTRY_POINT_GROUP)

    for entry in entries:
        if entry.name == key:
            manifest: TransportManifest[Any] = entry.load()
            return manifest

    available = [e.name for e in entries]
    raise TransportNotFoundError(
        f"Transport '{key}' not found. Available transports: {available}"
    )
