"""Update source clients, one per origin kind.

Importing this package registers the built-in clients.
"""

from skinmod_manager.origins import feed, github, manifest  # noqa: F401 - register clients
from skinmod_manager.origins.base import (
    LatestInfo,
    MalformedResponseError,
    NetworkError,
    OriginNotFoundError,
    UpdateSourceClient,
    UpdateSourceError,
    build_clients,
    register_client,
    registered_kinds,
)

__all__ = [
    "LatestInfo",
    "MalformedResponseError",
    "NetworkError",
    "OriginNotFoundError",
    "UpdateSourceClient",
    "UpdateSourceError",
    "build_clients",
    "register_client",
    "registered_kinds",
]
