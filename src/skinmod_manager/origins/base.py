"""Update source client protocol, client registry and typed failures.

Origin clients are the only code in the project that talks to the network.
Each one turns an :class:`OriginDescriptor` into a :class:`LatestInfo` or
raises an :class:`UpdateSourceError`; nothing is swallowed here, the update
checker decides what a failure means for the mod.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, ClassVar, Protocol

import httpx

from skinmod_manager.registry.types import OriginDescriptor

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class LatestInfo:
    version: str
    fetched_at: datetime
    download_hint: str | None = None


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class UpdateSourceError(Exception):
    """Base for every origin failure; ``kind`` is persisted on CheckFailed."""

    kind: ClassVar[str] = "network"


class NetworkError(UpdateSourceError):
    kind = "network"


class OriginTimeoutError(NetworkError):
    kind = "timeout"


class RateLimitedError(NetworkError):
    kind = "rate_limited"

    def __init__(self, message: str, retry_after_seconds: float | None = None) -> None:
        self.retry_after_seconds = retry_after_seconds
        super().__init__(message)


class OriginNotFoundError(UpdateSourceError):
    kind = "not_found"


class MalformedResponseError(UpdateSourceError):
    kind = "malformed_response"


class InvalidOriginError(UpdateSourceError):
    """The descriptor itself is unusable (bad locator or option)."""

    kind = "invalid_origin"


class UnsupportedOriginError(UpdateSourceError):
    kind = "unsupported_origin"


class UnexpectedSourceError(UpdateSourceError):
    """A client failed in a way it does not map itself; wraps the original exception."""

    kind = "internal_error"


# ---------------------------------------------------------------------------
# Protocol + Registry
# ---------------------------------------------------------------------------


class UpdateSourceClient(Protocol):
    """Interface every origin kind implements."""

    kind: ClassVar[str]

    async def fetch_latest(self, origin: OriginDescriptor) -> LatestInfo: ...


_CLIENTS: dict[str, type[HttpUpdateSource]] = {}


def register_client(cls: type[HttpUpdateSource]) -> type[HttpUpdateSource]:
    """Class decorator that adds an origin client to the global registry."""
    _CLIENTS[cls.kind] = cls
    return cls


def registered_kinds() -> list[str]:
    return sorted(_CLIENTS)


def build_clients(http: httpx.AsyncClient, **options: Any) -> dict[str, UpdateSourceClient]:
    """Instantiate every registered client over one shared HTTP client."""
    clients: dict[str, UpdateSourceClient] = {kind: cls(http, **options) for kind, cls in _CLIENTS.items()}
    logger.debug("Update source clients: %s", ", ".join(sorted(clients)))
    return clients


# ---------------------------------------------------------------------------
# Shared HTTP plumbing
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _retry_after_seconds(resp: httpx.Response) -> float | None:
    value = resp.headers.get("Retry-After")
    if value and value.isdigit():
        return float(value)
    reset = resp.headers.get("X-RateLimit-Reset")
    if reset and reset.isdigit():
        return max(0.0, float(reset) - datetime.now(UTC).timestamp())
    return None


class HttpUpdateSource:
    """Base for clients that fetch over the shared ``httpx.AsyncClient``."""

    kind: ClassVar[str] = ""

    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        github_token: str | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.http = http
        self.github_token = github_token or None
        self.clock = clock

    async def fetch_latest(self, origin: OriginDescriptor) -> LatestInfo:
        raise NotImplementedError

    async def _get(self, url: str, *, headers: dict[str, str] | None = None) -> httpx.Response:
        try:
            resp = await self.http.get(url, headers=headers, follow_redirects=True)
        except httpx.InvalidURL as exc:
            raise InvalidOriginError(f"Invalid origin URL {url!r}: {exc}") from exc
        except httpx.TimeoutException as exc:
            raise OriginTimeoutError(f"Timed out fetching {url}") from exc
        except httpx.HTTPError as exc:
            raise NetworkError(f"{type(exc).__name__} fetching {url}: {exc}") from exc

        if resp.status_code == 404:
            raise OriginNotFoundError(f"{url} returned 404")
        if resp.status_code == 429 or (
            resp.status_code == 403 and resp.headers.get("X-RateLimit-Remaining") == "0"
        ):
            raise RateLimitedError(f"Rate limited by {resp.url.host}", _retry_after_seconds(resp))
        if resp.status_code >= 400:
            raise NetworkError(f"HTTP {resp.status_code} from {url}")
        return resp

    async def _get_json(self, url: str, *, headers: dict[str, str] | None = None) -> Any:
        resp = await self._get(url, headers=headers)
        try:
            return resp.json()
        except ValueError as exc:
            raise MalformedResponseError(f"{url} did not return JSON") from exc
