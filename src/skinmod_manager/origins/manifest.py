"""Static manifest origin: a URL serving a small JSON document."""

from __future__ import annotations

from skinmod_manager.origins.base import (
    HttpUpdateSource,
    InvalidOriginError,
    LatestInfo,
    MalformedResponseError,
    register_client,
)
from skinmod_manager.registry.types import OriginDescriptor, OriginKind

_HINT_KEYS = ("download_url", "url")


@register_client
class ManifestUrlSource(HttpUpdateSource):
    """Reads ``{"version": "...", "download_url": "..."}``.

    The version key can be changed with the ``version_key`` option; dotted
    keys (``release.version``) walk nested objects.
    """

    kind = OriginKind.manifest_url

    async def fetch_latest(self, origin: OriginDescriptor) -> LatestInfo:
        url = origin.locator.strip()
        if not url.startswith(("http://", "https://")):
            raise InvalidOriginError(f"Manifest locator must be an http(s) URL: {url!r}")

        data = await self._get_json(url, headers={"Accept": "application/json"})
        if not isinstance(data, dict):
            raise MalformedResponseError(f"{url} did not return a JSON object")

        key = origin.option("version_key") or "version"
        node: object = data
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                raise MalformedResponseError(f"{url} has no '{key}' field")
            node = node[part]
        if isinstance(node, int | float) and not isinstance(node, bool):
            node = str(node)
        if not isinstance(node, str) or not node.strip():
            raise MalformedResponseError(f"'{key}' in {url} is not a version string")

        hint = next((data[k] for k in _HINT_KEYS if isinstance(data.get(k), str) and data[k]), None)
        return LatestInfo(version=node.strip(), fetched_at=self.clock(), download_hint=hint)
