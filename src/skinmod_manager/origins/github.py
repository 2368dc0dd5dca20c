"""Repository-release origin backed by the GitHub REST API."""

from __future__ import annotations

import re
from typing import Any

from skinmod_manager.origins.base import (
    HttpUpdateSource,
    InvalidOriginError,
    LatestInfo,
    MalformedResponseError,
    OriginNotFoundError,
    register_client,
)
from skinmod_manager.registry.types import OriginDescriptor, OriginKind

BASE_URL = "https://api.github.com"

_REPO_RE = re.compile(r"^(?:https?://github\.com/)?([A-Za-z0-9_.-]+)/([A-Za-z0-9_.-]+?)(?:\.git)?/?$")


def parse_repo(locator: str) -> tuple[str, str]:
    """Accept ``owner/repo`` or a github.com repository URL."""
    m = _REPO_RE.match(locator.strip())
    if not m:
        raise InvalidOriginError(f"Not a GitHub repository: {locator!r}")
    return m.group(1), m.group(2)


def _truthy(value: str | None) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


@register_client
class GitHubReleaseSource(HttpUpdateSource):
    kind = OriginKind.github_release

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/vnd.github+json", "X-GitHub-Api-Version": "2022-11-28"}
        if self.github_token:
            headers["Authorization"] = f"Bearer {self.github_token}"
        return headers

    async def _latest_release(self, owner: str, repo: str, include_prereleases: bool) -> dict[str, Any]:
        if not include_prereleases:
            data = await self._get_json(
                f"{BASE_URL}/repos/{owner}/{repo}/releases/latest", headers=self._headers()
            )
            if not isinstance(data, dict):
                raise MalformedResponseError("releases/latest did not return an object")
            return data

        data = await self._get_json(
            f"{BASE_URL}/repos/{owner}/{repo}/releases?per_page=20", headers=self._headers()
        )
        if not isinstance(data, list):
            raise MalformedResponseError("releases listing did not return an array")
        for release in data:
            if isinstance(release, dict) and not release.get("draft"):
                return release
        raise OriginNotFoundError(f"{owner}/{repo} has no published releases")

    async def fetch_latest(self, origin: OriginDescriptor) -> LatestInfo:
        owner, repo = parse_repo(origin.locator)
        release = await self._latest_release(owner, repo, _truthy(origin.option("include_prereleases")))

        tag = release.get("tag_name")
        if not isinstance(tag, str) or not tag.strip():
            raise MalformedResponseError(f"{owner}/{repo} release has no tag_name")
        version = tag.strip()
        prefix = origin.option("tag_prefix")
        if prefix and version.startswith(prefix):
            version = version[len(prefix) :]

        hint = None
        assets = release.get("assets") or []
        if isinstance(assets, list) and assets and isinstance(assets[0], dict):
            hint = assets[0].get("browser_download_url")
        if not hint:
            hint = release.get("html_url")

        return LatestInfo(version=version, fetched_at=self.clock(), download_hint=hint or None)
