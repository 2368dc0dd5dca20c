"""Tagged-feed origin: an Atom or RSS feed announcing releases."""

from __future__ import annotations

import re
from dataclasses import dataclass
from xml.etree.ElementTree import Element

import defusedxml.ElementTree as DefusedET
from defusedxml import DefusedXmlException

from skinmod_manager.origins.base import (
    HttpUpdateSource,
    InvalidOriginError,
    LatestInfo,
    MalformedResponseError,
    OriginNotFoundError,
    register_client,
)
from skinmod_manager.registry.types import OriginDescriptor, OriginKind

_ATOM = "{http://www.w3.org/2005/Atom}"

DEFAULT_VERSION_PATTERN = r"\bv?(\d+(?:\.\d+){0,2}(?:-[0-9A-Za-z.]+)?)\b"


@dataclass(frozen=True, slots=True)
class FeedEntry:
    title: str
    link: str | None
    tags: frozenset[str]


def _text(el: Element | None) -> str:
    return (el.text or "").strip() if el is not None else ""


def _atom_entries(root: Element) -> list[FeedEntry]:
    entries = []
    for entry in root.iter(f"{_ATOM}entry"):
        link = None
        for link_el in entry.findall(f"{_ATOM}link"):
            if link_el.get("rel", "alternate") == "alternate":
                link = link_el.get("href")
                break
        tags = frozenset(
            (c.get("term") or "").strip().lower() for c in entry.findall(f"{_ATOM}category")
        )
        entries.append(FeedEntry(title=_text(entry.find(f"{_ATOM}title")), link=link, tags=tags))
    return entries


def _rss_entries(root: Element) -> list[FeedEntry]:
    return [
        FeedEntry(
            title=_text(item.find("title")),
            link=_text(item.find("link")) or None,
            tags=frozenset(_text(c).lower() for c in item.findall("category")),
        )
        for item in root.iter("item")
    ]


def parse_feed(content: bytes) -> list[FeedEntry]:
    """Parse Atom or RSS bytes into entries, in document order."""
    try:
        root = DefusedET.fromstring(content)
    except (DefusedET.ParseError, DefusedXmlException) as exc:
        raise MalformedResponseError(f"Feed is not well-formed XML: {exc}") from exc
    if root.tag == f"{_ATOM}feed":
        return _atom_entries(root)
    if root.tag == "rss" or root.find("channel") is not None:
        return _rss_entries(root)
    raise MalformedResponseError(f"Unrecognised feed root element <{root.tag}>")


def extract_version(title: str, pattern: re.Pattern[str]) -> str | None:
    """Return the version a title carries according to *pattern*.

    A named ``version`` group wins; otherwise the last group that took part in
    the match, so optional prefix groups such as ``(beta )?`` are skipped;
    otherwise the whole match.
    """
    m = pattern.search(title)
    if not m:
        return None
    if "version" in pattern.groupindex:
        found = m.group("version")
    else:
        found = next((g for g in reversed(m.groups()) if g is not None), m.group(0))
    return (found or "").strip() or None


@register_client
class FeedSource(HttpUpdateSource):
    """Takes the newest entry (feeds list newest first) whose title carries a version."""

    kind = OriginKind.feed

    async def fetch_latest(self, origin: OriginDescriptor) -> LatestInfo:
        url = origin.locator.strip()
        if not url.startswith(("http://", "https://")):
            raise InvalidOriginError(f"Feed locator must be an http(s) URL: {url!r}")
        try:
            pattern = re.compile(origin.option("version_pattern") or DEFAULT_VERSION_PATTERN)
        except re.error as exc:
            raise InvalidOriginError(f"Bad version_pattern: {exc}") from exc

        resp = await self._get(url, headers={"Accept": "application/atom+xml, application/rss+xml, */*"})
        entries = parse_feed(resp.content)

        tag = (origin.option("tag") or "").strip().lower()
        if tag:
            entries = [e for e in entries if tag in e.tags]

        for entry in entries:
            version = extract_version(entry.title, pattern)
            if version:
                return LatestInfo(version=version, fetched_at=self.clock(), download_hint=entry.link)
        raise OriginNotFoundError(f"No versioned entries in {url}" + (f" tagged '{tag}'" if tag else ""))
