"""Immutable domain types held by the mod registry.

Readers always receive a :class:`RegistryState`; it is never mutated in place.
Every registry mutation builds a new state and swaps it in, so a reader can
never observe a half-applied change.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from types import MappingProxyType
from typing import ClassVar


class OriginKind(StrEnum):
    """Remote origin kinds with a built-in update source client."""

    github_release = "github_release"
    manifest_url = "manifest_url"
    feed = "feed"


@dataclass(frozen=True, slots=True)
class OriginDescriptor:
    """Where a mod can be checked for newer versions.

    ``kind`` is kept as a plain string so descriptors written by a newer
    version of the manager (with kinds this one lacks) still load.
    """

    kind: str
    locator: str
    options: tuple[tuple[str, str], ...] = ()

    @classmethod
    def build(
        cls, kind: str, locator: str, options: Mapping[str, str] | None = None
    ) -> OriginDescriptor:
        return cls(kind=str(kind), locator=locator, options=tuple(sorted((options or {}).items())))

    def option(self, key: str, default: str | None = None) -> str | None:
        for k, v in self.options:
            if k == key:
                return v
        return default

    def same_source(self, other: OriginDescriptor | None) -> bool:
        return other is not None and self.kind == other.kind and self.locator == other.locator


@dataclass(frozen=True, slots=True)
class FileClaim:
    target_path: str
    mod_id: int
    content_hash: str


@dataclass(frozen=True, slots=True)
class Mod:
    id: int
    name: str
    version: str
    enabled: bool
    priority: int
    origin: OriginDescriptor | None
    claims: tuple[FileClaim, ...]
    installed_at: datetime

    def claimed_paths(self) -> frozenset[str]:
        return frozenset(c.target_path for c in self.claims)


# ---------------------------------------------------------------------------
# Update state
# ---------------------------------------------------------------------------


class UpdateStatus(StrEnum):
    never_checked = "never_checked"
    up_to_date = "up_to_date"
    update_available = "update_available"
    check_failed = "check_failed"


@dataclass(frozen=True, slots=True)
class NeverChecked:
    status: ClassVar[UpdateStatus] = UpdateStatus.never_checked

    @property
    def checked_at(self) -> None:
        return None


@dataclass(frozen=True, slots=True)
class UpToDate:
    checked_at: datetime
    remote_version: str | None = None
    status: ClassVar[UpdateStatus] = UpdateStatus.up_to_date


@dataclass(frozen=True, slots=True)
class UpdateAvailable:
    remote_version: str
    checked_at: datetime
    download_hint: str | None = None
    status: ClassVar[UpdateStatus] = UpdateStatus.update_available


@dataclass(frozen=True, slots=True)
class CheckFailed:
    reason: str
    checked_at: datetime
    retry_after: datetime
    failure_count: int = 1
    error_kind: str = "network"
    status: ClassVar[UpdateStatus] = UpdateStatus.check_failed


UpdateState = NeverChecked | UpToDate | UpdateAvailable | CheckFailed

NEVER_CHECKED = NeverChecked()


# ---------------------------------------------------------------------------
# Registry snapshot
# ---------------------------------------------------------------------------


def _frozen(mapping: Mapping | None = None) -> Mapping:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class RegistryState:
    """A consistent, read-only view of the whole registry.

    ``revision`` increases whenever something that affects conflict
    resolution changes (claims, enabled flags, priorities, overrides).
    Update-state writes leave it untouched.
    """

    mods: Mapping[int, Mod] = field(default_factory=_frozen)
    overrides: Mapping[str, int] = field(default_factory=_frozen)
    update_states: Mapping[int, UpdateState] = field(default_factory=_frozen)
    next_id: int = 1
    revision: int = 0

    @classmethod
    def build(
        cls,
        mods: Iterable[Mod] = (),
        overrides: Mapping[str, int] | None = None,
        update_states: Mapping[int, UpdateState] | None = None,
        next_id: int | None = None,
        revision: int = 0,
    ) -> RegistryState:
        by_id = {m.id: m for m in sorted(mods, key=lambda m: m.id)}
        floor = max(by_id, default=0) + 1
        return cls(
            mods=_frozen(by_id),
            overrides=_frozen(overrides),
            update_states=_frozen(update_states),
            next_id=max(next_id or floor, floor),
            revision=revision,
        )

    def list_mods(self) -> list[Mod]:
        return list(self.mods.values())

    def get_mod(self, mod_id: int) -> Mod | None:
        return self.mods.get(mod_id)

    def enabled_mods(self) -> list[Mod]:
        return [m for m in self.mods.values() if m.enabled]

    def update_state(self, mod_id: int) -> UpdateState:
        return self.update_states.get(mod_id, NEVER_CHECKED)

    def file_claims(self, *, enabled_only: bool = False) -> dict[str, list[FileClaim]]:
        """Group claims by target path, in mod-id order within each path."""
        grouped: dict[str, list[FileClaim]] = {}
        for mod in self.mods.values():
            if enabled_only and not mod.enabled:
                continue
            for claim in mod.claims:
                grouped.setdefault(claim.target_path, []).append(claim)
        return grouped
