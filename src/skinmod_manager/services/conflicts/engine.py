"""Conflict resolution: which enabled mod's file takes effect for each asset path.

Resolution is a pure function of a :class:`RegistryState`.  It is recomputed
wholesale after every relevant registry mutation, never patched incrementally.

Rules per target path, considering enabled mods only:

* one claimant: ``Owned`` by that mod;
* a manual override naming one of the claimants: ``OverriddenTo`` that mod,
  whatever the priorities;
* otherwise the highest priority wins (``Owned``); a tie at the top is
  ``Ambiguous`` and lists the tied mods.  Ties are never broken silently.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING

from skinmod_manager.errors import InvalidInputError
from skinmod_manager.registry.types import FileClaim, RegistryState
from skinmod_manager.utils.paths import normalize_target_path

if TYPE_CHECKING:
    from skinmod_manager.registry.registry import ModRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Owned:
    mod_id: int

    @property
    def owner(self) -> int:
        return self.mod_id


@dataclass(frozen=True, slots=True)
class OverriddenTo:
    mod_id: int

    @property
    def owner(self) -> int:
        return self.mod_id


@dataclass(frozen=True, slots=True)
class Ambiguous:
    mod_ids: tuple[int, ...]

    @property
    def owner(self) -> None:
        return None


Outcome = Owned | OverriddenTo | Ambiguous


class Resolution(Mapping[str, Outcome]):
    """Read-only mapping of every enabled target path to its outcome.

    Lookups accept any spelling of a path that normalises to a stored key.
    """

    __slots__ = ("_outcomes", "_groups")

    def __init__(
        self,
        outcomes: Mapping[str, Outcome],
        groups: Mapping[str, tuple[FileClaim, ...]],
    ) -> None:
        self._outcomes = dict(outcomes)
        self._groups = dict(groups)

    def canonical_path(self, path: str) -> str:
        """Return the stored key for *path*; KeyError if it is not resolved."""
        if path in self._outcomes:
            return path
        try:
            normalised = normalize_target_path(path)
        except InvalidInputError:
            raise KeyError(path) from None
        if normalised not in self._outcomes:
            raise KeyError(path)
        return normalised

    def __getitem__(self, path: str) -> Outcome:
        return self._outcomes[self.canonical_path(path)]

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, str):
            return False
        try:
            self[path]
        except KeyError:
            return False
        return True

    def __iter__(self) -> Iterator[str]:
        return iter(self._outcomes)

    def __len__(self) -> int:
        return len(self._outcomes)

    def __repr__(self) -> str:
        return f"Resolution({self._outcomes!r})"

    @property
    def conflict_groups(self) -> Mapping[str, tuple[FileClaim, ...]]:
        """Paths claimed by two or more enabled mods, with their claims."""
        return self._groups

    def ambiguous(self) -> dict[str, Ambiguous]:
        return {p: o for p, o in self._outcomes.items() if isinstance(o, Ambiguous)}

    def owner_of(self, path: str) -> int | None:
        return self[path].owner

    def owned_by(self, mod_id: int) -> list[str]:
        return [p for p, o in self._outcomes.items() if o.owner == mod_id]


def resolve(state: RegistryState) -> Resolution:
    """Compute the resolution for *state*.  Pure and deterministic."""
    claims = state.file_claims(enabled_only=True)
    priorities = {m.id: m.priority for m in state.mods.values() if m.enabled}

    outcomes: dict[str, Outcome] = {}
    groups: dict[str, tuple[FileClaim, ...]] = {}
    for path in sorted(claims):
        group = claims[path]
        if len(group) == 1:
            outcomes[path] = Owned(group[0].mod_id)
            continue

        groups[path] = tuple(group)
        mod_ids = [c.mod_id for c in group]
        override = state.overrides.get(path)
        if override is not None and override in mod_ids:
            outcomes[path] = OverriddenTo(override)
            continue

        top = max(priorities[m] for m in mod_ids)
        winners = sorted(m for m in mod_ids if priorities[m] == top)
        outcomes[path] = Owned(winners[0]) if len(winners) == 1 else Ambiguous(tuple(winners))

    return Resolution(outcomes, groups)


class ConflictEngine:
    """Keeps the resolution of one registry current.

    The engine subscribes to the registry and recomputes after every
    mutation.  The cached result is keyed on the identity of the snapshot's
    ``mods`` and ``overrides`` mappings, which update-state writes leave
    untouched, so update checks never invalidate it.
    """

    def __init__(self, registry: ModRegistry) -> None:
        self.registry = registry
        self._cache_lock = threading.Lock()
        self._cached_key: tuple[Mapping, Mapping] | None = None
        self._cached: Resolution | None = None
        registry.subscribe(self._on_registry_change)
        self._on_registry_change(registry.snapshot())

    def resolve(self, state: RegistryState | None = None) -> Resolution:
        state = state if state is not None else self.registry.snapshot()
        with self._cache_lock:
            key = self._cached_key
            if key is not None and key[0] is state.mods and key[1] is state.overrides:
                return self._cached  # type: ignore[return-value]
        resolution = resolve(state)
        with self._cache_lock:
            self._cached_key = (state.mods, state.overrides)
            self._cached = resolution
        return resolution

    def set_manual_override(self, path: str, mod_id: int) -> Resolution:
        self.registry.set_manual_override(path, mod_id)
        return self.resolve()

    def clear_manual_override(self, path: str) -> bool:
        return self.registry.clear_manual_override(path)

    def _on_registry_change(self, state: RegistryState) -> None:
        with self._cache_lock:
            key = self._cached_key
            if key is not None and key[0] is state.mods and key[1] is state.overrides:
                return
        start = time.perf_counter()
        resolution = self.resolve(state)
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "Conflict resolution: %d paths, %d contested, %d ambiguous in %.1fms",
            len(resolution),
            len(resolution.conflict_groups),
            len(resolution.ambiguous()),
            elapsed_ms,
        )
