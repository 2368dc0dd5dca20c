"""The mod registry: data store of record for installed mods and their claims.

Concurrency model
-----------------
* One mutation at a time: every mutating method runs under a single
  ``threading.RLock``.
* Readers never lock.  Each mutation builds a brand-new immutable
  :class:`RegistryState`, persists it (when a store is attached and
  ``autoflush`` is on) and only then swaps the reference, so a reader either
  sees the state before or after a mutation, never in between.  A failed
  persist leaves the previous state in place.
* Listeners (the conflict engine) are notified after the swap while the lock
  is still held, so notifications arrive in mutation order.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Mapping
from dataclasses import replace
from datetime import UTC, datetime
from pathlib import Path
from types import MappingProxyType, TracebackType
from typing import Any, Self

from pydantic import ValidationError

from skinmod_manager.database import create_registry_engine
from skinmod_manager.errors import (
    DuplicateFileClaimError,
    InvalidInputError,
    NoSuchClaimError,
    NotFoundError,
)
from skinmod_manager.matching.versions import is_newer_version
from skinmod_manager.registry.store import RegistryStore
from skinmod_manager.registry.types import (
    NEVER_CHECKED,
    FileClaim,
    Mod,
    OriginDescriptor,
    RegistryState,
    UpdateAvailable,
    UpdateState,
    UpToDate,
)
from skinmod_manager.schemas.mod import ModManifest
from skinmod_manager.utils.paths import normalize_target_path

logger = logging.getLogger(__name__)

RegistryListener = Callable[[RegistryState], None]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _coerce_manifest(manifest: ModManifest | Mapping[str, Any]) -> ModManifest:
    if isinstance(manifest, ModManifest):
        return manifest
    try:
        return ModManifest.model_validate(manifest)
    except ValidationError as exc:
        raise InvalidInputError(f"Malformed manifest: {exc}") from exc


class ModRegistry:
    """Handle to one registry.  Lifecycle: open -> (mutations/queries)* -> close."""

    def __init__(
        self,
        *,
        store: RegistryStore | None = None,
        state: RegistryState | None = None,
        reject_duplicate_claims: bool = False,
        autoflush: bool = True,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._lock = threading.RLock()
        self._state = state or RegistryState()
        self._store = store
        self._autoflush = autoflush
        self._clock = clock
        self._listeners: list[RegistryListener] = []
        self._closed = False
        self.reject_duplicate_claims = reject_duplicate_claims

    @classmethod
    def open(cls, db_path: Path | str, **kwargs: Any) -> Self:
        """Open (creating if needed) a registry persisted at *db_path*."""
        store = RegistryStore(create_registry_engine(db_path))
        store.create_tables()
        registry = cls(store=store, state=store.load(), **kwargs)
        logger.info("Opened mod registry at %s", db_path)
        return registry

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def flush(self) -> None:
        """Persist the current state; a no-op for in-memory registries."""
        with self._lock:
            if self._store is not None:
                self._store.save(self._state)

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self.flush()
            if self._store is not None:
                self._store.dispose()
            self._closed = True
            logger.info("Closed mod registry (%d mods)", len(self._state.mods))

    def subscribe(self, listener: RegistryListener) -> None:
        self._listeners.append(listener)

    # ------------------------------------------------------------------
    # Queries (lock-free, snapshot based)
    # ------------------------------------------------------------------

    def snapshot(self) -> RegistryState:
        return self._state

    def list_mods(self) -> list[Mod]:
        return self._state.list_mods()

    def get_mod(self, mod_id: int) -> Mod:
        mod = self._state.get_mod(mod_id)
        if mod is None:
            raise NotFoundError(f"Mod {mod_id} not found")
        return mod

    def find_mod(self, ref: str | int) -> Mod:
        """Resolve a mod reference: an id, or a name matching exactly one mod."""
        if isinstance(ref, int):
            return self.get_mod(ref)
        ref = ref.strip()
        if ref.isdigit():
            return self.get_mod(int(ref))
        matches = [m for m in self._state.mods.values() if m.name == ref]
        if not matches:
            raise NotFoundError(f"No mod named '{ref}'")
        if len(matches) > 1:
            ids = ", ".join(str(m.id) for m in matches)
            raise InvalidInputError(f"Mod name '{ref}' is ambiguous (ids {ids}); use an id")
        return matches[0]

    def get_file_claims(self) -> dict[str, list[FileClaim]]:
        """All claims grouped by target path, including those of disabled mods."""
        return self._state.file_claims()

    def get_update_state(self, mod_id: int) -> UpdateState:
        self.get_mod(mod_id)
        return self._state.update_state(mod_id)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _commit(self, new_state: RegistryState) -> None:
        if self._closed:
            raise RuntimeError("Registry is closed")
        if self._store is not None and self._autoflush:
            self._store.save(new_state)
        self._state = new_state
        for listener in self._listeners:
            listener(new_state)

    def add_mod(self, manifest: ModManifest | Mapping[str, Any]) -> int:
        """Ingest a manifest and return the mod id.

        Re-installing a mod with the same name and origin reuses its id and
        keeps its priority, enabled flag and update state.
        """
        manifest = _coerce_manifest(manifest)
        origin = (
            OriginDescriptor.build(manifest.origin.kind, manifest.origin.locator, manifest.origin.options)
            if manifest.origin
            else None
        )

        hashes: dict[str, str] = {}
        for item in manifest.files:
            path = normalize_target_path(item.target_path)
            if path in hashes:
                raise InvalidInputError(f"Manifest claims '{path}' more than once")
            hashes[path] = item.content_hash

        with self._lock:
            state = self._state
            existing = next(
                (
                    m
                    for m in state.mods.values()
                    if m.name == manifest.name
                    and (m.origin.same_source(origin) if m.origin else origin is None)
                ),
                None,
            )
            mod_id = existing.id if existing else state.next_id
            enabled = existing.enabled if existing else True

            if self.reject_duplicate_claims and enabled:
                clashes: dict[str, list[int]] = {}
                for other in state.enabled_mods():
                    if other.id == mod_id:
                        continue
                    for path in other.claimed_paths() & hashes.keys():
                        clashes.setdefault(path, []).append(other.id)
                if clashes:
                    raise DuplicateFileClaimError(clashes)

            if manifest.priority is not None:
                priority = manifest.priority
            elif existing:
                priority = existing.priority
            else:
                priority = max((m.priority for m in state.mods.values()), default=-1) + 1

            mod = Mod(
                id=mod_id,
                name=manifest.name,
                version=manifest.version,
                enabled=enabled,
                priority=priority,
                origin=origin,
                claims=tuple(
                    FileClaim(target_path=p, mod_id=mod_id, content_hash=h) for p, h in hashes.items()
                ),
                installed_at=self._clock(),
            )

            mods = dict(state.mods)
            mods[mod_id] = mod
            overrides = dict(state.overrides)
            update_states = dict(state.update_states)
            if existing:
                for path, owner in state.overrides.items():
                    if owner == mod_id and path not in hashes:
                        logger.warning("Dropping override on '%s': %s no longer claims it", path, mod.name)
                        del overrides[path]
                current = state.update_state(mod_id)
                if isinstance(current, UpdateAvailable) and not is_newer_version(
                    current.remote_version, mod.version
                ):
                    update_states[mod_id] = UpToDate(
                        checked_at=current.checked_at, remote_version=current.remote_version
                    )

            self._commit(
                replace(
                    state,
                    mods=MappingProxyType(mods),
                    overrides=MappingProxyType(overrides),
                    update_states=MappingProxyType(update_states),
                    next_id=state.next_id if existing else state.next_id + 1,
                    revision=state.revision + 1,
                )
            )

        logger.info(
            "%s mod %s (id=%d, v%s, %d files, priority %d)",
            "Re-installed" if existing else "Installed",
            mod.name,
            mod_id,
            mod.version or "?",
            len(mod.claims),
            mod.priority,
        )
        return mod_id

    def remove_mod(self, mod_id: int) -> Mod:
        with self._lock:
            state = self._state
            mod = state.get_mod(mod_id)
            if mod is None:
                raise NotFoundError(f"Mod {mod_id} not found")
            mods = {k: v for k, v in state.mods.items() if k != mod_id}
            overrides = {p: o for p, o in state.overrides.items() if o != mod_id}
            update_states = {k: v for k, v in state.update_states.items() if k != mod_id}
            self._commit(
                replace(
                    state,
                    mods=MappingProxyType(mods),
                    overrides=MappingProxyType(overrides),
                    update_states=MappingProxyType(update_states),
                    revision=state.revision + 1,
                )
            )
        logger.info("Uninstalled mod %s (id=%d, %d files)", mod.name, mod_id, len(mod.claims))
        return mod

    def _replace_mod(self, mod_id: int, **changes: Any) -> Mod:
        with self._lock:
            state = self._state
            mod = state.get_mod(mod_id)
            if mod is None:
                raise NotFoundError(f"Mod {mod_id} not found")
            updated = replace(mod, **changes)
            if updated == mod:
                return mod
            mods = dict(state.mods)
            mods[mod_id] = updated
            self._commit(replace(state, mods=MappingProxyType(mods), revision=state.revision + 1))
            return updated

    def set_enabled(self, mod_id: int, enabled: bool) -> Mod:
        mod = self._replace_mod(mod_id, enabled=bool(enabled))
        logger.info("%s mod %s (id=%d)", "Enabled" if enabled else "Disabled", mod.name, mod_id)
        return mod

    def set_priority(self, mod_id: int, priority: int) -> Mod:
        if isinstance(priority, bool) or not isinstance(priority, int):
            raise InvalidInputError(f"Priority must be an integer, got {priority!r}")
        mod = self._replace_mod(mod_id, priority=priority)
        logger.info("Set priority of %s (id=%d) to %d", mod.name, mod_id, priority)
        return mod

    def set_manual_override(self, path: str, mod_id: int) -> None:
        """Pin *path* to *mod_id*; the mod must claim the path (enabled or not)."""
        path = normalize_target_path(path)
        with self._lock:
            state = self._state
            mod = state.get_mod(mod_id)
            if mod is None or path not in mod.claimed_paths():
                raise NoSuchClaimError(path, mod_id)
            if state.overrides.get(path) == mod_id:
                return
            overrides = dict(state.overrides)
            overrides[path] = mod_id
            self._commit(
                replace(state, overrides=MappingProxyType(overrides), revision=state.revision + 1)
            )
        logger.info("Override: '%s' now owned by %s (id=%d)", path, mod.name, mod_id)

    def clear_manual_override(self, path: str) -> bool:
        path = normalize_target_path(path)
        with self._lock:
            state = self._state
            if path not in state.overrides:
                return False
            overrides = {p: o for p, o in state.overrides.items() if p != path}
            self._commit(
                replace(state, overrides=MappingProxyType(overrides), revision=state.revision + 1)
            )
        logger.info("Cleared override on '%s'", path)
        return True

    def record_update_state(self, mod_id: int, update_state: UpdateState) -> UpdateState | None:
        """Store an update-check outcome.  Only the update checker calls this.

        ``checked_at`` never moves backwards for a mod: an outcome stamped
        earlier than the stored one is clamped to the stored timestamp.
        Returns the stored state, or None when the mod has since been removed.
        """
        with self._lock:
            state = self._state
            if mod_id not in state.mods:
                logger.debug("Dropping update result for removed mod %d", mod_id)
                return None
            previous = state.update_states.get(mod_id, NEVER_CHECKED)
            if (
                previous.checked_at is not None
                and update_state.checked_at is not None
                and update_state.checked_at < previous.checked_at
            ):
                update_state = replace(update_state, checked_at=previous.checked_at)  # type: ignore[type-var]
            update_states = dict(state.update_states)
            update_states[mod_id] = update_state
            self._commit(replace(state, update_states=MappingProxyType(update_states)))
            return update_state
