"""Mod registry: store of record for installed mods, claims and update state."""

from skinmod_manager.registry.registry import ModRegistry
from skinmod_manager.registry.store import RegistryStore
from skinmod_manager.registry.types import (
    CheckFailed,
    FileClaim,
    Mod,
    NeverChecked,
    OriginDescriptor,
    OriginKind,
    RegistryState,
    UpdateAvailable,
    UpdateState,
    UpdateStatus,
    UpToDate,
)

__all__ = [
    "CheckFailed",
    "FileClaim",
    "Mod",
    "ModRegistry",
    "NeverChecked",
    "OriginDescriptor",
    "OriginKind",
    "RegistryState",
    "RegistryStore",
    "UpToDate",
    "UpdateAvailable",
    "UpdateState",
    "UpdateStatus",
]
