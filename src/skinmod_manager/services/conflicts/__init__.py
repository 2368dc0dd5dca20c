"""Conflicts core: per-path ownership resolution over enabled mods."""

from skinmod_manager.services.conflicts.engine import (
    Ambiguous,
    ConflictEngine,
    Outcome,
    OverriddenTo,
    Owned,
    Resolution,
    resolve,
)
from skinmod_manager.services.conflicts.slots import AssetSlot, classify_target_path

__all__ = [
    "Ambiguous",
    "AssetSlot",
    "ConflictEngine",
    "Outcome",
    "OverriddenTo",
    "Owned",
    "Resolution",
    "classify_target_path",
    "resolve",
]
