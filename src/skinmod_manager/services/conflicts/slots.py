"""Classify target paths by the game asset they affect.

The classification is purely path based and only annotates conflict reports:
it never changes which mod owns a file.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import StrEnum
from pathlib import PurePosixPath


class AssetKind(StrEnum):
    char_skin_slot = "char_skin_slot"
    stage = "stage"
    global_ = "global"
    no_effect = "no_effect"


class Severity(StrEnum):
    high = "high"
    medium = "medium"
    low = "low"


@dataclass(frozen=True, slots=True)
class AssetSlot:
    kind: AssetKind
    label: str
    character: str | None = None
    slot: int | None = None
    stage: str | None = None

    @property
    def severity(self) -> Severity:
        return _SEVERITY[self.kind]

    @property
    def is_custom_slot(self) -> bool:
        """Character slots past c07 only exist when a mod adds them."""
        return self.slot is not None and self.slot > 7


_SEVERITY: dict[AssetKind, Severity] = {
    AssetKind.char_skin_slot: Severity.high,
    AssetKind.stage: Severity.high,
    AssetKind.global_: Severity.medium,
    AssetKind.no_effect: Severity.low,
}

_SLOT_DIR_RE = re.compile(r"^c(\d{2,3})$", re.IGNORECASE)
_SLOT_IN_NAME_RE = re.compile(r"_c(\d{2,3})(?=[._])", re.IGNORECASE)

_SOUND_SLOT_RE = re.compile(r"^(?:se|vc)_([a-z0-9]+)_c(\d{2,3})\.")

_NO_EFFECT_NAMES = frozenset({"readme", "license", "changelog", "credits", "preview", "thumbnail", "info"})
_NO_EFFECT_SUFFIXES = frozenset({".txt", ".md", ".pdf", ".url", ".toml", ".ini", ".json", ".ds_store"})
_PREVIEW_SUFFIXES = frozenset({".png", ".jpg", ".jpeg", ".webp", ".gif"})
_JUNK_FILES = frozenset({"thumbs.db", "desktop.ini", ".ds_store"})


def _is_no_effect(path: PurePosixPath) -> bool:
    name = path.name.lower()
    if name in _JUNK_FILES:
        return True
    suffix = path.suffix.lower()
    # Loose docs and preview images at the package root are never loaded by the game.
    if len(path.parts) == 1:
        if suffix in _NO_EFFECT_SUFFIXES:
            return True
        if suffix in _PREVIEW_SUFFIXES and path.stem.lower() in _NO_EFFECT_NAMES:
            return True
    return path.stem.lower() in _NO_EFFECT_NAMES and suffix in _NO_EFFECT_SUFFIXES


def _slot_number(parts: tuple[str, ...], name: str) -> int | None:
    for part in parts:
        m = _SLOT_DIR_RE.match(part)
        if m:
            return int(m.group(1))
    m = _SLOT_IN_NAME_RE.search(name)
    return int(m.group(1)) if m else None


def classify_target_path(target_path: str) -> AssetSlot:
    """Classify a normalised target path.

    >>> classify_target_path("fighter/mario/model/body/c03/model.numdlb").label
    'fighter/mario/c03'
    """
    path = PurePosixPath(target_path)
    parts = tuple(p.lower() for p in path.parts)

    if _is_no_effect(path):
        return AssetSlot(kind=AssetKind.no_effect, label="no effect")

    if "fighter" in parts:
        idx = parts.index("fighter")
        if idx + 1 < len(parts) - 1:
            character = parts[idx + 1]
            slot = _slot_number(parts[idx + 2 : -1], parts[-1])
            if slot is not None:
                return AssetSlot(
                    kind=AssetKind.char_skin_slot,
                    label=f"fighter/{character}/c{slot:02d}",
                    character=character,
                    slot=slot,
                )

    # Sound files carry the slot in the file name only: sound/bank/fighter_voice/vc_mario_c02.nus3audio
    if "sound" in parts:
        m = _SOUND_SLOT_RE.search(parts[-1])
        if m:
            slot = int(m.group(2))
            return AssetSlot(
                kind=AssetKind.char_skin_slot,
                label=f"fighter/{m.group(1)}/c{slot:02d}",
                character=m.group(1),
                slot=slot,
            )

    if "stage" in parts:
        idx = parts.index("stage")
        if idx + 1 < len(parts) - 1:
            stage = parts[idx + 1]
            return AssetSlot(kind=AssetKind.stage, label=f"stage/{stage}", stage=stage)

    return AssetSlot(kind=AssetKind.global_, label="global")


def most_severe(slots: list[AssetSlot]) -> Severity:
    order = [Severity.high, Severity.medium, Severity.low]
    found = {s.severity for s in slots}
    return next((s for s in order if s in found), Severity.low)
