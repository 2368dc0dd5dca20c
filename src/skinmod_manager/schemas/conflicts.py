"""Response models for conflict resolution and manual overrides."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field

from skinmod_manager.errors import ResultCode
from skinmod_manager.services.conflicts.slots import AssetKind, Severity


class OutcomeKind(StrEnum):
    owned = "owned"
    overridden = "overridden"
    ambiguous = "ambiguous"


class ModRef(BaseModel):
    id: int
    name: str


class ClaimantOut(BaseModel):
    mod: ModRef
    priority: int
    content_hash: str


class AssetOut(BaseModel):
    kind: AssetKind
    label: str
    severity: Severity


class PathResolutionOut(BaseModel):
    target_path: str
    outcome: OutcomeKind
    winner: ModRef | None = None
    tied: list[ModRef] = Field(default_factory=list)
    claimants: list[ClaimantOut] = Field(default_factory=list)
    identical_content: bool = False
    asset: AssetOut


class ConflictSummary(BaseModel):
    total_paths: int
    contested_paths: int
    ambiguous_paths: int
    by_severity: dict[Severity, int]
    paths: list[PathResolutionOut]


class OverrideRequest(BaseModel):
    target_path: str
    mod: str


class OverrideResult(BaseModel):
    result: ResultCode
    target_path: str
    resolution: PathResolutionOut | None = None
    cleared: bool | None = None
