"""Manifest input and mod response models."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from skinmod_manager.errors import ResultCode


class OriginIn(BaseModel):
    kind: str
    locator: str
    options: dict[str, str] = Field(default_factory=dict)

    @field_validator("kind", "locator")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be empty")
        return v


class FileClaimIn(BaseModel):
    target_path: str
    content_hash: str

    @field_validator("content_hash")
    @classmethod
    def _hash_not_blank(cls, v: str) -> str:
        v = v.strip().lower()
        if not v:
            raise ValueError("content hash must not be empty")
        return v


class ModManifest(BaseModel):
    """What the ingestion step hands to the registry after extracting a package."""

    name: str
    version: str = ""
    origin: OriginIn | None = None
    files: list[FileClaimIn]
    priority: int | None = None

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("mod name must not be empty")
        return v

    @field_validator("version")
    @classmethod
    def _strip_version(cls, v: str) -> str:
        return v.strip()

    @field_validator("files", mode="before")
    @classmethod
    def _accept_pairs(cls, v: Any) -> Any:
        # Extractors may send bare (target_path, content_hash) pairs.
        if isinstance(v, list | tuple):
            return [
                {"target_path": item[0], "content_hash": item[1]}
                if isinstance(item, list | tuple) and len(item) == 2
                else item
                for item in v
            ]
        return v


class OriginOut(BaseModel):
    kind: str
    locator: str
    options: dict[str, str]


class FileClaimOut(BaseModel):
    target_path: str
    content_hash: str


class ModOut(BaseModel):
    id: int
    name: str
    version: str
    enabled: bool
    priority: int
    origin: OriginOut | None = None
    installed_at: datetime
    claim_count: int
    claims: list[FileClaimOut] = Field(default_factory=list)


class ModActionResult(BaseModel):
    """Outcome of a mutation; ambiguous paths are surfaced, not treated as errors."""

    result: ResultCode
    mod: ModOut
    ambiguous_paths: list[str]


class UninstallResult(BaseModel):
    result: ResultCode
    removed_mod_id: int
    removed_claims: int


class PriorityUpdate(BaseModel):
    priority: int
