"""Endpoints for the current resolution and manual overrides."""

import logging

from fastapi import APIRouter, Depends

from skinmod_manager.errors import NotFoundError, ResultCode
from skinmod_manager.registry.registry import ModRegistry
from skinmod_manager.routers.deps import get_engine, get_registry
from skinmod_manager.schemas.conflicts import (
    ConflictSummary,
    OutcomeKind,
    OverrideRequest,
    OverrideResult,
)
from skinmod_manager.services.conflict_service import build_conflict_summary, describe_path
from skinmod_manager.services.conflicts.engine import ConflictEngine
from skinmod_manager.utils.paths import normalize_target_path

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/conflicts", tags=["conflicts"])


def _override_result(engine: ConflictEngine, path: str, *, cleared: bool | None = None) -> OverrideResult:
    state = engine.registry.snapshot()
    resolution = engine.resolve(state)
    # A disabled mod's override is stored but has no effect until re-enabled.
    described = describe_path(state, resolution, path) if path in resolution else None
    ambiguous = described is not None and described.outcome == OutcomeKind.ambiguous
    return OverrideResult(
        result=ResultCode.ambiguous if ambiguous else ResultCode.success,
        target_path=path,
        resolution=described,
        cleared=cleared,
    )


@router.get("", response_model=ConflictSummary)
def list_conflicts(
    contested_only: bool = True,
    engine: ConflictEngine = Depends(get_engine),
) -> ConflictSummary:
    """Return the current resolution.

    By default only paths claimed by two or more enabled mods are listed;
    pass ``contested_only=false`` for every claimed path.
    """
    state = engine.registry.snapshot()
    return build_conflict_summary(state, engine.resolve(state), contested_only=contested_only)


@router.put("/overrides", response_model=OverrideResult)
def set_override(
    data: OverrideRequest,
    registry: ModRegistry = Depends(get_registry),
    engine: ConflictEngine = Depends(get_engine),
) -> OverrideResult:
    mod = registry.find_mod(data.mod)
    path = normalize_target_path(data.target_path)
    engine.set_manual_override(path, mod.id)
    return _override_result(engine, path)


@router.delete("/overrides", response_model=OverrideResult)
def clear_override(
    target_path: str,
    engine: ConflictEngine = Depends(get_engine),
) -> OverrideResult:
    path = normalize_target_path(target_path)
    if not engine.clear_manual_override(path):
        raise NotFoundError(f"No manual override on '{path}'")
    return _override_result(engine, path, cleared=True)
