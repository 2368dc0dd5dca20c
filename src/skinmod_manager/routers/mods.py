import logging

from fastapi import APIRouter, Depends

from skinmod_manager.errors import ResultCode
from skinmod_manager.registry.registry import ModRegistry
from skinmod_manager.registry.types import Mod
from skinmod_manager.routers.deps import get_engine, get_mod_or_404, get_registry
from skinmod_manager.schemas.mod import (
    FileClaimOut,
    ModActionResult,
    ModManifest,
    ModOut,
    OriginOut,
    PriorityUpdate,
    UninstallResult,
)
from skinmod_manager.services.conflicts.engine import ConflictEngine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/mods", tags=["mods"])


def _mod_out(mod: Mod, *, with_claims: bool = False) -> ModOut:
    return ModOut(
        id=mod.id,
        name=mod.name,
        version=mod.version,
        enabled=mod.enabled,
        priority=mod.priority,
        origin=(
            OriginOut(kind=mod.origin.kind, locator=mod.origin.locator, options=dict(mod.origin.options))
            if mod.origin
            else None
        ),
        installed_at=mod.installed_at,
        claim_count=len(mod.claims),
        claims=(
            [FileClaimOut(target_path=c.target_path, content_hash=c.content_hash) for c in mod.claims]
            if with_claims
            else []
        ),
    )


def _action_result(mod: Mod, engine: ConflictEngine) -> ModActionResult:
    """Wrap a mutated mod; ties it is part of are reported, not raised."""
    ambiguous = sorted(p for p, o in engine.resolve().ambiguous().items() if mod.id in o.mod_ids)
    return ModActionResult(
        result=ResultCode.ambiguous if ambiguous else ResultCode.success,
        mod=_mod_out(mod),
        ambiguous_paths=ambiguous,
    )


@router.get("", response_model=list[ModOut])
def list_mods(registry: ModRegistry = Depends(get_registry)) -> list[ModOut]:
    return [_mod_out(m) for m in registry.list_mods()]


@router.post("", response_model=ModActionResult, status_code=201)
def install_mod(
    manifest: ModManifest,
    registry: ModRegistry = Depends(get_registry),
    engine: ConflictEngine = Depends(get_engine),
) -> ModActionResult:
    mod_id = registry.add_mod(manifest)
    return _action_result(registry.get_mod(mod_id), engine)


@router.get("/{ref}", response_model=ModOut)
def get_mod(mod: Mod = Depends(get_mod_or_404)) -> ModOut:
    return _mod_out(mod, with_claims=True)


@router.delete("/{ref}", response_model=UninstallResult)
def uninstall_mod(
    mod: Mod = Depends(get_mod_or_404),
    registry: ModRegistry = Depends(get_registry),
) -> UninstallResult:
    removed = registry.remove_mod(mod.id)
    return UninstallResult(
        result=ResultCode.success,
        removed_mod_id=removed.id,
        removed_claims=len(removed.claims),
    )


@router.post("/{ref}/enable", response_model=ModActionResult)
def enable_mod(
    mod: Mod = Depends(get_mod_or_404),
    registry: ModRegistry = Depends(get_registry),
    engine: ConflictEngine = Depends(get_engine),
) -> ModActionResult:
    return _action_result(registry.set_enabled(mod.id, True), engine)


@router.post("/{ref}/disable", response_model=ModActionResult)
def disable_mod(
    mod: Mod = Depends(get_mod_or_404),
    registry: ModRegistry = Depends(get_registry),
    engine: ConflictEngine = Depends(get_engine),
) -> ModActionResult:
    return _action_result(registry.set_enabled(mod.id, False), engine)


@router.put("/{ref}/priority", response_model=ModActionResult)
def set_priority(
    data: PriorityUpdate,
    mod: Mod = Depends(get_mod_or_404),
    registry: ModRegistry = Depends(get_registry),
    engine: ConflictEngine = Depends(get_engine),
) -> ModActionResult:
    return _action_result(registry.set_priority(mod.id, data.priority), engine)
