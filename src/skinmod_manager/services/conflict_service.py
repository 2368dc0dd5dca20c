"""Turn a conflict resolution into the report served by the API."""

from __future__ import annotations

from skinmod_manager.registry.types import FileClaim, RegistryState
from skinmod_manager.schemas.conflicts import (
    AssetOut,
    ClaimantOut,
    ConflictSummary,
    ModRef,
    OutcomeKind,
    PathResolutionOut,
)
from skinmod_manager.services.conflicts.engine import (
    Ambiguous,
    OverriddenTo,
    Resolution,
)
from skinmod_manager.services.conflicts.slots import Severity, classify_target_path


def _mod_ref(state: RegistryState, mod_id: int) -> ModRef:
    mod = state.get_mod(mod_id)
    return ModRef(id=mod_id, name=mod.name if mod else f"Unknown (ID {mod_id})")


def describe_path(
    state: RegistryState,
    resolution: Resolution,
    target_path: str,
    claims: dict[str, list[FileClaim]] | None = None,
) -> PathResolutionOut:
    """Describe the outcome for one path; raises KeyError if no enabled mod claims it."""
    key = resolution.canonical_path(target_path)
    outcome = resolution[key]
    if claims is None:
        claims = state.file_claims(enabled_only=True)
    group = claims.get(key, [])
    slot = classify_target_path(key)

    if isinstance(outcome, Ambiguous):
        kind = OutcomeKind.ambiguous
        tied = [_mod_ref(state, m) for m in outcome.mod_ids]
        winner = None
    else:
        kind = OutcomeKind.overridden if isinstance(outcome, OverriddenTo) else OutcomeKind.owned
        tied = []
        winner = _mod_ref(state, outcome.mod_id)

    return PathResolutionOut(
        target_path=key,
        outcome=kind,
        winner=winner,
        tied=tied,
        claimants=[
            ClaimantOut(
                mod=_mod_ref(state, c.mod_id),
                priority=state.mods[c.mod_id].priority,
                content_hash=c.content_hash,
            )
            for c in group
        ],
        identical_content=len(group) > 1 and len({c.content_hash for c in group}) == 1,
        asset=AssetOut(kind=slot.kind, label=slot.label, severity=slot.severity),
    )


def build_conflict_summary(
    state: RegistryState,
    resolution: Resolution,
    *,
    contested_only: bool = True,
) -> ConflictSummary:
    claims = state.file_claims(enabled_only=True)
    paths = list(resolution.conflict_groups) if contested_only else list(resolution)
    described = [describe_path(state, resolution, p, claims) for p in paths]

    by_severity: dict[Severity, int] = {s: 0 for s in Severity}
    for path in resolution.conflict_groups:
        by_severity[classify_target_path(path).severity] += 1

    return ConflictSummary(
        total_paths=len(resolution),
        contested_paths=len(resolution.conflict_groups),
        ambiguous_paths=len(resolution.ambiguous()),
        by_severity=by_severity,
        paths=described,
    )
