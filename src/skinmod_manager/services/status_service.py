"""Registry-wide status summary."""

from __future__ import annotations

from skinmod_manager.registry.types import RegistryState, UpdateStatus
from skinmod_manager.schemas.status import ModStatusLine, RegistryStatus
from skinmod_manager.services.conflicts.engine import Ambiguous, Resolution


def build_status(
    state: RegistryState,
    resolution: Resolution,
    *,
    checking: frozenset[int] = frozenset(),
) -> RegistryStatus:
    owned: dict[int, int] = {}
    ambiguous: dict[int, int] = {}
    for outcome in resolution.values():
        if isinstance(outcome, Ambiguous):
            for mod_id in outcome.mod_ids:
                ambiguous[mod_id] = ambiguous.get(mod_id, 0) + 1
        else:
            owned[outcome.mod_id] = owned.get(outcome.mod_id, 0) + 1

    by_status: dict[UpdateStatus, int] = {s: 0 for s in UpdateStatus}
    lines: list[ModStatusLine] = []
    for mod in state.list_mods():
        update_status = state.update_state(mod.id).status
        by_status[update_status] += 1
        lines.append(
            ModStatusLine(
                id=mod.id,
                name=mod.name,
                version=mod.version,
                enabled=mod.enabled,
                priority=mod.priority,
                claim_count=len(mod.claims),
                owned_paths=owned.get(mod.id, 0),
                ambiguous_paths=ambiguous.get(mod.id, 0),
                update_status=update_status,
            )
        )

    return RegistryStatus(
        mods_installed=len(state.mods),
        mods_enabled=len(state.enabled_mods()),
        total_claims=sum(len(m.claims) for m in state.mods.values()),
        claimed_paths=len(resolution),
        contested_paths=len(resolution.conflict_groups),
        ambiguous_paths=len(resolution.ambiguous()),
        overrides=len(state.overrides),
        update_states=by_status,
        checking=len(checking),
        mods=lines,
    )
