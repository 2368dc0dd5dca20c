"""Presentation helpers shared by the update and status endpoints."""

from __future__ import annotations

from skinmod_manager.errors import ResultCode
from skinmod_manager.registry.types import (
    CheckFailed,
    Mod,
    UpdateAvailable,
    UpdateState,
    UpToDate,
)
from skinmod_manager.schemas.updates import CheckAllResult, UpdateStateOut
from skinmod_manager.services.update_checker import CheckAllReport, UpdateChecker


def update_state_out(mod: Mod, state: UpdateState, checker: UpdateChecker | None = None) -> UpdateStateOut:
    out = UpdateStateOut(
        mod_id=mod.id,
        mod_name=mod.name,
        installed_version=mod.version,
        origin_kind=mod.origin.kind if mod.origin else None,
        status=state.status,
        checked_at=state.checked_at,
    )
    match state:
        case UpToDate(remote_version=remote_version):
            out.remote_version = remote_version
        case UpdateAvailable():
            out.remote_version = state.remote_version
            out.download_hint = state.download_hint
        case CheckFailed():
            out.reason = state.reason
            out.error_kind = state.error_kind
            out.failure_count = state.failure_count
            out.retry_after = state.retry_after
    if checker is not None and mod.origin is not None:
        out.checking = mod.id in checker.in_flight()
        out.next_check_at = checker.next_check_at(state)
    return out


def list_update_status(checker: UpdateChecker, *, with_origin_only: bool = False) -> list[UpdateStateOut]:
    snapshot = checker.registry.snapshot()
    return [
        update_state_out(mod, snapshot.update_state(mod.id), checker)
        for mod in snapshot.list_mods()
        if mod.origin is not None or not with_origin_only
    ]


def check_all_result(checker: UpdateChecker, report: CheckAllReport) -> CheckAllResult:
    snapshot = checker.registry.snapshot()
    updates = [
        update_state_out(mod, state, checker)
        for mod_id, state in sorted(report.results.items())
        if (mod := snapshot.get_mod(mod_id)) is not None
    ]
    # Per-mod failures are data on each entry; the run as a whole succeeded.
    return CheckAllResult(
        result=ResultCode.success,
        considered=report.considered,
        checked=report.checked,
        up_to_date=report.up_to_date,
        updates_available=report.updates_available,
        failed=report.failed,
        skipped_fresh=report.skipped_fresh,
        skipped_backoff=report.skipped_backoff,
        skipped_cancelled=report.skipped_cancelled,
        cancelled=report.cancelled,
        updates=updates,
    )
