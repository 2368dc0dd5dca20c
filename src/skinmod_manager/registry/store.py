"""SQLite persistence for the registry.

``save`` is a full rewrite inside one transaction rather than an incremental
patch: registries hold tens of mods, and a rewrite keeps the on-disk state a
faithful image of exactly one :class:`RegistryState`.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime

from sqlalchemy import Engine, delete
from sqlmodel import Session, select

from skinmod_manager.database import create_db_and_tables
from skinmod_manager.models.meta import RegistryMeta
from skinmod_manager.models.mod import FileClaimRecord, ModRecord
from skinmod_manager.models.override import ManualOverrideRecord
from skinmod_manager.models.update import UpdateStateRecord
from skinmod_manager.registry.types import (
    CheckFailed,
    FileClaim,
    Mod,
    NeverChecked,
    OriginDescriptor,
    RegistryState,
    UpdateAvailable,
    UpdateState,
    UpdateStatus,
    UpToDate,
)

logger = logging.getLogger(__name__)

_NEXT_ID_KEY = "next_mod_id"


def _to_db(dt: datetime | None) -> datetime | None:
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(UTC).replace(tzinfo=None)


def _from_db(dt: datetime | None) -> datetime | None:
    if dt is None:
        return None
    return dt.replace(tzinfo=UTC) if dt.tzinfo is None else dt


def _state_to_record(mod_id: int, state: UpdateState) -> UpdateStateRecord | None:
    match state:
        case NeverChecked():
            return None
        case UpToDate(checked_at=checked_at, remote_version=remote_version):
            return UpdateStateRecord(
                mod_id=mod_id,
                status=state.status,
                checked_at=_to_db(checked_at),
                remote_version=remote_version,
            )
        case UpdateAvailable():
            return UpdateStateRecord(
                mod_id=mod_id,
                status=state.status,
                checked_at=_to_db(state.checked_at),
                remote_version=state.remote_version,
                download_hint=state.download_hint,
            )
        case CheckFailed():
            return UpdateStateRecord(
                mod_id=mod_id,
                status=state.status,
                checked_at=_to_db(state.checked_at),
                reason=state.reason,
                error_kind=state.error_kind,
                retry_after=_to_db(state.retry_after),
                failure_count=state.failure_count,
            )
    raise TypeError(f"Unknown update state {state!r}")


def _record_to_state(row: UpdateStateRecord) -> UpdateState:
    checked_at = _from_db(row.checked_at)
    if row.status == UpdateStatus.up_to_date and checked_at is not None:
        return UpToDate(checked_at=checked_at, remote_version=row.remote_version)
    if row.status == UpdateStatus.update_available and checked_at is not None:
        return UpdateAvailable(
            remote_version=row.remote_version or "",
            checked_at=checked_at,
            download_hint=row.download_hint,
        )
    if row.status == UpdateStatus.check_failed and checked_at is not None:
        return CheckFailed(
            reason=row.reason,
            checked_at=checked_at,
            retry_after=_from_db(row.retry_after) or checked_at,
            failure_count=row.failure_count,
            error_kind=row.error_kind or "network",
        )
    logger.warning("Discarding unreadable update state for mod %d (%s)", row.mod_id, row.status)
    return NeverChecked()


class RegistryStore:
    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def create_tables(self) -> None:
        create_db_and_tables(self.engine)

    def load(self) -> RegistryState:
        with Session(self.engine) as session:
            mod_rows = session.exec(select(ModRecord).order_by(ModRecord.id)).all()
            claim_rows = session.exec(select(FileClaimRecord).order_by(FileClaimRecord.id)).all()
            override_rows = session.exec(select(ManualOverrideRecord)).all()
            state_rows = session.exec(select(UpdateStateRecord)).all()
            meta = session.exec(select(RegistryMeta).where(RegistryMeta.key == _NEXT_ID_KEY)).first()

        claims_by_mod: dict[int, list[FileClaim]] = {}
        for row in claim_rows:
            claims_by_mod.setdefault(row.mod_id, []).append(
                FileClaim(target_path=row.target_path, mod_id=row.mod_id, content_hash=row.content_hash)
            )

        mods: list[Mod] = []
        for row in mod_rows:
            origin = None
            if row.origin_kind and row.origin_locator:
                try:
                    options = json.loads(row.origin_options or "{}")
                except json.JSONDecodeError:
                    logger.warning("Unreadable origin options for mod %d, dropping them", row.id)
                    options = {}
                origin = OriginDescriptor.build(row.origin_kind, row.origin_locator, options)
            mods.append(
                Mod(
                    id=row.id,
                    name=row.name,
                    version=row.version,
                    enabled=row.enabled,
                    priority=row.priority,
                    origin=origin,
                    claims=tuple(claims_by_mod.get(row.id, ())),
                    installed_at=_from_db(row.installed_at),  # type: ignore[arg-type]
                )
            )

        state = RegistryState.build(
            mods,
            overrides={r.target_path: r.mod_id for r in override_rows},
            update_states={r.mod_id: _record_to_state(r) for r in state_rows},
            next_id=int(meta.value) if meta and meta.value.isdigit() else None,
        )
        logger.info(
            "Loaded registry: %d mods, %d overrides, %d update states",
            len(state.mods),
            len(state.overrides),
            len(state.update_states),
        )
        return state

    def save(self, state: RegistryState) -> None:
        with Session(self.engine) as session:
            for table in (UpdateStateRecord, ManualOverrideRecord, FileClaimRecord, ModRecord):
                session.execute(delete(table))

            for mod in state.mods.values():
                session.add(
                    ModRecord(
                        id=mod.id,
                        name=mod.name,
                        version=mod.version,
                        enabled=mod.enabled,
                        priority=mod.priority,
                        origin_kind=mod.origin.kind if mod.origin else None,
                        origin_locator=mod.origin.locator if mod.origin else None,
                        origin_options=json.dumps(dict(mod.origin.options)) if mod.origin else "{}",
                        installed_at=_to_db(mod.installed_at),
                    )
                )
            session.flush()

            for mod in state.mods.values():
                for claim in mod.claims:
                    session.add(
                        FileClaimRecord(
                            mod_id=mod.id,
                            target_path=claim.target_path,
                            content_hash=claim.content_hash,
                        )
                    )
            for path, mod_id in state.overrides.items():
                session.add(ManualOverrideRecord(target_path=path, mod_id=mod_id))
            for mod_id, update_state in state.update_states.items():
                record = _state_to_record(mod_id, update_state)
                if record is not None:
                    session.add(record)

            meta = session.exec(select(RegistryMeta).where(RegistryMeta.key == _NEXT_ID_KEY)).first()
            if meta:
                meta.value = str(state.next_id)
            else:
                meta = RegistryMeta(key=_NEXT_ID_KEY, value=str(state.next_id))
            session.add(meta)
            session.commit()

    def dispose(self) -> None:
        self.engine.dispose()
