from datetime import datetime

from pydantic import BaseModel

from skinmod_manager.errors import ResultCode


class UpdateStateOut(BaseModel):
    mod_id: int
    mod_name: str
    installed_version: str
    origin_kind: str | None = None
    status: str
    checking: bool = False
    checked_at: datetime | None = None
    remote_version: str | None = None
    download_hint: str | None = None
    reason: str | None = None
    error_kind: str | None = None
    failure_count: int = 0
    retry_after: datetime | None = None
    next_check_at: datetime | None = None


class CheckOneResult(BaseModel):
    result: ResultCode
    update: UpdateStateOut


class CheckAllResult(BaseModel):
    result: ResultCode
    considered: int
    checked: int
    up_to_date: int
    updates_available: int
    failed: int
    skipped_fresh: int
    skipped_backoff: int
    skipped_cancelled: int
    cancelled: bool
    updates: list[UpdateStateOut]


class CancelResult(BaseModel):
    cancelled: bool
