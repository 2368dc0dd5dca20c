from datetime import datetime

from sqlmodel import Field, SQLModel


class UpdateStateRecord(SQLModel, table=True):
    """Last known update-check outcome for one mod.

    Rows exist only for mods that have been checked at least once; a missing
    row means ``never_checked``.
    """

    __tablename__ = "update_states"

    mod_id: int = Field(primary_key=True, foreign_key="mods.id")
    status: str = Field(index=True)
    checked_at: datetime | None = None
    remote_version: str | None = None
    download_hint: str | None = None
    reason: str = ""
    error_kind: str = ""
    retry_after: datetime | None = None
    failure_count: int = 0
