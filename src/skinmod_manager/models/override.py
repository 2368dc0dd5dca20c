from datetime import UTC, datetime

from sqlmodel import Field, SQLModel


class ManualOverrideRecord(SQLModel, table=True):
    """User decision pinning a contested path to one mod."""

    __tablename__ = "manual_overrides"

    target_path: str = Field(primary_key=True)
    mod_id: int = Field(foreign_key="mods.id", index=True)
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
