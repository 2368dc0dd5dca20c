from datetime import UTC, datetime

from sqlmodel import Column, Field, Relationship, SQLModel, Text


class ModRecord(SQLModel, table=True):
    __tablename__ = "mods"

    # Ids are assigned by the registry and never reused, so no autoincrement.
    id: int = Field(primary_key=True, sa_column_kwargs={"autoincrement": False})
    name: str = Field(index=True)
    version: str = ""
    enabled: bool = True
    priority: int = 0
    origin_kind: str | None = None
    origin_locator: str | None = None
    origin_options: str = Field(default="{}", sa_column=Column(Text))
    installed_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    claims: list["FileClaimRecord"] = Relationship(
        back_populates="mod",
        cascade_delete=True,
    )


class FileClaimRecord(SQLModel, table=True):
    __tablename__ = "file_claims"

    id: int | None = Field(default=None, primary_key=True)
    mod_id: int = Field(foreign_key="mods.id", index=True)
    target_path: str = Field(index=True)
    content_hash: str = ""

    mod: ModRecord | None = Relationship(back_populates="claims")
