from sqlmodel import Field, SQLModel


class RegistryMeta(SQLModel, table=True):
    __tablename__ = "registry_meta"

    id: int | None = Field(default=None, primary_key=True)
    key: str = Field(unique=True, index=True)
    value: str = ""
