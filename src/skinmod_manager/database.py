import logging
from pathlib import Path

from sqlalchemy import Engine, event
from sqlmodel import SQLModel, create_engine, text
from sqlmodel.pool import StaticPool

import skinmod_manager.models  # noqa: F401 - register all tables with SQLModel

logger = logging.getLogger(__name__)


def create_registry_engine(db_path: Path | str) -> Engine:
    """Create a SQLite engine for a registry database file.

    ``":memory:"`` yields a private in-memory database shared by every
    connection of the returned engine.
    """
    if str(db_path) == ":memory:":
        return create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(
        f"sqlite:///{path}",
        echo=False,
        connect_args={"timeout": 30, "check_same_thread": False},
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()

    return engine


def create_db_and_tables(engine: Engine) -> None:
    SQLModel.metadata.create_all(engine)
    if engine.url.database:
        with engine.connect() as conn:
            conn.execute(text("PRAGMA journal_mode=WAL"))
            conn.commit()
    logger.debug("Registry tables ready on %s", engine.url)
