import asyncio
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlmodel import SQLModel, create_engine
from sqlmodel.pool import StaticPool

import skinmod_manager.models  # noqa: F401 - register all tables
from skinmod_manager.config import Settings
from skinmod_manager.main import create_app
from skinmod_manager.origins.base import LatestInfo, OriginNotFoundError
from skinmod_manager.registry.registry import ModRegistry
from skinmod_manager.registry.store import RegistryStore
from skinmod_manager.registry.types import OriginDescriptor

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


class FakeClock:
    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeSource:
    """In-process update source: versions (or exceptions) keyed by locator."""

    def __init__(self, kind: str = "github_release") -> None:
        self.kind = kind
        self.responses: dict[str, str | BaseException] = {}
        self.calls: list[str] = []
        self.delay = 0.0
        self.delays: dict[str, float] = {}
        self.gate: asyncio.Event | None = None
        self.active = 0
        self.peak = 0

    async def fetch_latest(self, origin: OriginDescriptor) -> LatestInfo:
        self.calls.append(origin.locator)
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            delay = self.delays.get(origin.locator, self.delay)
            if delay:
                await asyncio.sleep(delay)
            if self.gate is not None:
                await self.gate.wait()
            result = self.responses.get(origin.locator)
            if result is None:
                raise OriginNotFoundError(f"unknown origin {origin.locator}")
            if isinstance(result, BaseException):
                raise result
            return LatestInfo(version=result, fetched_at=datetime.now(UTC), download_hint=None)
        finally:
            self.active -= 1


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(eng)
    return eng


@pytest.fixture
def store(engine):
    return RegistryStore(engine)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def registry(clock):
    return ModRegistry(clock=clock)


@pytest.fixture
def make_mod(registry):
    def _make(
        name: str,
        files: list[str] | dict[str, str],
        *,
        priority: int | None = None,
        version: str = "1.0.0",
        origin: tuple[str, str] | None = None,
    ) -> int:
        if isinstance(files, dict):
            claims = [{"target_path": p, "content_hash": h} for p, h in files.items()]
        else:
            claims = [{"target_path": p, "content_hash": f"{name}:{p}"} for p in files]
        manifest = {"name": name, "version": version, "files": claims, "priority": priority}
        if origin is not None:
            manifest["origin"] = {"kind": origin[0], "locator": origin[1]}
        return registry.add_mod(manifest)

    return _make


@pytest.fixture
def fake_source():
    return FakeSource()


@pytest.fixture
def app_settings(tmp_path):
    return Settings(
        data_dir=tmp_path,
        db_path=Path(":memory:"),
        update_check_interval_minutes=0,
        update_request_timeout=5,
    )


@pytest.fixture
def client(app_settings, fake_source):
    app = create_app(app_settings, clients_factory=lambda _http, _cfg: {fake_source.kind: fake_source})
    with TestClient(app, raise_server_exceptions=False) as tc:
        yield tc
