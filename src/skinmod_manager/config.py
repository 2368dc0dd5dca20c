import os
import sys
from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_data_dir() -> Path:
    if env := os.environ.get("SMM_DATA_DIR"):
        return Path(env)
    if sys.platform == "win32":
        base = Path(os.environ.get("LOCALAPPDATA", Path.home() / "AppData" / "Local"))
    else:
        base = Path(os.environ.get("XDG_DATA_HOME", Path.home() / ".local" / "share"))
    return base / "skinmod-manager"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SMM_",
        extra="ignore",
    )

    data_dir: Path = Path("")
    db_path: Path = Path("")
    host: str = "127.0.0.1"
    port: int = 8431

    reject_duplicate_claims: bool = False

    update_freshness_hours: float = 6.0
    update_backoff_base_seconds: float = 60.0
    update_backoff_cap_seconds: float = 6 * 3600.0
    update_max_concurrent: int = 5
    update_request_timeout: float = 30.0
    update_check_interval_minutes: float = 0.0
    github_token: str = ""
    user_agent: str = "skinmod-manager/0.1"

    @model_validator(mode="after")
    def _resolve_data_paths(self) -> "Settings":
        if self.data_dir == Path(""):
            self.data_dir = _default_data_dir()
        if self.db_path == Path(""):
            self.db_path = self.data_dir / "registry.db"
        self.update_max_concurrent = max(1, min(self.update_max_concurrent, 16))
        return self


settings = Settings()
