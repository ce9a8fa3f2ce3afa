from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    App settings.

    Notes:
    - Defaults are local and deterministic (SQLite file next to the repo).
    - Every field can be overridden with an `ACCESSGATE_*` env var.
    """

    model_config = SettingsConfigDict(env_prefix="ACCESSGATE_", extra="ignore")

    db_url: str | None = None
    privileges_config_path: str | None = None
    log_level: str = "INFO"

    permission_cache_ttl_seconds: float = 300.0
    # Levels below this number are standard (seeded) levels; this number and
    # above are administrator-defined custom levels.
    custom_level_threshold: int = 6
    seed_demo_data: bool = True

    def resolved_db_url(self) -> str:
        if self.db_url:
            return self.db_url

        repo_root = Path(__file__).resolve().parents[1]
        db_path = repo_root / "accessgate.db"
        return f"sqlite+aiosqlite:///{db_path}"

    def resolved_privileges_config_path(self) -> Path:
        if self.privileges_config_path:
            return Path(self.privileges_config_path)

        repo_root = Path(__file__).resolve().parents[1]
        return repo_root / "config" / "privileges.yaml"


@lru_cache
def get_settings() -> Settings:
    return Settings()
