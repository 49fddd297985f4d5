from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parents[1]
ENV_SEARCH_PATHS = (Path.cwd(), PROJECT_ROOT)


def _find_env_file(name: str) -> Path | None:
    return next((base / name for base in ENV_SEARCH_PATHS if (base / name).exists()), None)


def load_env() -> None:
    """Load ``.env`` and then ``.env.<APP_ENV>``, the latter winning on conflicts."""
    base_file = _find_env_file(".env")
    if base_file:
        load_dotenv(base_file)
    override_file = _find_env_file(f".env.{os.getenv('APP_ENV', 'development')}")
    if override_file:
        load_dotenv(override_file, override=True)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class Settings:
    database_url: str
    secret_key: str = "change-me"
    log_level: str = "INFO"
    log_dir: str = "logs"
    host: str = "127.0.0.1"
    port: int = 8080
    token_max_age_seconds: int = 86400
    cors_origins: str = "*"
    chat_history_limit: int = 100
    task_page_limit: int = 100

    @property
    def allowed_origins(self) -> str | list[str]:
        if self.cors_origins.strip() == "*":
            return "*"
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @classmethod
    def from_env(cls) -> "Settings":
        database_url = os.getenv("DATABASE_URL", "").strip()
        if not database_url:
            raise RuntimeError("DATABASE_URL is not set. Create a .env file with your connection string.")
        return cls(
            database_url=database_url,
            secret_key=os.getenv("SECRET_KEY", "change-me"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_dir=os.getenv("LOG_DIR", "logs"),
            host=os.getenv("HOST", "127.0.0.1"),
            port=_env_int("PORT", 8080),
            token_max_age_seconds=_env_int("TOKEN_MAX_AGE_SECONDS", 86400),
            cors_origins=os.getenv("CORS_ORIGINS", "*"),
            chat_history_limit=_env_int("CHAT_HISTORY_LIMIT", 100),
            task_page_limit=_env_int("TASK_PAGE_LIMIT", 100),
        )


load_env()

SETTINGS = Settings.from_env()
