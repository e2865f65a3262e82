from functools import lru_cache
import json
from pathlib import Path
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


BACKEND_ENV_FILE = Path(__file__).resolve().parents[2] / ".env"


class Settings(BaseSettings):
    # Resolve to backend/.env so `uvicorn --app-dir backend` works from any cwd.
    model_config = SettingsConfigDict(env_file=str(BACKEND_ENV_FILE), env_file_encoding="utf-8")

    project_name: str = "Clerkship Scheduler API"
    api_prefix: str = "/api"

    database_url: str = "sqlite:///./clerkship_scheduler.db"
    sqlite_busy_timeout_seconds: float = 5.0

    enforce_specialty_match: bool = False
    bulk_create_mode: Literal["best_effort", "all_or_nothing"] = "best_effort"
    conflict_retry_attempts: int = 1

    cors_origins: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_cors_origins(cls, value: str | list[str]) -> list[str]:
        if isinstance(value, str):
            stripped = value.strip()
            if stripped.startswith("["):
                try:
                    parsed = json.loads(stripped)
                    if isinstance(parsed, list):
                        return [str(item).strip() for item in parsed if str(item).strip()]
                except json.JSONDecodeError:
                    pass
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @field_validator("conflict_retry_attempts")
    @classmethod
    def clamp_retry_attempts(cls, value: int) -> int:
        return max(0, value)


@lru_cache
def get_settings() -> Settings:
    return Settings()
