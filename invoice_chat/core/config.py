"""
Centralised application settings loaded from environment / .env file.
"""
from __future__ import annotations

from pathlib import Path
from functools import lru_cache

from pydantic_settings import BaseSettings
from dotenv import load_dotenv

# Load .env from project root (two levels up from this file)
_ENV_PATH = Path(__file__).resolve().parents[2] / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseSettings):
    # ── Postgres ─────────────────────────────────────────
    postgres_user: str = "og_mcp"
    postgres_password: str = "og_mcp"
    postgres_db: str = "oneglobe"
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_sslmode: str = "prefer"

    # ── Pool / execution ─────────────────────────────────
    pool_size: int = 5
    pool_max_overflow: int = 5
    pool_timeout_s: float = 5.0
    connect_timeout_s: int = 5
    statement_timeout_ms: int = 10_000
    sql_policy: str = "denylist"  # denylist | strict

    # ── LLM ──────────────────────────────────────────────
    llm_provider: str = "mock"  # mock | openai | anthropic
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    default_model: str = "mock-sql-1"
    available_models: str = "mock-sql-1,gpt-4o-mini,gpt-4o,claude-3-haiku-20240307"

    # ── Gateway client ───────────────────────────────────
    gateway_url: str = "http://localhost:3001"
    gateway_timeout_s: float = 30.0

    # ── UI ───────────────────────────────────────────────
    auto_execute: bool = True
    enable_ratings: bool = True

    # ── App ──────────────────────────────────────────────
    api_port: int = 3001
    cors_origins: str = "*"
    log_level: str = "INFO"

    @property
    def database_url(self) -> str:
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def model_choices(self) -> list[str]:
        return [m.strip() for m in self.available_models.split(",") if m.strip()]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    return Settings()
