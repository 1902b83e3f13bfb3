# alunas/config/settings.py
from __future__ import annotations

from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv, find_dotenv
from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Load .env from repo root even when uvicorn cwd varies ---
# Existing env wins so container/CI secrets are never overridden.
load_dotenv(find_dotenv(usecwd=True), override=False)


class Settings(BaseSettings):
    VERSION: str = "0.1.0"
    BASE: str = "/app"
    CORS_ALLOW_ORIGINS: str = "*"  # CSV

    SUPABASE_URL: Optional[str] = None
    # Support either name; service-role preferred
    SUPABASE_KEY: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("SUPABASE_SERVICE_ROLE", "SUPABASE_KEY"),
    )

    ALUNAS_TABLE: str = "alunas_hotmart"
    ALUNAS_PAGE_SIZE: int = Field(default=50, gt=0)
    QUERY_CACHE_STALE_SECONDS: float = Field(default=30.0, ge=0)
    QUERY_CACHE_MAX_ENTRIES: int = Field(default=256, ge=1)
    ALUNAS_REQUIRE_DB: bool = False

    LOG_JSON: bool = False
    LOG_REQUESTS: bool = True
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def cors_origins(self) -> list[str]:
        return [s.strip() for s in self.CORS_ALLOW_ORIGINS.split(",") if s.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
