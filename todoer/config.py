from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
  model_config = SettingsConfigDict(env_file=".env", env_prefix="TODOER_", extra="ignore")

  database_url: str = "sqlite+aiosqlite:///./data/todoer.db"
  app_version: str = "v2026-10-17"

  log_level: str = "INFO"
  log_file: str | None = None

  cors_origins: str = "http://localhost:5173,http://127.0.0.1:5173"

  snapshot_format_version: int = 1
  max_attachment_bytes: int = 10 * 1024 * 1024

  def cors_origin_list(self) -> list[str]:
    return [o.strip() for o in self.cors_origins.split(",") if o.strip()]


settings = Settings()
