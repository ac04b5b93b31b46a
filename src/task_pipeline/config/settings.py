"""Application settings."""

from functools import lru_cache
import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[3]


class Settings(BaseSettings):
    """Runtime settings loaded from environment variables."""

    app_name: str = "task-pipeline"
    app_env: str = "dev"
    log_level: str = "INFO"
    llm_provider: str = "deterministic"
    llm_model: str = "gpt-4o-mini"
    llm_base_url: str = "https://api.openai.com/v1"
    anthropic_base_url: str = "https://api.anthropic.com/v1"
    llm_timeout_s: float = Field(default=30.0, ge=0.5)
    llm_max_retries: int = Field(default=1, ge=0)
    llm_backoff_s: float = Field(default=0.5, ge=0.0)
    llm_max_correction_attempts: int = Field(default=2, ge=0)
    llm_temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    llm_max_tokens: int = Field(default=2048, ge=1)
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    store_backend: str = "sqlite"
    database_url: str = ""
    sqlite_path: str = "data/tasks.db"
    stage_max_retries: int = Field(default=2, ge=0)
    tools_enabled: bool = True
    url_check_timeout_s: float = Field(default=5.0, ge=0.1)
    default_page_size: int = Field(default=10, ge=1)
    max_page_size: int = Field(default=50, ge=1)

    model_config = SettingsConfigDict(
        env_prefix="TASK_PIPELINE_",
        extra="ignore",
        env_file=(PROJECT_ROOT / ".env", PROJECT_ROOT / ".env.local"),
        env_file_encoding="utf-8",
    )

    def resolved_database_url(self) -> str:
        return self.database_url or os.getenv("DATABASE_URL", "")

    def resolved_openai_api_key(self) -> str:
        return self.openai_api_key or os.getenv("OPENAI_API_KEY", "")

    def resolved_anthropic_api_key(self) -> str:
        return self.anthropic_api_key or os.getenv("ANTHROPIC_API_KEY", "")

    def resolved_sqlite_path(self) -> Path:
        path = Path(self.sqlite_path).expanduser()
        if path.is_absolute():
            return path
        return Path.cwd() / path


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
