"""Application configuration."""
from __future__ import annotations

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings loaded from .env and environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    repair_endpoint_url: str = Field(
        default="http://localhost:8000/api/generate",
        validation_alias=AliasChoices("REPAIR_ENDPOINT_URL", "GENERATION_ENDPOINT_URL"),
    )
    repair_timeout_seconds: float = 60.0
    mermaid_render_mode: str = "cli"  # "cli" or "docker"
    mermaid_cli_path: str = "mmdc"
    mermaid_renderer_image: str = "minlag/mermaid-cli"
    mermaid_render_timeout_seconds: float = 60.0
    database_url: str = Field(
        default="sqlite+pysqlite:///docforge.db",
        validation_alias=AliasChoices("DATABASE_URL"),
    )
    output_dir: str = "outputs"
    raster_scale: float = 2.0
    log_level: str = "INFO"


settings = Settings()
