"""Application configuration using Pydantic Settings."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="RELLENO_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="forbid",
    )

    # API
    PROJECT_NAME: str = "Relleno"
    VERSION: str = "0.1.0"

    # CORS
    CORS_ORIGINS: list[str] = Field(
        default=[],
        description=(
            "Allowed CORS origins for editor front ends served from another host. "
            "Example: RELLENO_CORS_ORIGINS='[\"https://editor.example.com\"]'"
        ),
    )

    # Server
    HOST: str = Field(default="127.0.0.1", description="Host to bind to")
    PORT: int = Field(default=8001, description="Port to bind to")
    LOG_LEVEL: str = Field(default="info", description="Root log level")
    LOG_FILE: str | None = Field(default=None, description="Optional log file path")

    # Storage
    DOCS_DIR: str = Field(
        default=".",
        description="Directory holding one record file per task id",
    )
    LOCK_TIMEOUT: float = Field(
        default=10.0,
        gt=0,
        description="Seconds to wait for a per-task file lock before reporting a conflict",
    )

    # Workflow
    NOTIFY_TIMEOUT: float = Field(
        default=15.0,
        gt=0,
        description="Total timeout in seconds for one outbound transition notification",
    )

    # Validation
    SCHEMA_CACHE_SIZE: int = Field(
        default=128,
        ge=1,
        description="Number of compiled JSON Schemas kept in the LRU cache",
    )

    # Editor page
    DEFAULT_SPA_PATH: str | None = Field(
        default=None,
        description="HTML file served as the editor page for tasks that carry no markup",
    )


settings = Settings()
