"""
Process Settings
================

Process-level settings using Pydantic Settings. These describe where the
pre-renderer finds its inputs and how it drives the preview server; the
rendering matrix itself lives in the YAML pipeline configuration.
"""

from typing import Optional
from pathlib import Path

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Pre-renderer settings with environment variable support."""

    # Application Configuration
    app_name: str = Field(default="SSG Pre-Renderer", description="Application name")
    environment: str = Field(
        default="development", description="Environment: development, testing, production"
    )
    log_level: str = Field(default="INFO", description="Logging level")

    # Paths
    project_root: Path = Field(default=Path("."), description="Application project root")
    dist_dir: Optional[Path] = Field(default=None, description="Prebuilt output directory")
    config_path: Optional[Path] = Field(default=None, description="Pipeline settings YAML")
    routes_path: Optional[Path] = Field(default=None, description="Route list YAML")
    worker_template_path: Optional[Path] = Field(
        default=None, description="Edge worker script template"
    )

    # Preview Server Configuration
    preview_command: str = Field(
        default="npm run preview -- --port {port}",
        description="Command starting the preview server; {port} is substituted",
    )
    server_settle_delay: float = Field(
        default=3.0, ge=0, description="Seconds to wait before assuming the server is up"
    )
    server_stop_grace: float = Field(
        default=3.0, ge=0, description="Seconds between SIGTERM and SIGKILL on shutdown"
    )

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        """Validate environment value."""
        allowed = {"development", "testing", "production"}
        if v not in allowed:
            raise ValueError(f"Environment must be one of: {allowed}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"Log level must be one of: {allowed}")
        return v.upper()

    @model_validator(mode="after")
    def resolve_paths(self) -> "Settings":
        """Fill unset paths relative to the project root."""
        root = self.project_root
        if self.dist_dir is None:
            self.dist_dir = root / "dist"
        if self.config_path is None:
            self.config_path = root / "prerender.yaml"
        if self.routes_path is None:
            self.routes_path = root / "routes.yaml"
        if self.worker_template_path is None:
            self.worker_template_path = root / "_worker.js"
        return self

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False, env_prefix="PRERENDER_"
    )


# Global settings instance - will be initialized when needed
settings = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global settings
    if settings is None:
        settings = Settings()
    return settings


def reload_settings(**overrides) -> Settings:
    """Rebuild settings from the environment, applying explicit overrides."""
    global settings
    settings = Settings(**overrides)
    return settings
