"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    processor_url: str = "http://localhost:3000/api/remove-background"
    processor_timeout_seconds: float = 60.0
    processing_max_retries: int = 2
    backoff_base_ms: int = 1000
    backoff_cap_ms: int = 5000
    progress_interval_seconds: float = 0.5
    max_upload_mb: int = 10
    accepted_formats: str = "jpeg,jpg,png,webp"
    max_working_dimension: int = 2048
    canvas_width: int = 800
    canvas_height: int = 600
    recenter_policy: str = "every_compose"
    warm_flag_path: str = ".photo_editor/processor-warmed.json"
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_accepted_formats(raw: str | None) -> set[str]:
    """Parse accepted upload formats from env, normalising jpg to jpeg."""
    if raw is None:
        return set()
    formats: set[str] = set()
    for chunk in raw.split(","):
        value = chunk.strip().lower()
        if not value:
            continue
        if value.startswith("image/"):
            value = value.removeprefix("image/")
        formats.add("jpeg" if value == "jpg" else value)
    return formats
