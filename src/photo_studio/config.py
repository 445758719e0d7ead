"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    gemini_api_key: str | None = None
    gemini_model: str = "gemini-2.5-flash-image-preview"
    openai_api_key: str | None = None
    openai_image_model: str = "dall-e-3"
    stability_api_key: str | None = None
    stability_base_url: str = "https://api.stability.ai"
    stability_image_cost: float = 0.006
    comfyui_url: str = "http://127.0.0.1:8188"
    comfyui_enabled: bool = True
    enabled_providers: str | None = None
    api_token: str | None = None
    upload_dir: str = "uploads"
    generated_dir: str = "generated"
    variation_catalog_path: str | None = None
    max_upload_bytes: int = 5 * 1024 * 1024
    batch_chunk_size: int = 10
    batch_chunk_pause_seconds: float = 3.0
    max_batch_iterations: int = 1000
    hosted_provider_timeout_seconds: float = 90.0
    comfyui_timeout_seconds: float = 120.0
    generation_deadline_seconds: float = 300.0
    batch_deadline_seconds: float = 1800.0
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_provider_names(raw: str | None) -> set[str] | None:
    """Parse the enabled provider allow-list from env."""
    if raw is None:
        return None
    cleaned = raw.strip()
    if cleaned in {"", "*"}:
        return None
    names: set[str] = set()
    for chunk in cleaned.split(","):
        value = chunk.strip().lower()
        if value:
            names.add(value)
    return names or None
