"""Environment-based configuration for uploadshrink."""

from __future__ import annotations

from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Filter settings loaded from UPLOADSHRINK_* environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="UPLOADSHRINK_",
        case_sensitive=False,
    )

    # Bounding box (None or 0 = unconstrained on that axis)
    max_width: int | None = Field(default=None, ge=0)
    max_height: int | None = Field(default=None, ge=0)

    # Passed through to the codec, e.g. {"quality": 85, "resample": "lanczos"}
    encode_options: dict[str, Any] = Field(default_factory=dict)

    # Input limits (None = no limit); Pillow's own default
    max_image_pixels: int | None = Field(default=89_478_485, ge=1)

    # Temporary artifacts
    spool_max_size: int = Field(default=1_048_576, ge=0)
    temp_dir: str | None = None

    log_level: str = "INFO"


def get_settings() -> Settings:
    """Create and return filter settings."""
    return Settings()
