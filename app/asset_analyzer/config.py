"""
Application configuration using Pydantic Settings.

Automatically loads environment variables from .env files.
"""

from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""

    pass


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # OpenAI
    openai_api_key: str | None = None
    openai_model: str = "gpt-4.1"
    request_timeout_seconds: float = Field(default=120.0, gt=0)

    # Page rendering
    render_scale: float = Field(default=2.0, gt=0)
    jpeg_quality: int = Field(default=95, ge=1, le=100)

    # Report rendering; a TrueType font with the glyphs the documents use (e.g. Thai)
    report_font_path: str | None = None

    # Debug flags
    debug: bool = False

    model_config = SettingsConfigDict(
        # Load from .env file in the application directory
        env_file=Path(__file__).parent / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
        # Case insensitive environment variable names
        case_sensitive=False,
    )


@dataclass(frozen=True)
class ConfigCheck:
    """Outcome of validating settings before the service starts."""

    ok: bool
    errors: list[str] = field(default_factory=list)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application configuration loaded from environment.
    """
    return Settings()


def check_settings(settings: Settings | None = None) -> ConfigCheck:
    """
    Validate that the settings needed to serve requests are present.

    Args:
        settings: Settings to check. Defaults to the cached application settings.

    Returns:
        ConfigCheck with ok=False and the list of problems when invalid.
    """
    settings = settings or get_settings()
    errors: list[str] = []

    if not (settings.openai_api_key or "").strip():
        errors.append("OPENAI_API_KEY is not set. Add it to the environment or .env file.")
    if not settings.openai_model.strip():
        errors.append("OPENAI_MODEL must not be empty.")
    if settings.report_font_path and not Path(settings.report_font_path).is_file():
        errors.append(f"REPORT_FONT_PATH does not point to a file: {settings.report_font_path}")

    return ConfigCheck(ok=not errors, errors=errors)
