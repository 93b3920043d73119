"""
Application configuration using Pydantic Settings.

Automatically loads environment variables from .env files.
"""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # OpenRouter (OpenAI-compatible chat completions)
    openrouter_api_key: str | None = None
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    default_model: str = "anthropic/claude-3-sonnet"

    # Attribution headers sent to OpenRouter
    app_referer: str = "http://localhost:5173"
    app_title: str = "Document Processing App"

    # Completion request tuning
    request_timeout: float = 60.0
    temperature: float = 0.1
    max_tokens: int = 1000

    # Phrases the model emits instead of omitting a field
    unspecified_phrases: list[str] = [
        "non specificato",
        "not specified",
        "unspecified",
        "n/a",
        "none",
    ]

    # Bundled JSON schemas offered to the user
    schemas_dir: Path = Path(__file__).parent / "schemas"

    # Text extraction
    pdf_max_pages: int | None = None

    # Bundled document for trying the app without an upload
    sample_pdf_path: Path = Path(__file__).parent / "samples" / "sample_aua.pdf"

    # Sessions idle for longer than this are dropped (None keeps them forever)
    session_ttl_seconds: float | None = 3600.0

    # Debug flags
    debug: bool = False

    model_config = SettingsConfigDict(
        # Load from .env file in the package directory
        env_file=Path(__file__).parent / ".env",
        env_file_encoding="utf-8",
        extra="ignore",
        # Case insensitive environment variable names
        case_sensitive=False,
    )


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Application configuration loaded from environment.
    """
    return Settings()
