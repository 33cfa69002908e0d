"""Academics configuration loaded from environment variables."""

from pydantic import Field
from pydantic_settings import BaseSettings


class AcademicsConfig(BaseSettings):
    """Academics configuration loaded from environment variables.

    Settings are loaded from environment variables with sensible defaults.
    For local development, create a .env file in the project root.
    """

    # Routine fetching (public spreadsheet export, no credentials)
    fetch_timeout_seconds: float = Field(
        default=15.0,
        description="HTTP timeout for downloading the routine CSV",
    )
    fetch_attempts: int = Field(
        default=1,
        ge=1,
        description="Download attempts for transient failures (1 = no retry)",
    )
    fetch_retry_wait_seconds: float = Field(
        default=2.0,
        description="Pause between download attempts",
    )

    # Parsing
    header_scan_rows: int = Field(
        default=10,
        description="Number of leading rows searched for the time-slot header",
    )

    # Fallback routine sources when settings/routine carries no URL
    senior_routine_url: str = Field(
        default="",
        description="Routine URL for the senior cohort",
    )
    junior_routine_url: str = Field(
        default="",
        description="Routine URL for the junior cohort",
    )

    # Logging
    log_json: bool = Field(
        default=False,
        description="Output logs in JSON format (for production)",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    model_config = {
        "env_prefix": "",
        "case_sensitive": False,
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


_config: AcademicsConfig | None = None


def get_config() -> AcademicsConfig:
    """Get the academics configuration singleton.

    Returns:
        AcademicsConfig: Configuration instance
    """
    global _config
    if _config is None:
        _config = AcademicsConfig()
    return _config
