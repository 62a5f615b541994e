# meeting_patterns/core/config.py
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Global application configuration.

    Values are loaded from environment variables at runtime.

    Only the HTTP layer reads these settings. The pattern engine itself
    receives every tunable as a constructor argument so it stays pure.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )

    APP_NAME: str = "Division Meeting Patterns"
    APP_ENV: str = Field("local", description="Environment name: local/dev/stage/prod")
    LOG_LEVEL: str = Field("INFO", description="Root log level for the service.")

    DB_URL: str = Field(
        "sqlite+aiosqlite:///./meeting_patterns.db",
        description="SQLAlchemy-compatible database URL",
    )

    # --- Pattern engine tunables ---
    LOOKAHEAD_MONTHS: int = Field(
        default=12,
        description="Default preview/expansion window length, in months from today.",
    )
    MAX_EXPANSION_MONTHS: int = Field(
        default=12,
        description="Hard cap on how many months a single expansion may cover.",
    )
    DST_WARNING_HORIZON_DAYS: int = Field(
        default=30,
        description="Default horizon for the standalone DST transition lookup.",
    )
    OVERLAP_WINDOW_MINUTES: int = Field(
        default=60,
        description=(
            "Two bookings on the same day closer than this are reported as "
            "overlapping rather than merely same-day."
        ),
    )
    LARGE_REMOVAL_WARNING_THRESHOLD: int = Field(
        default=5,
        description="Warn when a pattern change removes more occurrences than this.",
    )
    LARGE_CHANGE_WARNING_THRESHOLD: int = Field(
        default=10,
        description="Warn when a pattern change touches more occurrences than this.",
    )
    DEFAULT_MEETING_DURATION_MINUTES: int = Field(
        default=60,
        description="Event length used when exporting occurrences to iCalendar.",
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Cached accessor for application settings.

    Using LRU cache ensures settings are read and validated only once,
    while still being easily importable across the app.
    """
    return Settings()
