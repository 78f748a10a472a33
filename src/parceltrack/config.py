"""Runtime configuration."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_NOISE_LITERALS = (
    "undefined",
    "null",
    "[object Object]",
    "true",
    "false",
)


class ParceltrackConfig(BaseSettings):
    """Runtime config for the tracking service and scan workflow."""

    model_config = SettingsConfigDict(env_prefix="PARCELTRACK_")

    database_url: str = "sqlite+aiosqlite:///./parceltrack.db"
    tracking_origin: str = "http://localhost:8000"
    default_location: str = "Main Office"

    min_code_length: int = 3
    noise_literals: list[str] = Field(
        default_factory=lambda: list(DEFAULT_NOISE_LITERALS)
    )
    debounce_window_ms: int = 500
    throttle_ms: int = 50
    history_limit: int = 10

    lookup_retry_attempts: int = 3
    lookup_retry_backoff_ms: int = 100

    enforce_transitions: bool = True

    retry_enabled: bool = True
    retry_max_attempts: int = 5
    retry_backoff_seconds: int = 60
