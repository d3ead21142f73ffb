"""Application settings loaded from environment."""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Strongly typed settings for the incident service."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Database
    database_url: Optional[str] = Field(default=None, alias="DATABASE_URL")
    pghost: Optional[str] = Field(default=None, alias="PGHOST")
    pgport: int = Field(default=5432, alias="PGPORT")
    pguser: Optional[str] = Field(default=None, alias="PGUSER")
    pgpassword: Optional[str] = Field(default=None, alias="PGPASSWORD")
    pgdatabase: Optional[str] = Field(default=None, alias="PGDATABASE")

    # Scoring
    publish_threshold: int = Field(default=70, alias="PUBLISH_THRESHOLD")
    neutral_signal: int = Field(default=50, alias="NEUTRAL_SIGNAL")
    long_description_chars: int = Field(default=50, alias="LONG_DESCRIPTION_CHARS")
    default_credibility: int = Field(default=75, alias="DEFAULT_CREDIBILITY")
    credibility_floor: int = Field(default=20, alias="CREDIBILITY_FLOOR")
    high_credibility_threshold: int = Field(default=80, alias="HIGH_CREDIBILITY_THRESHOLD")

    # Lifetimes
    report_ttl_days: int = Field(default=3, alias="REPORT_TTL_DAYS")
    comment_ttl_days: int = Field(default=7, alias="COMMENT_TTL_DAYS")

    # Intake
    duplicate_window_hours: int = Field(default=24, alias="DUPLICATE_WINDOW_HOURS")
    duplicate_coord_precision: int = Field(default=4, alias="DUPLICATE_COORD_PRECISION")
    max_photo_bytes: int = Field(default=5_000_000, alias="MAX_PHOTO_BYTES")

    # HTTP
    http_timeout_seconds: int = Field(default=30, alias="HTTP_TIMEOUT_SECONDS")
    http_max_retries: int = Field(default=3, alias="HTTP_MAX_RETRIES")

    # Text plausibility (Gemini)
    google_api_key: Optional[str] = Field(default=None, alias="GOOGLE_API_KEY")
    gemini_api_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        alias="GEMINI_API_BASE_URL",
    )
    gemini_model_id: str = Field(default="gemini-2.0-flash", alias="GEMINI_MODEL_ID")
    gemini_temperature: float = Field(default=0.0, alias="GEMINI_TEMPERATURE")
    gemini_max_output_tokens: int = Field(default=512, alias="GEMINI_MAX_OUTPUT_TOKENS")
    text_prompt_version: str = Field(default="tp_v001", alias="TEXT_PROMPT_VERSION")
    gemini_max_retries: int = Field(default=2, alias="GEMINI_MAX_RETRIES")
    gemini_sleep_seconds: float = Field(default=1.0, alias="GEMINI_SLEEP_SECONDS")

    # Image content (Cloud Vision)
    vision_api_key: Optional[str] = Field(default=None, alias="VISION_API_KEY")
    vision_api_url: str = Field(
        default="https://vision.googleapis.com/v1/images:annotate",
        alias="VISION_API_URL",
    )
    vision_max_labels: int = Field(default=15, alias="VISION_MAX_LABELS")

    # Geocoding
    geocoding_enabled: bool = Field(default=False, alias="GEOCODING_ENABLED")
    geocoding_base_url: str = Field(
        default="https://nominatim.openstreetmap.org",
        alias="GEOCODING_BASE_URL",
    )
    geocoding_user_agent: str = Field(default="urbanthread/0.1", alias="GEOCODING_USER_AGENT")

    # Routes and feed
    route_incident_buffer_km: float = Field(default=2.0, alias="ROUTE_INCIDENT_BUFFER_KM")
    currency_symbol: str = Field(default="₹", alias="CURRENCY_SYMBOL")
    feed_radius_km: float = Field(default=25.0, alias="FEED_RADIUS_KM")
    feed_page_size: int = Field(default=20, alias="FEED_PAGE_SIZE")
    history_page_size: int = Field(default=20, alias="HISTORY_PAGE_SIZE")
    leaderboard_size: int = Field(default=10, alias="LEADERBOARD_SIZE")
    city_stats_days: int = Field(default=30, alias="CITY_STATS_DAYS")

    # Reputation ledger
    ledger_max_retries: int = Field(default=3, alias="LEDGER_MAX_RETRIES")
    ledger_lock_timeout_ms: int = Field(default=5000, alias="LEDGER_LOCK_TIMEOUT_MS")

    # Runtime
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    run_env: str = Field(default="local", alias="RUN_ENV")

    def get_database_url(self) -> str:
        """Return a usable database URL or raise."""
        if self.database_url:
            return self.database_url

        if all([self.pghost, self.pguser, self.pgpassword, self.pgdatabase]):
            return (
                "postgresql://"
                f"{self.pguser}:{self.pgpassword}@{self.pghost}:{self.pgport}/"
                f"{self.pgdatabase}"
            )

        raise ValueError("DATABASE_URL or PG* env vars must be set")
