"""Application configuration using pydantic-settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App
    debug: bool = False
    log_level: str = "INFO"
    timezone: str = "Europe/Rome"

    # LLM
    llm_provider: str = "mistral"  # openai | mistral
    llm_model: str = "mistral-small-latest"
    openai_api_key: str = ""
    mistral_api_key: str = ""
    llm_timeout_seconds: float = 10.0
    llm_temperature: float = 0.2
    llm_max_tokens: int = 1024
    llm_top_p: float = 0.8

    # Nango (OAuth connector management, proxies Google Calendar)
    nango_url: str = "http://localhost:3003"
    nango_secret_key: str = ""
    nango_connection_id: str = ""  # used when the request carries no X-Connection-ID
    calendar_provider_config_key: str = "google-calendar"
    calendar_id: str = "primary"
    calendar_timeout_seconds: float = 30.0

    # --- Command pipeline ---
    default_event_duration_minutes: int = 60
    default_start_time: str = "09:00"
    default_attendee_domain: str = "example.com"
    event_context_ttl_seconds: int = 300
    duplicate_window_minutes: int = 5
    view_default_days: int = 7

    # Event reference resolution
    resolver_days_back: int = 14
    resolver_days_ahead: int = 30
    resolver_max_results: int = 50
    resolver_min_score: float = 30.0


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
