"""Application settings via pydantic-settings."""

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables with SWEEPER_ prefix."""

    model_config = SettingsConfigDict(
        env_prefix="SWEEPER_",
        env_file=".env",
        case_sensitive=False,
    )

    # --- Core ---
    app_version: str = "2.0.0"
    debug: bool = False
    environment: str = "development"
    redis_url: str = "redis://localhost:6379/0"
    log_level: str = "INFO"
    log_format: str = "json"

    # --- CORS ---
    cors_origins: list[str] = ["https://sweeper.example.com"]
    cors_dev_origin_regex: str = r"https?://(localhost|127\.0\.0\.1)(:\d+)?"

    # --- Client identity ---
    client_ip_header: str = "CF-Connecting-IP"

    # --- Admin tokens ---
    admin_key: str = ""
    admin_key_min_length: int = 32
    admin_token_max_age_ms: int = 300_000  # 5 minutes
    admin_token_replay_ttl_seconds: int = 600

    # --- Rate limits (per one-minute window) ---
    rate_limit_ip: int = 20
    rate_limit_fingerprint: int = 15
    rate_limit_global: int = 1000
    rate_limit_window_seconds: int = 60
    rate_limit_counter_ttl_seconds: int = 120

    # --- Cache ---
    cache_default_ttl_seconds: float = 60.0
    cache_max_put_ttl_seconds: float = 300.0
    leaderboard_cache_ttl_seconds: float = 30.0

    # --- Validation ---
    validation_concurrency: int = 8
    session_max_age_seconds: int = 604_800  # 7 days
    duration_tolerance_seconds: float = 60.0

    # --- Behavior analysis ---
    behavior_cooldown_seconds: int = 300
    behavior_max_suspicious: int = 3
    behavior_stats_ttl_seconds: int = 604_800
    sudden_improvement_check: bool = False
    sudden_improvement_ratio: float = 0.5

    # --- Leaderboard ---
    leaderboard_size: int = 20

    # --- Security events / daily stats ---
    security_event_max_items: int = 100
    security_event_ttl_seconds: int = 604_800
    daily_stats_ttl_seconds: int = 172_800


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
