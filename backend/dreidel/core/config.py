from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Dreidel Table API"
    debug: bool = True
    api_prefix: str = "/api/v1"
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:3000"])
    log_level: str = "INFO"

    database_url: str = "sqlite:///./dreidel.db"
    redis_url: str = "redis://localhost:6379/0"

    secret_key: str = "change-this-secret-key"
    access_token_expire_minutes: int = 60 * 24
    session_cookie_name: str = "dreidel_session"
    websocket_allow_cookie_token: bool = True

    starting_coins: int = 10
    entry_contribution: int = 1
    game_over_reset_seconds: float = 5.0
    stats_enabled: bool = True

    rate_limit_enabled: bool = True
    websocket_connect_limit: int = 20
    websocket_connect_window_seconds: int = 60
    websocket_event_limit: int = 120
    websocket_event_window_seconds: int = 60

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
