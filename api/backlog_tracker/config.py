from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Game Backlog Tracker API"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: list[str] = ["http://localhost:3000"]

    database_url: str = "sqlite:///./backlog.db"
    auto_create_schema: bool = True

    # Steam Web API
    steam_api_key: Optional[str] = None
    steam_api_base_url: str = "https://api.steampowered.com"
    steam_store_base_url: str = "https://store.steampowered.com"
    http_timeout_seconds: float = 30.0

    # Epic Games Launcher manifests (*.item)
    epic_manifest_dir: str = "/ProgramData/Epic/EpicGamesLauncher/Data/Manifests"

    # Resilience
    retry_attempts: int = 3
    retry_backoff_base: float = 2.0
    circuit_breaker_threshold: int = 5
    circuit_breaker_cooldown_seconds: float = 30.0

    # Cache TTLs
    cache_ttl_dashboard_minutes: float = 5
    cache_ttl_games_list_minutes: float = 10
    cache_ttl_game_details_minutes: float = 30

    recently_played_count: int = 5
    sync_achievements: bool = True
    sync_fetch_details: bool = False

    # Pydantic v2 settings configuration
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


settings = Settings()
