from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///ghd.sqlite3"

    environment: str = "development"
    log_level: str = "INFO"

    github_api_url: str = "https://api.github.com"
    github_graphql_url: str = "https://api.github.com/graphql"
    github_request_timeout_seconds: float = 30.0

    # Staleness window: a tracked user is refreshed once this much time has passed
    refresh_interval_seconds: int = 60
    # Delta queries reach back this far before the last refresh; reconciliation is idempotent
    refresh_overlap_seconds: int = 60
    poll_interval_seconds: float = 10.0

    search_page_size: int = 100
    search_max_pages: int = 10  # GitHub search caps results at 1000

    # Local command surface for the GUI; loopback only
    api_host: str = "127.0.0.1"
    api_port: int = 8787
    cors_origins: str = "tauri://localhost,http://localhost:1420"

    model_config = SettingsConfigDict(
        env_file=".env.local",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
