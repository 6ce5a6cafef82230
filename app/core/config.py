from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "Catalog API"
    app_version: str = "1.0.0"
    environment: str = "development"

    # Database
    database_url: str | None = None  # overrides the DB_* parts when set
    db_dialect: str = "postgresql+asyncpg"
    db_host: str = "localhost"
    db_port: int = 5432
    db_username: str | None = None
    db_password: str | None = None
    db_database: str = "catalog"
    db_echo: bool = False
    db_sync_models: bool = True

    # Cache
    redis_url: str = "redis://localhost:6379/0"
    redis_password: str | None = None
    redis_db: int | None = None
    redis_retry_max: int = 10
    redis_retry_interval: int = 100  # ms
    redis_connect_timeout: float = 5.0
    redis_command_timeout: float | None = None
    redis_keep_alive: bool = True
    redis_pool_size: int = 5
    cache_namespace: str = ""
    cache_list_ttl: int = 10
    cache_entity_ttl: int = 60

    # Tokens
    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"
    jwt_expires_in: int = 3600
    jwt_refresh_expires_in: int = 60 * 60 * 24 * 7

    # Rate limiting
    rate_limit_window_ms: int = 15 * 60 * 1000
    rate_limit_max_requests: int = 100

    # Logging
    log_level: str = "info"
    log_dir: str | None = "./logs"
    log_max_bytes: int = 20 * 1024 * 1024
    log_backup_count: int = 14
    log_error_backup_count: int = 30

    @property
    def sqlalchemy_url(self) -> str | URL:
        if self.database_url:
            return self.database_url
        return URL.create(
            drivername=self.db_dialect,
            username=self.db_username,
            password=self.db_password,
            host=self.db_host,
            port=self.db_port,
            database=self.db_database,
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
