"""ManagerOS application configuration via environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings

APP_VERSION = "1.37.0"


class Settings(BaseSettings):
    """Global application settings loaded from environment / .env file."""

    # General
    manageros_env: str = "development"
    manageros_debug: bool = True
    manageros_base_url: str = "http://localhost:8000"

    # PostgreSQL
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "manageros"
    postgres_password: str = "manageros_dev_password"
    postgres_db: str = "manageros"

    # Full SQLAlchemy URL, replaces the postgres_* parts when set
    # (e.g. "sqlite+aiosqlite:///./manageros.db").
    database_url_override: str = ""

    @property
    def database_url(self) -> str:
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def database_url_sync(self) -> str:
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # Secrets
    encryption_key: str = ""  # Fernet key, see `manageros generate-key`
    cron_secret: str = ""

    # Clerk (OAuth token validation + billing plans)
    clerk_secret_key: str = ""
    clerk_frontend_api_url: str = ""
    clerk_oauth_client_id: str = ""
    clerk_oauth_client_secret: str = ""
    clerk_api_base: str = "https://api.clerk.com"

    # GitHub
    github_api_base: str = "https://api.github.com"

    # Background jobs
    scheduler_enabled: bool = True
    reminder_window_hours: int = 24
    reminder_poll_minutes: int = 5
    overdue_notification_hour: int = 9

    @property
    def is_development(self) -> bool:
        return self.manageros_env == "development"

    @property
    def oauth_resource_metadata_url(self) -> str:
        return f"{self.manageros_base_url.rstrip('/')}/.well-known/oauth-protected-resource"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}


settings = Settings()
