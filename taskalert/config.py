"""Application settings loaded from environment variables."""

import os
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _env_file() -> str | None:
    if os.getenv("PYTEST_CURRENT_TEST"):
        return None
    return ".env"


class Settings(BaseSettings):
    """taskalert configuration. All values come from environment variables."""

    # Database
    database_path: Path = Field(default=Path("data/taskalert.db"))

    # Turso (hosted libSQL) — when set, overrides local database_path
    turso_database_url: str = Field(default="")
    turso_auth_token: str = Field(default="")

    # Scheduler
    tick_interval_seconds: int = Field(default=60, gt=0)
    max_concurrent_executions: int = Field(default=5, gt=0)
    default_max_retries: int = Field(default=3, ge=0)
    max_backoff_seconds: int = Field(default=60, gt=0)

    # Email (SMTP)
    smtp_host: str = Field(default="")
    smtp_port: int = Field(default=587)
    smtp_username: str = Field(default="")
    smtp_password: str = Field(default="")
    smtp_sender_name: str = Field(default="Task Scheduler")
    smtp_timeout_seconds: float = Field(default=60.0)
    smtp_use_tls: bool = Field(default=True)

    # Notifications
    default_notification_channel: str = Field(default="email")

    # Logging
    log_level: str = Field(default="INFO")

    model_config = SettingsConfigDict(env_file=_env_file(), env_file_encoding="utf-8")

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        if os.getenv("PYTEST_CURRENT_TEST"):
            return (init_settings,)
        return (init_settings, env_settings, dotenv_settings, file_secret_settings)

    def smtp_configured(self) -> bool:
        """True when every value needed to log in to the SMTP server is set."""
        return bool(
            self.smtp_host.strip()
            and self.smtp_username.strip()
            and self.smtp_password
            and self.smtp_port > 0
        )


settings = Settings()
