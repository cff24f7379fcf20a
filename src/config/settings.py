"""Application configuration loaded from environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Central configuration for the Quintero voice bot.

    Args loaded from .env file and environment variables.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Bot
    bot_domain: str = "quintero"
    bot_language: str = "es-CL"
    greeting_audio: str = "quintero/greeting"

    # Delegated business services (FORMAT_ID, VALIDATE_PATIENT, ...)
    delegate_webhook_url: str = ""
    delegate_timeout_ms: int = 5000
    default_confidence: float = 0.82

    # Session state backend: "memory" or "postgres"
    session_backend: str = "memory"

    # Cloud SQL
    cloud_sql_instance_connection: str = ""
    cloud_sql_password: str = ""
    cloud_sql_database: str = "quintero_dev"
    cloud_sql_user: str = "postgres"
    cloud_sql_host: str = "127.0.0.1"
    cloud_sql_port: int = 5432

    log_level: str = "INFO"

    @property
    def database_url(self) -> str:
        """Build async Postgres connection URL.

        Uses Unix socket when cloud_sql_instance_connection is set
        (Cloud Run). Falls back to TCP host:port for local dev.
        """
        if self.cloud_sql_instance_connection:
            socket_path = f"/cloudsql/{self.cloud_sql_instance_connection}"
            return (
                f"postgresql+asyncpg://{self.cloud_sql_user}"
                f":{self.cloud_sql_password}"
                f"@/{self.cloud_sql_database}"
                f"?host={socket_path}"
            )
        return (
            f"postgresql+asyncpg://{self.cloud_sql_user}"
            f":{self.cloud_sql_password}"
            f"@{self.cloud_sql_host}:{self.cloud_sql_port}"
            f"/{self.cloud_sql_database}"
        )

    @property
    def speech_language(self) -> str:
        """Two-letter language code used for spoken digit readings."""
        return self.bot_language.split("-")[0].lower()


def get_settings() -> Settings:
    """Return a Settings instance.

    Returns:
        Application settings loaded from env.
    """
    return Settings()
