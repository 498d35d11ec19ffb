from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Booking history database (only needed by the Postgres provider)
    DATABASE_URL: str | None = None

    # =================================================================
    # DATABASE POOL SETTINGS
    # =================================================================
    DB_POOL_MIN_SIZE: int = 2
    DB_POOL_MAX_SIZE: int = 10
    DB_POOL_TIMEOUT: float = 30.0
    DB_POOL_MAX_IDLE: float = 600.0  # 10 minutes
    DB_POOL_MAX_LIFETIME: float = 3600.0  # 1 hour

    # =================================================================
    # HOST SELECTION
    # =================================================================
    HISTORY_FETCH_TIMEOUT_S: float = 10.0
    SELECTION_AUDIT_ENABLED: bool = True

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def get_db_pool_config(self) -> dict:
        """
        Get database pool configuration.
        Adjust environment-specific settings based on self.environment.
        """
        config = {
            "min_size": self.DB_POOL_MIN_SIZE,
            "max_size": self.DB_POOL_MAX_SIZE,
            "timeout": self.DB_POOL_TIMEOUT,
            "max_idle": self.DB_POOL_MAX_IDLE,
            "max_lifetime": self.DB_POOL_MAX_LIFETIME,
        }

        if self.environment == "development":
            config.update(
                {
                    "min_size": 1,
                    "max_size": 4,
                    "timeout": 15.0,
                }
            )

        return config


settings = Settings()
