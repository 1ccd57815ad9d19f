"""
Application configuration using Pydantic Settings
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings with environment variable support"""

    # Database
    DATABASE_URL: Optional[str] = None
    PGHOST: str = "localhost"
    PGPORT: int = 5432
    PGUSER: str = "postgres"
    PGPASSWORD: Optional[str] = None
    PGDATABASE: str = "postgres"
    DB_MAX_CONNECTIONS: int = 10
    DB_ECHO: bool = False

    # Environment
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Loader Configuration
    DATA_DIR: str = "data"
    ETL_BATCH_SIZE: int = 1000
    MAX_RETRIES: int = 3
    RETRY_DELAY: float = 1.0
    HTTP_TIMEOUT: float = 300.0
    CLEANUP_ON_SKIP: bool = False
    SHARE_EMPTY_ADDRESS: bool = False
    LOADER_INTERVAL_MINUTES: int = 24 * 60

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"

    def get_connection_string(self) -> str:
        """DATABASE_URL if set, otherwise assembled from the PG* variables."""
        if self.DATABASE_URL:
            return self.DATABASE_URL

        password_part = f":{self.PGPASSWORD}" if self.PGPASSWORD else ""
        return (
            f"postgresql+asyncpg://{self.PGUSER}{password_part}"
            f"@{self.PGHOST}:{self.PGPORT}/{self.PGDATABASE}"
        )


settings = Settings()
