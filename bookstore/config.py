import warnings
from functools import lru_cache
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings

DEFAULT_SEED_FILE = Path(__file__).resolve().parent.parent / "data" / "books.json"


class Settings(BaseSettings):
    # Store
    MONGODB_URI: str = "mongodb://localhost:27017"
    DATABASE_NAME: str = "plp_bookstore"
    COLLECTION_NAME: str = "books"

    # Driver timeouts and pool bounds (milliseconds / connection counts)
    CONNECT_TIMEOUT_MS: int = Field(5000, gt=0)  # fail fast instead of the driver's 30s
    SOCKET_TIMEOUT_MS: int = Field(45000, gt=0)
    MIN_POOL_SIZE: int = Field(5, ge=0)
    MAX_POOL_SIZE: int = Field(10, gt=0)
    MAX_IDLE_TIME_MS: int = Field(30000, gt=0)

    # Seeder
    SEED_FILE: Path = DEFAULT_SEED_FILE

    # API
    API_KEY: str = "changeme"
    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:8000"
    DOCS_ENABLED: bool = True

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = False

    model_config = {"env_file": ".env", "extra": "ignore"}

    @model_validator(mode="after")
    def _check_pool_bounds(self):
        if self.MIN_POOL_SIZE > self.MAX_POOL_SIZE:
            raise ValueError(
                f"MIN_POOL_SIZE ({self.MIN_POOL_SIZE}) must not exceed "
                f"MAX_POOL_SIZE ({self.MAX_POOL_SIZE})"
            )
        return self

    def client_options(self) -> dict:
        """Keyword arguments for the Mongo client built from these settings."""
        return {
            "serverSelectionTimeoutMS": self.CONNECT_TIMEOUT_MS,
            "connectTimeoutMS": self.CONNECT_TIMEOUT_MS,
            "socketTimeoutMS": self.SOCKET_TIMEOUT_MS,
            "minPoolSize": self.MIN_POOL_SIZE,
            "maxPoolSize": self.MAX_POOL_SIZE,
            "maxIdleTimeMS": self.MAX_IDLE_TIME_MS,
        }


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings, loaded once from the environment."""
    settings = Settings()
    if settings.API_KEY == "changeme":
        warnings.warn(
            "API_KEY is set to the default value 'changeme'. "
            "Set a strong API_KEY in your .env file for production.",
            stacklevel=2,
        )
    return settings
