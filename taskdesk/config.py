from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv()

class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./taskdesk.db"

    # Security
    SECRET_KEY: str = "change-me-in-production"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 120

    # Seeding
    SEED_DEFAULTS: bool = True
    SEED_ADMIN_PASSWORD: str = "admin123"

    # Stats
    TOP_USERS_LIMIT: int = 5

    # Logging / errors
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str | None = "error.log"
    EXPOSE_ERROR_DETAILS: bool = False

    CORS_ORIGIN_REGEX: str = "https?://.*"

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def async_database_url(self) -> str:
        # Ensure we use the async driver
        if self.database_url.startswith("postgresql://"):
            return self.database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
        return self.database_url

settings = Settings()
