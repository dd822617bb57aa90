from typing import Optional
from urllib.parse import quote_plus

from pydantic_settings import BaseSettings
from cryptography.fernet import Fernet

class Settings(BaseSettings):
    POSTGRES_USER: str = "gigpanda"
    POSTGRES_PASSWORD: str = "gigpanda"
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: str = "5432"
    POSTGRES_DB: str = "gigpanda"
    # overrides the POSTGRES_* values, e.g. sqlite+aiosqlite:///gigpanda.db
    DATABASE_URL: Optional[str] = None
    DB_ECHO: bool = False

    SECRET_KEY: str = Fernet.generate_key().decode()  # regenerated on every start unless set
    TOKEN_TTL_SECONDS: int = 7 * 24 * 60 * 60
    COOKIE_SECURE: bool = False
    CLIENT_URL: str = "http://localhost:5173"

    LOG_DIR: str = "logs"
    LOG_LEVEL: str = "INFO"

    MAX_UPLOAD_FILES: int = 10
    MAX_UPLOAD_SIZE: int = 5 * 1024 * 1024  # bytes per file
    SSE_PING_INTERVAL: int = 30  # seconds

    class Config:
        env_file = ".env"

    @property
    def async_database_url(self) -> str:
        if self.DATABASE_URL:
            url = self.DATABASE_URL
            if url.startswith("postgres://"):
                url = url.replace("postgres://", "postgresql+asyncpg://", 1)
            return url
        password = quote_plus(self.POSTGRES_PASSWORD)
        return f"postgresql+asyncpg://{self.POSTGRES_USER}:{password}@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"

    @property
    def sync_database_url(self) -> str:
        """Same database, blocking driver. Used for schema creation."""
        url = self.async_database_url
        return url.replace("+asyncpg", "+psycopg2").replace("+aiosqlite", "")

settings = Settings()
