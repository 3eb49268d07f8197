from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional

class Settings(BaseSettings):
    # Application
    APP_NAME: str = "StockDesk"
    APP_PORT: int = 9202
    DEBUG: bool = False
    SECRET_KEY: str = "stockdesk-secret-key-change-in-production"
    LOG_LEVEL: str = "INFO"
    TIMEZONE: str = "Europe/Istanbul"
    
    # Database
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "stockdesk"
    POSTGRES_PORT: int = 5432
    SQL_DATABASE_URL: Optional[str] = None  # Overrides the Postgres parts (e.g. sqlite:// in tests)
    
    # Sessions
    SESSION_TTL_SECONDS: int = 60 * 60 * 24 * 30  # 30 days
    INACTIVITY_LIMIT_MINUTES: int = 30
    
    # Login lockout per (username, ip)
    MAX_LOGIN_ATTEMPTS: int = 5
    LOGIN_LOCK_MINUTES: int = 15
    
    # Global login rate limit per ip
    RATE_LIMIT_MAX: int = 20
    RATE_LIMIT_WINDOW_MINUTES: int = 15
    RATE_LIMIT_LOCK_MINUTES: int = 15
    
    # Background jobs
    SCHEDULER_ENABLED: bool = True
    MAINTENANCE_INTERVAL_MINUTES: int = 60
    
    # Exchange rates
    EXCHANGE_RATE_URL: str = "https://api.frankfurter.dev/v1/latest"
    EXCHANGE_RATE_TIMEOUT: float = 10.0
    
    @property
    def DATABASE_URL(self) -> str:
        if self.SQL_DATABASE_URL:
            return self.SQL_DATABASE_URL
        return f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}@{self.POSTGRES_SERVER}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
    
    class Config:
        env_file = ".env"
        extra = "ignore"

@lru_cache()
def get_settings() -> Settings:
    return Settings()

settings = get_settings()
