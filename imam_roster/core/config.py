from typing import List

from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    PROJECT_NAME: str = "Jadwal Imam"
    API_V1_STR: str = "/api"

    # Server
    PORT: int = 8000
    ENVIRONMENT: str = "development"
    CORS_ORIGINS: List[str] = ["*"]

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./jadwal-imam.db"

    # Logging
    LOG_LEVEL: str = "INFO"
    ERROR_LOG_FILE: str = "logs/errors.log"

    # Admin auth
    DEFAULT_ADMIN_USERNAME: str = "admin"
    DEFAULT_ADMIN_PASSWORD: str = "admin123"
    SESSION_TTL_HOURS: int = 24
    LOGIN_MAX_ATTEMPTS: int = 5
    LOGIN_WINDOW_SECONDS: int = 15 * 60

    # Roster rules
    SCHEDULE_DAYS: int = 30
    MIN_QUOTA: int = 1
    MAX_QUOTA: int = 30
    DEFAULT_QUOTA: int = 3
    ACCESS_CODE_MAX_RETRIES: int = 100
    HIJRI_YEAR: int = 1446
    HIJRI_MONTH: str = "Ramadhan"

    class Config:
        env_file = ".env"
        case_sensitive = True

settings = Settings()
