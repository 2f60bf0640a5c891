from pydantic_settings import BaseSettings
from typing import List
from pathlib import Path

# Find .env file - check koperasi/ directory first, then project root
BASE_DIR = Path(__file__).resolve().parent.parent.parent
APP_ENV = BASE_DIR / "koperasi" / ".env"
ROOT_ENV = BASE_DIR / ".env"

# Use koperasi/.env if it exists, otherwise try root .env
env_file = str(APP_ENV) if APP_ENV.exists() else (str(ROOT_ENV) if ROOT_ENV.exists() else ".env")


class Settings(BaseSettings):
    # Database (SQLite fallback for local development)
    DATABASE_URL: str = "sqlite:///./koperasi_dev.db"

    # HTTP
    CORS_ORIGINS: List[str] = ["http://localhost:5173", "http://localhost:5174"]

    # Listing
    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100

    # Loans
    LATE_FEE_RATE: str = "0.01"  # Fraction of amount due charged on late installments

    # Application
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOGS_DIR: str = str(BASE_DIR / "logs")

    class Config:
        env_file = env_file
        case_sensitive = True


settings = Settings()
