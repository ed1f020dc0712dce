import os
from dataclasses import dataclass, field
from typing import List
from dotenv import load_dotenv

load_dotenv()


def _env_flag(name: str, default: str = "False") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


@dataclass
class Settings:
    # API settings
    api_host: str = os.getenv("API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    cors_origins: List[str] = field(
        default_factory=lambda: [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
    )

    # Database settings
    database_file: str = os.getenv("BOOKSTORE_DB_FILE", "bookstore.db")
    database_pool_size: int = int(os.getenv("DATABASE_POOL_SIZE", "5"))
    database_timeout: float = float(os.getenv("DATABASE_TIMEOUT", "5.0"))

    # Status used for errors raised by the storage layer (e.g. duplicate isbn).
    # 409 is accepted as a stricter alternative.
    storage_error_status: int = int(os.getenv("STORAGE_ERROR_STATUS", "500"))

    # Application settings
    app_name: str = os.getenv("APP_NAME", "Bookstore API")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    debug: bool = _env_flag("DEBUG")
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()


settings = Settings()
