import os
import tempfile
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./dev.db"
    APP_HOST: str = "127.0.0.1"
    APP_PORT: int = 8000
    FRONTEND_ORIGINS: List[str] = ["http://localhost:3000"]
    RESET_DB: bool = False

    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "console"  # console | json

    # per-product decrement locks
    STOCK_LOCK_DIR: str = os.path.join(tempfile.gettempdir(), "pim_stock_locks")
    STOCK_LOCK_TIMEOUT_SECONDS: float = 10.0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

settings = Settings()
