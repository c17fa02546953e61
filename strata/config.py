# strata/config.py
from functools import lru_cache
from pathlib import Path
from typing import List, Literal

from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # --- Database ---
    database_url: str = "sqlite:///strata_dev.db"

    # --- Sessions ---
    session_cookie_name: str = "strata_session"
    session_timeout_seconds: int = 1800  # 30 minutes idle
    session_store_ttl_seconds: int = 60 * 60 * 24  # purge abandoned records after a day
    remember_me_days: int = 30
    cookie_secure: Literal["auto", "always", "never"] = "auto"
    login_path: str = "/auth/login"

    # --- Login throttling ---
    login_max_attempts: int = 5
    login_window_seconds: int = 900  # 15 minutes
    login_rate_limit_backend: Literal["session", "memory"] = "session"

    # --- Password hashing (argon2id) ---
    password_hash_memory_cost: int = 65536  # KiB
    password_hash_time_cost: int = 4

    # --- Logging ---
    log_level: Literal["CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"] = "INFO"
    log_format: Literal["text", "json"] = "text"

    # --- CORS ---
    cors_origins: List[str] = ["http://localhost:5173"]


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()

# Ensure path directory exists (for SQLite)
if settings.database_url.startswith("sqlite:///"):
    db_path = Path(settings.database_url.replace("sqlite:///", ""))
    db_path.parent.mkdir(parents=True, exist_ok=True)

# --- SQLAlchemy setup ---
engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False}
    if settings.database_url.startswith("sqlite")
    else {},
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def init_db() -> None:
    """Create every table up front; nothing in the request path touches the schema."""
    # Import the models so they register with Base metadata.
    from .models import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
