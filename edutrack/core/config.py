import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Mapping, Optional

from dotenv import load_dotenv

from edutrack.ai.config import AIConfig, load_ai_config

load_dotenv()

DEFAULT_DATABASE_URL = "sqlite:///./edutrack.db"


@dataclass(frozen=True)
class Settings:
    database_url: str = DEFAULT_DATABASE_URL
    database_sslmode: Optional[str] = None
    upload_dir: str = "uploads"
    upload_url_prefix: str = "/uploads"
    secret_key: str = "edutrack_secret_key_change_me"
    session_cookie: str = "user_session"
    session_max_age: int = 60 * 60 * 24 * 7
    log_level: str = "INFO"
    log_format: str = "text"
    ai: AIConfig = field(default_factory=AIConfig)


def load_settings(env: Optional[Mapping[str, str]] = None) -> Settings:
    """Build settings from the environment (or an explicit mapping)."""
    env = os.environ if env is None else env

    database_url = env.get("DATABASE_URL") or DEFAULT_DATABASE_URL
    # SQLAlchemy needs 'postgresql://' instead of 'postgres://'
    if database_url.startswith("postgres://"):
        database_url = database_url.replace("postgres://", "postgresql://", 1)

    if env.get("UPLOAD_DIR"):
        upload_dir = env["UPLOAD_DIR"]
    elif env.get("VERCEL"):
        upload_dir = "/tmp/uploads"
    else:
        upload_dir = os.path.join(os.getcwd(), "uploads")

    try:
        session_max_age = int(env.get("SESSION_MAX_AGE", 60 * 60 * 24 * 7))
    except ValueError:
        session_max_age = 60 * 60 * 24 * 7

    return Settings(
        database_url=database_url,
        database_sslmode=env.get("DATABASE_SSLMODE") or None,
        upload_dir=upload_dir,
        upload_url_prefix=env.get("UPLOAD_URL_PREFIX", "/uploads").rstrip("/") or "/uploads",
        secret_key=env.get("SECRET_KEY", "edutrack_secret_key_change_me"),
        session_cookie=env.get("SESSION_COOKIE", "user_session"),
        session_max_age=session_max_age,
        log_level=env.get("LOG_LEVEL", "INFO"),
        log_format=env.get("LOG_FORMAT", "text"),
        ai=load_ai_config(env),
    )


@lru_cache()
def get_settings() -> Settings:
    return load_settings()
