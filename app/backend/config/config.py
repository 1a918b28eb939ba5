import os
from dotenv import load_dotenv

load_dotenv()


def _as_bool(value: str) -> bool:
    return str(value).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """
    Keeps the settings read from environment variables in one simple place.
    """
    # Database
    DATABASE_URL: str = os.environ.get("DATABASE_URL")
    APPLY_SCHEMA_ON_STARTUP: bool = _as_bool(os.environ.get("APPLY_SCHEMA_ON_STARTUP", "false"))

    # Redis: sessions, drafts and snapshot cache live in one database, rate limits in another
    APPLICATION_REDIS_URL: str = os.environ.get("APPLICATION_REDIS_URL")
    RATE_LIMITER_REDIS_URL: str = os.environ.get("RATE_LIMITER_REDIS_URL")
    RATE_LIMIT_ENABLED: bool = _as_bool(os.environ.get("RATE_LIMIT_ENABLED", "true"))

    # Sessions and tokens
    # No default: tokens cannot be signed until SECRET_KEY is set.
    SECRET_KEY: str = os.environ.get("SECRET_KEY")
    ALGORITHM: str = os.environ.get("ALGORITHM", "HS256")
    SESSION_TTL_SECONDS: int = int(os.environ.get("SESSION_TTL_SECONDS", 3600))

    # Attendance
    DRAFT_TTL_SECONDS: int = int(os.environ.get("DRAFT_TTL_SECONDS", 3600))
    SNAPSHOT_CACHE_TTL_SECONDS: int = int(os.environ.get("SNAPSHOT_CACHE_TTL_SECONDS", 300))
    REGISTRATION_ID_PREFIX: str = os.environ.get("REGISTRATION_ID_PREFIX", "BS")

    # Misc
    LOG_DIR: str = os.environ.get("LOG_DIR", "logs")
    CORS_ORIGINS: str = os.environ.get("CORS_ORIGINS", "*")

# Single importable instance of the settings
settings = Config()
