from pathlib import Path
import os

from dotenv import load_dotenv

# Load environment variables from the repo root .env (if present).
REPO_ROOT = Path(__file__).resolve().parents[1]
load_dotenv(REPO_ROOT / ".env")


def _parse_duration(value: str, default_seconds: int) -> int:
    """Parse a duration like ``7d``, ``12h``, ``30m``, ``45s`` or bare seconds."""
    units = {"s": 1, "m": 60, "h": 3600, "d": 86400}
    value = (value or "").strip().lower()
    try:
        if value and value[-1] in units:
            return int(value[:-1]) * units[value[-1]]
        return int(value)
    except ValueError:
        return default_seconds


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


APP_ENV = os.getenv("APP_ENV", "development")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./task_manager.db")

# No default: a missing secret is a server misconfiguration.
JWT_SECRET = os.getenv("JWT_SECRET") or None
JWT_ALGORITHM = "HS256"
JWT_EXPIRATION_SECONDS = _parse_duration(os.getenv("JWT_EXPIRATION", "7d"), 7 * 86400)

BCRYPT_SALT_ROUNDS = os.getenv("BCRYPT_SALT_ROUNDS", "12")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

SEED_SAMPLE_DATA = _env_flag("SEED_SAMPLE_DATA", APP_ENV == "development")

_cors_origins = os.getenv("CORS_ORIGINS", "*")
CORS_ORIGINS = [origin.strip() for origin in _cors_origins.split(",") if origin.strip()]
