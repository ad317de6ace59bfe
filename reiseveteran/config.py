import os
from dataclasses import dataclass
from typing import Optional

# Optional: load a local .env file if present.
try:
    from dotenv import load_dotenv

    load_dotenv()
except Exception:
    # If python-dotenv isn't installed or .env isn't present, that's fine.
    pass


def _env_bool(name: str, default: Optional[bool] = None) -> Optional[bool]:
    """Parse a boolean environment variable.

    Returns:
      - True/False if the env var is set to a recognizable value
      - default if unset or unrecognized

    Accepted truthy: 1, true, yes, y, on
    Accepted falsy:  0, false, no, n, off
    """

    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in ("1", "true", "yes", "y", "on"):
        return True
    if v in ("0", "false", "no", "n", "off"):
        return False
    return default


def _sqlite_path_from_env() -> str:
    url = (os.environ.get("DATABASE_URL") or "").strip()
    if url.lower().startswith("sqlite:///"):
        return url[len("sqlite:///") :]
    return os.environ.get("REISEVETERAN_DB_PATH", "./reiseveteran.sqlite")


@dataclass(frozen=True)
class Config:
    """Runtime configuration.

    IMPORTANT: Provide secrets via environment variables or a .env file.
    Do not hardcode secrets in source code.
    """

    # -----------------
    # Core
    # -----------------
    # SQLite file. DATABASE_URL is honoured when it uses the sqlite:/// scheme.
    DB_PATH: str = _sqlite_path_from_env()

    # -----------------
    # Auth (JWT)
    # -----------------
    # NOTE: In dev, this defaults to a fixed string so you can get started.
    # In production, you MUST set AUTH_JWT_SECRET to a strong random value.
    AUTH_JWT_SECRET: str = os.environ.get("AUTH_JWT_SECRET", "dev_change_me")
    AUTH_TOKEN_EXPIRE_MINUTES: int = int(os.environ.get("AUTH_TOKEN_EXPIRE_MINUTES", "10080"))  # 7 days
    AUTH_MIN_PASSWORD_LENGTH: int = int(os.environ.get("AUTH_MIN_PASSWORD_LENGTH", "6"))

    # Demo login (one shared pro-tier account for trying the app)
    DEMO_LOGIN_ENABLED: bool = _env_bool("DEMO_LOGIN_ENABLED", True) is True
    DEMO_USER_EMAIL: str = os.environ.get("DEMO_USER_EMAIL", "demo@reiseveteran.com")

    # -----------------
    # Admin
    # -----------------
    # Shared secret for /update-subscription (sent as X-Admin-Key).
    # When unset, the admin endpoint refuses every request.
    ADMIN_API_KEY: str | None = (os.environ.get("ADMIN_API_KEY") or "").strip() or None

    # -----------------
    # CORS (development)
    # -----------------
    PUBLIC_APP_URL: str = os.environ.get("PUBLIC_APP_URL", "http://localhost:5173")
    CORS_ALLOW_ORIGINS: str = os.environ.get(
        "CORS_ALLOW_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000",
    )

    # -----------------
    # Billing (display only)
    # -----------------
    # Price IDs configured in Stripe, surfaced with the plan table.
    STRIPE_PRO_PRICE_ID: str = os.environ.get("STRIPE_PRO_PRICE_ID", "price_pro_monthly")
    STRIPE_VETERAN_PRICE_ID: str = os.environ.get("STRIPE_VETERAN_PRICE_ID", "price_veteran_monthly")

    # -----------------
    # Client
    # -----------------
    API_BASE_URL: str = os.environ.get("API_BASE_URL", "http://localhost:8000")
    CLIENT_STORAGE_PATH: str = os.environ.get("CLIENT_STORAGE_PATH", "./.reiseveteran_client.json")


def load_config() -> Config:
    return Config()
