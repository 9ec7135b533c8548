import os
from dataclasses import dataclass
from typing import Optional

try:
    from dotenv import load_dotenv

    # Real environment variables win over .env entries.
    load_dotenv(override=False)
except Exception:
    # No python-dotenv, or an unreadable .env: run on the plain environment.
    pass


_TRUTHY = frozenset({"1", "true", "yes", "y", "on"})
_FALSY = frozenset({"0", "false", "no", "n", "off"})


def _env_bool(name: str, default: Optional[bool] = None) -> Optional[bool]:
    """Read a yes/no env var; `default` when unset or not a recognised spelling."""
    raw = (os.environ.get(name) or "").strip().lower()
    if raw in _TRUTHY:
        return True
    if raw in _FALSY:
        return False
    return default


@dataclass(frozen=True)
class Config:
    """Process settings, read once from the environment at import time.

    Tests build their own with `dataclasses.replace(Config(), ...)`. The
    session secret must come from the environment (or .env) in production.
    """

    # -----------------
    # Core
    # -----------------
    # Preferred: set WORKSPACE_DATABASE_URL (or DATABASE_URL) to use Postgres.
    # Fallback: WORKSPACE_DB_PATH for SQLite.
    DB_DSN: str = (
        os.environ.get("WORKSPACE_DATABASE_URL")
        or os.environ.get("DATABASE_URL")
        or os.environ.get("WORKSPACE_DB_PATH", "./workspace_platform.sqlite")
    )

    # -----------------
    # Auth (session tokens)
    # -----------------
    # The fallback only exists so a fresh checkout boots; load_config() warns on short secrets.
    # AUTH_JWT_SECRET is accepted as an older name for the same value.
    AUTH_SESSION_SECRET: str = (
        os.environ.get("AUTH_SESSION_SECRET")
        or os.environ.get("AUTH_JWT_SECRET")
        or "development-secret-change-in-production-min-32-chars"
    )
    AUTH_TOKEN_TTL_SECONDS: int = int(os.environ.get("AUTH_TOKEN_TTL_SECONDS", str(30 * 24 * 3600)))  # 30 days

    # Cookie-based browser sessions
    # - The API sets an httpOnly cookie on /auth/login and /auth/register
    # - The API reads the token from either Authorization: Bearer ... OR the cookie
    AUTH_COOKIE_NAME: str = os.environ.get("AUTH_COOKIE_NAME", "ws_session")
    AUTH_COOKIE_DOMAIN: str | None = (os.environ.get("AUTH_COOKIE_DOMAIN") or "").strip() or None
    AUTH_COOKIE_PATH: str = os.environ.get("AUTH_COOKIE_PATH", "/")
    AUTH_COOKIE_SAMESITE: str = os.environ.get("AUTH_COOKIE_SAMESITE", "lax")  # lax|strict|none

    # Unset AUTH_COOKIE_SECURE follows the scheme of PUBLIC_APP_URL.
    # SameSite=None forces Secure regardless (see `_start_session` in api/server.py).
    PUBLIC_APP_URL: str = os.environ.get("PUBLIC_APP_URL", "http://localhost:3000")
    AUTH_COOKIE_SECURE: bool = bool(_env_bool("AUTH_COOKIE_SECURE", PUBLIC_APP_URL.lower().startswith("https://")))

    # -----------------
    # CORS (development)
    # -----------------
    CORS_ALLOW_ORIGINS: str = os.environ.get(
        "CORS_ALLOW_ORIGINS",
        "http://localhost:3000,http://127.0.0.1:3000",
    )

    # -----------------
    # Provisioning
    # -----------------
    # Each mandatory insert is retried with exponential backoff: base * 2^attempt_index.
    PROVISION_RETRY_ATTEMPTS: int = int(os.environ.get("PROVISION_RETRY_ATTEMPTS", "3"))
    PROVISION_RETRY_BASE_DELAY_MS: int = int(os.environ.get("PROVISION_RETRY_BASE_DELAY_MS", "100"))

    # Fixed product policy (not env-tunable).
    TRIAL_DAYS: int = 14
    TRIAL_PLAN_TIER: str = "pro"
    TRIAL_PRICE_REFERENCE: str = "trial_pro"
    ONBOARDING_CAMPAIGN_ID: str = "onboarding"


def load_config() -> Config:
    cfg = Config()
    if len(cfg.AUTH_SESSION_SECRET.encode("utf-8")) < 32:
        print("[config] WARNING: AUTH_SESSION_SECRET is shorter than 32 bytes")
    return cfg
