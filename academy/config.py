"""
Centralized configuration for the academy API.

All settings come from environment variables (loaded from .env/.env.local
by the entry points).
"""

import os

DEFAULT_PASS_SCORE_FALLBACK = 70

# Roles (JWT "role" claim) allowed to author quizzes
ADMIN_ROLES = frozenset({"admin", "developer"})


def is_dev_mode() -> bool:
    """Check if running in development mode (--dev flag or DEV_MODE env)."""
    return os.getenv("DEV_MODE", "").lower() in ("true", "1", "yes")


def get_api_port() -> int:
    """Get API server port from env or default."""
    return int(os.getenv("API_PORT", "8000"))


def get_frontend_url() -> str:
    """Get frontend URL from env or the local dev default."""
    return os.environ.get("FRONTEND_URL", "http://localhost:5173").rstrip("/")


def get_allowed_origins() -> list[str]:
    """
    Get list of allowed CORS origins.

    Includes localhost variants for dev and the configured frontend URL.
    """
    origins = ["http://localhost:5173", "http://127.0.0.1:5173"]
    if is_dev_mode():
        origins += [f"http://localhost:{port}" for port in (3000, get_api_port())]

    frontend_url = get_frontend_url()
    if frontend_url not in origins:
        origins.append(frontend_url)

    return origins


def get_database_url() -> str | None:
    """PostgreSQL connection string, driver-agnostic."""
    return os.environ.get("DATABASE_URL") or None


def is_sql_echo() -> bool:
    """Log every SQL statement (SQL_ECHO=true)."""
    return os.getenv("SQL_ECHO", "").lower() == "true"


def get_jwt_secret() -> str | None:
    """Secret used to verify bearer tokens issued by the identity service."""
    return os.environ.get("JWT_SECRET")


def get_default_pass_score() -> int:
    """Pass threshold (percent) for subsections without an explicit score."""
    raw = os.getenv("DEFAULT_QUIZ_PASS_SCORE")
    if not raw:
        return DEFAULT_PASS_SCORE_FALLBACK
    try:
        value = int(raw)
    except ValueError:
        return DEFAULT_PASS_SCORE_FALLBACK
    return min(max(value, 0), 100)


def get_sentry_dsn() -> str | None:
    return os.environ.get("SENTRY_DSN") or None


def get_sentry_environment() -> str:
    return os.environ.get(
        "SENTRY_ENVIRONMENT", "development" if is_dev_mode() else "production"
    )


# Required environment variables
# Format: (name, description, required_in_dev)
REQUIRED_ENV_VARS = [
    ("DATABASE_URL", "PostgreSQL connection string", True),
    ("JWT_SECRET", "Secret key for verifying bearer tokens", True),
    ("SENTRY_DSN", "Sentry DSN for error reporting", False),
]


def check_required_env_vars() -> tuple[bool, list[str]]:
    """
    Check that required environment variables are set.

    Returns:
        (all_ok, warnings): Tuple of success flag and list of warning messages
    """
    warnings = []
    errors = []
    in_dev = is_dev_mode()

    for name, description, required_in_dev in REQUIRED_ENV_VARS:
        if os.environ.get(name):
            continue
        if required_in_dev and not in_dev:
            errors.append(f"  ✗ {name}: Not set ({description})")
        elif required_in_dev or not in_dev:
            warnings.append(f"  ⚠ {name}: Not set ({description})")

    if errors:
        return False, warnings + errors

    return True, warnings
