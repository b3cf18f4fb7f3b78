# barbershop/config.py

import os


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


APP_ENV = os.getenv("APP_ENV", "development")

# SQLite database (file-based) unless DATABASE_URL says otherwise
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./barbershop.db")
SQL_ECHO = _get_bool(os.getenv("SQL_ECHO"), default=False)

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me-later")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))

CORS_ORIGINS = _get_list(os.getenv("CORS_ORIGINS"), ["http://localhost:5173"])

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
TIMEZONE = os.getenv("TIMEZONE", "America/Argentina/Buenos_Aires")


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me-later":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
