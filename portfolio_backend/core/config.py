import os

from dotenv import load_dotenv

load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if value is None:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./portfolio.db")

CORS_ALLOW_ORIGINS = _get_list(os.getenv("CORS_ALLOW_ORIGINS"), ["http://localhost:3000"])

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_REFRESH_SECRET_KEY = os.getenv("JWT_REFRESH_SECRET_KEY", "change-me-too")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "15"))
JWT_REFRESH_EXPIRES_MINUTES = int(os.getenv("JWT_REFRESH_EXPIRES_MINUTES", str(7 * 24 * 60)))

SMTP_HOST = os.getenv("SMTP_HOST", "")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USERNAME = os.getenv("SMTP_USERNAME", "")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
SMTP_USE_TLS = _get_bool(os.getenv("SMTP_USE_TLS"), default=True)
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", SMTP_USERNAME)
OPERATOR_EMAIL = os.getenv("OPERATOR_EMAIL", EMAIL_FROM_ADDRESS)
OPERATOR_NAME = os.getenv("OPERATOR_NAME", "")

DEFAULT_TIMEZONE = os.getenv("DEFAULT_TIMEZONE", "America/New_York")


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production":
        if JWT_SECRET_KEY == "change-me" or JWT_REFRESH_SECRET_KEY == "change-me-too":
            raise RuntimeError("JWT_SECRET_KEY and JWT_REFRESH_SECRET_KEY must be set in production.")
