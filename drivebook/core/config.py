import os

from dotenv import load_dotenv

load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


APP_ENV = os.getenv("APP_ENV", "development")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./drivebook.db")

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")

CORS_ALLOW_ORIGINS = _get_list(os.getenv("CORS_ALLOW_ORIGINS"), ["http://localhost:3000"])

# Civil timezone used for instructors without their own zone.
BOOKING_TIMEZONE = os.getenv("BOOKING_TIMEZONE", "Australia/Sydney")
BOOKING_HORIZON_DAYS = int(os.getenv("BOOKING_HORIZON_DAYS", "56"))
DEFAULT_SLOT_DURATION_MINUTES = int(os.getenv("DEFAULT_SLOT_DURATION_MINUTES", "60"))
STUDENT_CANCELLATION_NOTICE_HOURS = int(os.getenv("STUDENT_CANCELLATION_NOTICE_HOURS", "24"))
REJECT_OVERLAPPING_RULES = _get_bool(os.getenv("REJECT_OVERLAPPING_RULES"), default=True)

BOOKING_LIST_DEFAULT_LIMIT = 20
BOOKING_LIST_MAX_LIMIT = int(os.getenv("BOOKING_LIST_MAX_LIMIT", "100"))
MAX_BOOKING_NOTES_LENGTH = 1000


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
