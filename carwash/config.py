import os
from datetime import time
from dotenv import load_dotenv
from carwash.models.policy_model import BookingPolicy
from carwash.models.slot_model import CapacityUnit, Slot

load_dotenv()

DB_USER = os.getenv("DB_USER")
DB_PASSWORD = os.getenv("DB_PASSWORD")
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = os.getenv("DB_PORT", 5432)
DB_DATABASE = os.getenv("DB_DATABASE")
DB_POOL_MIN_SIZE = int(os.getenv("DB_POOL_MIN_SIZE", 2))
DB_POOL_MAX_SIZE = int(os.getenv("DB_POOL_MAX_SIZE", 15))

DB_URL = os.getenv(
    "DATABASE_URL",
    f"postgresql://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_DATABASE}",
)

JWT_KEY = os.getenv("JWT_KEY")

# Resend email
RESEND_API_KEY = os.getenv("RESEND_API_KEY")
EMAIL_FROM_ADDRESS = os.getenv("EMAIL_FROM_ADDRESS", "CarWash <carwash@example.com>")

FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", FRONTEND_URL).split(",")
    if origin.strip()
]


def parse_slots(value: str) -> list[Slot]:
    """Parse ``"08:00-11:00=12,11:00-14:00=12"`` into slots."""
    slots = []
    for item in value.split(","):
        item = item.strip()
        if not item:
            continue
        try:
            span, capacity = item.split("=")
            start, end = span.split("-")
            slots.append(
                Slot(
                    start_time=time.fromisoformat(start.strip()),
                    end_time=time.fromisoformat(end.strip()),
                    capacity=int(capacity),
                )
            )
        except ValueError as exc:
            raise ValueError(f"invalid slot definition: {item!r}") from exc
    return slots


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_booking_policy() -> BookingPolicy:
    overrides = {}
    if os.getenv("CARWASH_SLOTS"):
        overrides["slots"] = parse_slots(os.getenv("CARWASH_SLOTS"))
    if os.getenv("CARWASH_TIME_ZONE"):
        overrides["time_zone"] = os.getenv("CARWASH_TIME_ZONE")
    if os.getenv("CARWASH_CAPACITY_UNIT"):
        overrides["capacity_unit"] = CapacityUnit(os.getenv("CARWASH_CAPACITY_UNIT"))
    if os.getenv("CARWASH_MONTHLY_LIMIT"):
        overrides["monthly_limit_per_person"] = int(os.getenv("CARWASH_MONTHLY_LIMIT"))
    if os.getenv("CARWASH_CONCURRENT_LIMIT"):
        overrides["user_concurrent_reservation_limit"] = int(os.getenv("CARWASH_CONCURRENT_LIMIT"))
    overrides["single_active_reservation"] = _env_bool("CARWASH_SINGLE_ACTIVE_RESERVATION", True)
    return BookingPolicy(**overrides)
