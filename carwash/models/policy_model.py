from pydantic import BaseModel, Field, field_validator, model_validator
from datetime import datetime, time
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from carwash.models.slot_model import CapacityUnit, Slot


DEFAULT_SLOTS = [
    Slot(start_time=time(8, 0), end_time=time(11, 0), capacity=12),
    Slot(start_time=time(11, 0), end_time=time(14, 0), capacity=12),
    Slot(start_time=time(14, 0), end_time=time(17, 0), capacity=11),
]


class BookingPolicy(BaseModel):
    """Business rules the allocator and validator run against.

    Slot times are local to ``time_zone``; stored timestamps are aware.
    """

    slots: list[Slot] = Field(default_factory=lambda: list(DEFAULT_SLOTS))
    time_zone: str = "Europe/Budapest"
    capacity_unit: CapacityUnit = CapacityUnit.WASH_COUNT
    # minutes one wash occupies
    time_unit: int = Field(12, ge=1)
    # 0 = Monday
    working_days: frozenset[int] = frozenset({0, 1, 2, 3, 4})
    minutes_to_allow_reserve_in_past: int = Field(0, ge=0)
    single_active_reservation: bool = True
    # 0 = unlimited, only used when single_active_reservation is off
    user_concurrent_reservation_limit: int = Field(2, ge=0)
    # 0 = unlimited
    monthly_limit_per_person: int = Field(0, ge=0)
    days_ahead: int = Field(365, ge=1)
    reminder_minutes_before: int = Field(30, ge=1)
    reminder_interval_seconds: int = Field(600, ge=1)
    submit_max_attempts: int = Field(3, ge=1)
    submit_retry_base_delay: float = Field(0.05, ge=0)

    @field_validator("time_zone")
    @classmethod
    def check_time_zone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except ZoneInfoNotFoundError as exc:
            raise ValueError(f"unknown time zone: {value}") from exc
        return value

    @field_validator("working_days")
    @classmethod
    def check_working_days(cls, value: frozenset[int]) -> frozenset[int]:
        if not value or any(day < 0 or day > 6 for day in value):
            raise ValueError("working_days must be weekday numbers 0-6")
        return value

    @model_validator(mode="after")
    def check_slots(self):
        if not self.slots:
            raise ValueError("at least one slot is required")
        ordered = sorted(self.slots, key=lambda s: s.start_time)
        for previous, current in zip(ordered, ordered[1:]):
            if previous.wraps_midnight or current.start_time < previous.end_time:
                raise ValueError(
                    f"slot {previous.label()} overlaps slot {current.label()}"
                )
        last, first = ordered[-1], ordered[0]
        if len(ordered) > 1 and last.wraps_midnight and last.end_time > first.start_time:
            raise ValueError(f"slot {last.label()} overlaps slot {first.label()}")
        self.slots = ordered
        return self

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.time_zone)

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def localize(self, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=self.tz)
        return value.astimezone(self.tz)
