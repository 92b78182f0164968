from pydantic import BaseModel, Field
from datetime import datetime, date, time
from enum import Enum


class CapacityUnit(str, Enum):
    WASH_COUNT = "wash_count"
    MINUTES = "minutes"


class Slot(BaseModel, frozen=True):
    """A recurring daily wash window.

    ``capacity`` is measured in the unit selected by the booking policy.
    An ``end_time`` not later than ``start_time`` means the slot ends on
    the next calendar day.
    """

    start_time: time
    end_time: time
    capacity: int = Field(..., ge=1)

    @property
    def wraps_midnight(self) -> bool:
        return self.end_time <= self.start_time

    def label(self) -> str:
        return f"{self.start_time.strftime('%H:%M')}-{self.end_time.strftime('%H:%M')}"


class SlotDescriptor(BaseModel):
    label: str
    start_time: datetime
    end_time: datetime


class SlotCapacity(BaseModel):
    start_time: datetime
    end_time: datetime
    capacity: int
    free_capacity: int


class NotAvailable(BaseModel):
    dates: list[date]
    times: list[datetime]
