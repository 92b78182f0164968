from pydantic import BaseModel, Field, field_validator
from typing import List, Optional
from datetime import datetime
from enum import IntEnum
from carwash.models.service_model import ServiceType


class ReservationState(IntEnum):
    CANCELLED = -1
    SUBMITTED_NOT_ACTUAL = 0
    REMINDER_SENT_WAITING_FOR_KEY = 1
    DROPOFF_AND_LOCATION_CONFIRMED = 2
    WASH_IN_PROGRESS = 3
    NOT_YET_PAID = 4
    DONE = 5

    @property
    def friendly_name(self) -> str:
        return _STATE_LABELS[self]


_STATE_LABELS = {
    ReservationState.CANCELLED: "Cancelled",
    ReservationState.SUBMITTED_NOT_ACTUAL: "Scheduled",
    ReservationState.REMINDER_SENT_WAITING_FOR_KEY: "Drop-off the key",
    ReservationState.DROPOFF_AND_LOCATION_CONFIRMED: "All set, ready to wash",
    ReservationState.WASH_IN_PROGRESS: "Wash in progress",
    ReservationState.NOT_YET_PAID: "You need to pay",
    ReservationState.DONE: "Completed",
}


def normalize_plate_number(plate: str) -> str:
    return plate.upper().replace("-", "").replace(" ", "")


class ReservationRequest(BaseModel):
    vehicle_plate_number: str = Field(..., min_length=1, max_length=20)
    services: List[ServiceType]
    start_date: datetime
    end_date: Optional[datetime] = None
    private: bool = False
    location: Optional[str] = None
    comment: Optional[str] = None
    user_id: Optional[int] = None

    @field_validator("vehicle_plate_number")
    @classmethod
    def normalize_plate(cls, value: str) -> str:
        normalized = normalize_plate_number(value)
        if not normalized:
            raise ValueError("vehicle plate number is empty")
        return normalized

    @field_validator("services")
    @classmethod
    def dedupe_services(cls, value: List[ServiceType]) -> List[ServiceType]:
        return list(dict.fromkeys(value))


class Reservation(BaseModel, frozen=True):
    id: str
    user_id: int
    vehicle_plate_number: str
    services: List[ServiceType]
    start_date: datetime
    end_date: datetime
    time_requirement: int
    state: ReservationState = ReservationState.SUBMITTED_NOT_ACTUAL
    private: bool = False
    mpv: bool = False
    location: Optional[str] = None
    comment: Optional[str] = None
    carwash_comment: Optional[str] = None
    created_by_id: Optional[int] = None
    created_on: Optional[datetime] = None

    @property
    def is_cancelled(self) -> bool:
        return self.state == ReservationState.CANCELLED


class ConfirmDropoffRequest(BaseModel):
    location: str = Field(..., min_length=1)


class ReservationResponse(Reservation, frozen=True):
    state_name: str

    @classmethod
    def from_reservation(cls, reservation: Reservation) -> "ReservationResponse":
        return cls(**reservation.model_dump(), state_name=reservation.state.friendly_name)
