"""Reservation lifecycle.

States only move forward; ``CANCELLED`` is terminal and reachable only
before the key is dropped off.
"""

from enum import Enum
from typing import Optional
from carwash.exceptions import InvalidStateTransitionError, ValidationError
from carwash.models.reservation_model import Reservation, ReservationState


class Transition(str, Enum):
    SEND_REMINDER = "send_reminder"
    CONFIRM_DROPOFF = "confirm_dropoff"
    START_WASH = "start_wash"
    COMPLETE_WASH = "complete_wash"
    MARK_PAID = "mark_paid"
    MARK_DONE = "mark_done"
    CANCEL = "cancel"


ALLOWED_SOURCES: dict[Transition, tuple[ReservationState, ...]] = {
    Transition.SEND_REMINDER: (ReservationState.SUBMITTED_NOT_ACTUAL,),
    Transition.CONFIRM_DROPOFF: (ReservationState.REMINDER_SENT_WAITING_FOR_KEY,),
    Transition.START_WASH: (ReservationState.DROPOFF_AND_LOCATION_CONFIRMED,),
    Transition.COMPLETE_WASH: (ReservationState.WASH_IN_PROGRESS,),
    Transition.MARK_PAID: (ReservationState.NOT_YET_PAID,),
    Transition.MARK_DONE: (ReservationState.WASH_IN_PROGRESS, ReservationState.NOT_YET_PAID),
    Transition.CANCEL: (
        ReservationState.SUBMITTED_NOT_ACTUAL,
        ReservationState.REMINDER_SENT_WAITING_FOR_KEY,
    ),
}


def target_state(transition: Transition, reservation: Reservation) -> ReservationState:
    if transition == Transition.SEND_REMINDER:
        return ReservationState.REMINDER_SENT_WAITING_FOR_KEY
    if transition == Transition.CONFIRM_DROPOFF:
        return ReservationState.DROPOFF_AND_LOCATION_CONFIRMED
    if transition == Transition.START_WASH:
        return ReservationState.WASH_IN_PROGRESS
    if transition == Transition.COMPLETE_WASH:
        return ReservationState.NOT_YET_PAID if reservation.private else ReservationState.DONE
    if transition in (Transition.MARK_PAID, Transition.MARK_DONE):
        return ReservationState.DONE
    return ReservationState.CANCELLED


def can_apply(transition: Transition, state: ReservationState) -> bool:
    return state in ALLOWED_SOURCES[transition]


def apply_transition(
    reservation: Reservation,
    transition: Transition,
    location: Optional[str] = None,
) -> Reservation:
    """Return a copy of ``reservation`` moved through ``transition``.

    Raises InvalidStateTransitionError without touching the input when the
    current state is not an allowed source.
    """
    allowed = ALLOWED_SOURCES[transition]
    if reservation.state not in allowed:
        raise InvalidStateTransitionError(
            transition.value,
            reservation.state,
            allowed,
            context={"reservation_id": reservation.id},
        )
    update = {"state": target_state(transition, reservation)}
    if transition == Transition.CONFIRM_DROPOFF:
        if not location or not location.strip():
            raise ValidationError(
                "Location is required to confirm drop-off.",
                context={"reservation_id": reservation.id},
            )
        update["location"] = location.strip()
    return reservation.model_copy(update=update)
