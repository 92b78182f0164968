import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from carwash.exceptions import (
    BlockedDateError,
    CapacityExceededError,
    CarWashError,
    CrossDayRangeRejectedError,
    DuplicateActiveReservationError,
    InvalidReservationError,
    MonthlyLimitExceededError,
    PastDateRejectedError,
)
from carwash.models.blocker_model import Blocker
from carwash.models.policy_model import BookingPolicy
from carwash.models.reservation_model import Reservation, ReservationRequest, ReservationState
from carwash.models.slot_model import Slot
from carwash.services.capacity_service import (
    compute_end_date,
    compute_remaining_capacity,
    find_slot,
    monthly_units,
    reservation_units,
    slot_bounds,
    time_requirement,
)

logger = logging.getLogger(__name__)


@dataclass
class BookingSnapshot:
    """Reservation data read in the same transaction as the insert."""

    # non-cancelled reservations starting at the requested slot instance
    slot_reservations: list[Reservation] = field(default_factory=list)
    # the user's reservations that have not ended yet
    user_reservations: list[Reservation] = field(default_factory=list)
    # the user's reservations in the requested calendar month
    month_reservations: list[Reservation] = field(default_factory=list)
    blockers: list[Blocker] = field(default_factory=list)


@dataclass(frozen=True)
class ValidatedReservation:
    start_date: datetime
    end_date: datetime
    slot: Slot
    time_requirement: int
    units: int


def _rejected(error: CarWashError) -> CarWashError:
    logger.info("Reservation rejected (%s): %s %s", error.error_code, error.detail, error.context)
    return error


def active_reservations(
    reservations: list[Reservation], user_id: int, now: datetime
) -> list[Reservation]:
    return [
        r
        for r in reservations
        if r.user_id == user_id
        and r.state not in (ReservationState.CANCELLED, ReservationState.DONE)
        and r.end_date >= now
    ]


def validate_reservation(
    request: ReservationRequest,
    user_id: int,
    snapshot: BookingSnapshot,
    policy: BookingPolicy,
    now: datetime,
) -> ValidatedReservation:
    if not request.services:
        raise _rejected(InvalidReservationError("No service chosen.", context={"user_id": user_id}))

    start = policy.localize(request.start_date)
    end = (
        policy.localize(request.end_date)
        if request.end_date is not None
        else compute_end_date(start, request.services, policy)
    )
    context = {"user_id": user_id, "start_date": start, "end_date": end}

    if start.date() != end.date():
        raise _rejected(CrossDayRangeRejectedError(context=context))

    if end <= start:
        raise _rejected(
            InvalidReservationError(
                "Reservation end time should be later than the start time.", context=context
            )
        )

    earliest = now - timedelta(minutes=policy.minutes_to_allow_reserve_in_past)
    if start < earliest or end < earliest:
        raise _rejected(PastDateRejectedError(context={**context, "earliest_allowed": earliest}))

    slot = find_slot(start, policy)
    if slot is None or slot_bounds(start.date(), slot, policy)[1] != end:
        raise _rejected(
            InvalidReservationError("Reservation can be made to slots only.", context=context)
        )
    context["slot"] = slot.label()

    active = active_reservations(snapshot.user_reservations, user_id, now)
    if policy.single_active_reservation and active:
        raise _rejected(
            DuplicateActiveReservationError(
                context={**context, "rule": "single_active_reservation", "active_reservation_id": active[0].id}
            )
        )
    limit = policy.user_concurrent_reservation_limit
    if not policy.single_active_reservation and limit and len(active) >= limit:
        raise _rejected(
            DuplicateActiveReservationError(
                f"Cannot have more than {limit} concurrent active reservations.",
                context={**context, "rule": "user_concurrent_reservation_limit", "limit": limit},
            )
        )

    if any(blocker.covers(start, end) for blocker in snapshot.blockers):
        raise _rejected(BlockedDateError(context=context))

    if policy.monthly_limit_per_person:
        month_used = sum(
            monthly_units(r.services)
            for r in snapshot.month_reservations
            if not r.is_cancelled
            and policy.localize(r.start_date).year == start.year
            and policy.localize(r.start_date).month == start.month
        )
        requested = monthly_units(request.services)
        if month_used + requested > policy.monthly_limit_per_person:
            raise _rejected(
                MonthlyLimitExceededError(
                    context={
                        **context,
                        "rule": "monthly_limit_per_person",
                        "limit": policy.monthly_limit_per_person,
                        "used": month_used,
                        "required": requested,
                    }
                )
            )

    minutes = time_requirement(request.services)
    units = reservation_units(minutes, policy)
    remaining = compute_remaining_capacity(start.date(), slot, snapshot.slot_reservations, policy)
    if remaining < units:
        raise _rejected(
            CapacityExceededError(
                context={
                    **context,
                    "day": start.date(),
                    "remaining": remaining,
                    "required": units,
                    "unit": policy.capacity_unit.value,
                }
            )
        )

    return ValidatedReservation(
        start_date=start,
        end_date=end,
        slot=slot,
        time_requirement=minutes,
        units=units,
    )
