import asyncio
import logging
import uuid
from datetime import date, datetime, time, timedelta
from typing import Callable, List, Optional
from carwash.db.reservation_repository import ReservationRepository
from carwash.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    TransactionConflictError,
    ValidationError,
)
from carwash.models.auth_model import User
from carwash.models.policy_model import BookingPolicy
from carwash.models.reservation_model import Reservation, ReservationRequest
from carwash.models.slot_model import SlotCapacity, SlotDescriptor
from carwash.services.capacity_service import (
    collect_not_available,
    find_next_available_slots,
    slot_capacities,
)
from carwash.services.state_service import Transition, apply_transition
from carwash.services.validation_service import BookingSnapshot, validate_reservation

logger = logging.getLogger(__name__)


def _day_start(day: date, policy: BookingPolicy) -> datetime:
    return datetime.combine(day, time.min, tzinfo=policy.tz)


def _month_range(start: datetime, policy: BookingPolicy) -> tuple[datetime, datetime]:
    month_start = datetime(start.year, start.month, 1, tzinfo=policy.tz)
    month_end = (month_start + timedelta(days=32)).replace(day=1)
    return month_start, month_end


def _check_owner(reservation: Reservation, acting_user: User):
    if reservation.user_id != acting_user.id and not acting_user.can_act_for_others:
        raise ForbiddenError(
            "You can only manage your own reservations.",
            context={"reservation_id": reservation.id, "user_id": acting_user.id},
        )


def _check_carwash_admin(acting_user: User):
    if not acting_user.is_carwash_admin:
        raise ForbiddenError(
            "Car wash admin role is required.", context={"user_id": acting_user.id}
        )


async def get_next_free_slots(
    repo: ReservationRepository,
    from_date: Optional[date] = None,
    count: int = 3,
    policy: Optional[BookingPolicy] = None,
    now: Optional[datetime] = None,
) -> List[SlotDescriptor]:
    policy = policy or BookingPolicy()
    now = now or policy.now()
    if count < 1:
        raise ValidationError("count must be a positive number", context={"count": count})
    from_date = from_date or now.astimezone(policy.tz).date()
    window_start = _day_start(from_date, policy)
    window_end = window_start + timedelta(days=policy.days_ahead + 1)

    reservations = await repo.list_reservations_between(window_start, window_end)
    blockers = await repo.list_blockers(ending_after=window_start)
    not_available = collect_not_available(reservations, blockers, from_date, policy)
    return find_next_available_slots(
        from_date,
        count,
        excluded_dates=not_available.dates,
        not_available_times=not_available.times,
        now=now,
        policy=policy,
    )


async def _submit_once(
    repo: ReservationRepository,
    request: ReservationRequest,
    user_id: int,
    acting_user: User,
    policy: BookingPolicy,
    now: datetime,
) -> Reservation:
    start = policy.localize(request.start_date)
    month_start, month_end = _month_range(start, policy)
    async with repo.transaction():
        snapshot = BookingSnapshot(
            slot_reservations=await repo.list_reservations_starting_at(start),
            user_reservations=await repo.list_user_reservations(user_id, ending_after=now),
            month_reservations=await repo.list_user_reservations_between(
                user_id, month_start, month_end
            ),
            blockers=await repo.list_blockers(ending_after=start),
        )
        validated = validate_reservation(request, user_id, snapshot, policy, now)
        reservation = Reservation(
            id=str(uuid.uuid4()),
            user_id=user_id,
            vehicle_plate_number=request.vehicle_plate_number,
            services=request.services,
            start_date=validated.start_date,
            end_date=validated.end_date,
            time_requirement=validated.time_requirement,
            private=request.private,
            mpv=await repo.is_mpv(request.vehicle_plate_number),
            location=request.location,
            comment=request.comment,
            created_by_id=acting_user.id,
            created_on=now,
        )
        return await repo.insert_reservation(reservation)


async def submit_reservation(
    repo: ReservationRepository,
    request: ReservationRequest,
    acting_user: User,
    policy: Optional[BookingPolicy] = None,
    now: Optional[datetime] = None,
) -> Reservation:
    """Validate and store a reservation atomically.

    The capacity read and the insert share one serializable transaction, so
    two submissions racing for the last unit cannot both commit. The loser
    is retried; if it keeps losing the caller gets ConflictError.
    """
    policy = policy or BookingPolicy()
    user_id = request.user_id or acting_user.id
    if user_id != acting_user.id and not acting_user.can_act_for_others:
        raise ForbiddenError(
            "You cannot reserve for another user.",
            context={"user_id": acting_user.id, "requested_user_id": user_id},
        )

    attempt = 0
    while True:
        attempt += 1
        try:
            reservation = await _submit_once(
                repo, request, user_id, acting_user, policy, now or policy.now()
            )
            logger.info(
                "Reservation %s submitted for user %s at %s",
                reservation.id, user_id, reservation.start_date.isoformat(),
            )
            return reservation
        except TransactionConflictError as exc:
            if attempt >= policy.submit_max_attempts:
                logger.error(
                    "Giving up on reservation for user %s after %s attempts", user_id, attempt
                )
                raise ConflictError(
                    context={"user_id": user_id, "start_date": request.start_date, "attempts": attempt}
                ) from exc
            delay = policy.submit_retry_base_delay * 2 ** (attempt - 1)
            logger.warning(
                "Reservation conflict for user %s (attempt %s/%s), retrying in %.3fs",
                user_id, attempt, policy.submit_max_attempts, delay,
            )
            await asyncio.sleep(delay)


async def _transition(
    repo: ReservationRepository,
    reservation_id: str,
    transition: Transition,
    authorize: Optional[Callable[[Reservation], None]] = None,
    location: Optional[str] = None,
) -> Reservation:
    try:
        async with repo.transaction():
            reservation = await repo.get_reservation(reservation_id)
            if reservation is None:
                raise NotFoundError(context={"reservation_id": reservation_id})
            if authorize:
                authorize(reservation)
            updated = apply_transition(reservation, transition, location)
            saved = await repo.update_reservation_state(
                reservation.id,
                reservation.state,
                updated.state,
                updated.location if transition == Transition.CONFIRM_DROPOFF else None,
            )
            if saved is None:
                raise ConflictError(
                    "The reservation was changed by someone else.",
                    context={"reservation_id": reservation_id, "action": transition.value},
                )
    except TransactionConflictError as exc:
        raise ConflictError(
            "The reservation was changed by someone else.",
            context={"reservation_id": reservation_id, "action": transition.value},
        ) from exc
    logger.info(
        "Reservation %s: %s (%s -> %s)",
        reservation_id, transition.value, reservation.state.name, saved.state.name,
    )
    return saved


async def cancel_reservation(repo: ReservationRepository, reservation_id: str, acting_user: User) -> Reservation:
    return await _transition(
        repo, reservation_id, Transition.CANCEL, lambda r: _check_owner(r, acting_user)
    )


async def confirm_dropoff(
    repo: ReservationRepository, reservation_id: str, location: str, acting_user: User
) -> Reservation:
    if not location or not location.strip():
        raise ValidationError(
            "Location is required to confirm drop-off.",
            context={"reservation_id": reservation_id},
        )
    return await _transition(
        repo,
        reservation_id,
        Transition.CONFIRM_DROPOFF,
        lambda r: _check_owner(r, acting_user),
        location=location,
    )


async def send_reminder(repo: ReservationRepository, reservation_id: str) -> Reservation:
    return await _transition(repo, reservation_id, Transition.SEND_REMINDER)


async def start_wash(repo: ReservationRepository, reservation_id: str, acting_user: User) -> Reservation:
    _check_carwash_admin(acting_user)
    return await _transition(repo, reservation_id, Transition.START_WASH)


async def complete_wash(repo: ReservationRepository, reservation_id: str, acting_user: User) -> Reservation:
    _check_carwash_admin(acting_user)
    return await _transition(repo, reservation_id, Transition.COMPLETE_WASH)


async def mark_paid(repo: ReservationRepository, reservation_id: str, acting_user: User) -> Reservation:
    _check_carwash_admin(acting_user)
    return await _transition(repo, reservation_id, Transition.MARK_PAID)


async def mark_done(repo: ReservationRepository, reservation_id: str, acting_user: User) -> Reservation:
    _check_carwash_admin(acting_user)
    return await _transition(repo, reservation_id, Transition.MARK_DONE)


async def get_reservation(repo: ReservationRepository, reservation_id: str, acting_user: User) -> Reservation:
    reservation = await repo.get_reservation(reservation_id)
    if reservation is None:
        raise NotFoundError(context={"reservation_id": reservation_id})
    _check_owner(reservation, acting_user)
    return reservation


async def list_user_reservations(
    repo: ReservationRepository, acting_user: User, user_id: Optional[int] = None
) -> List[Reservation]:
    user_id = user_id or acting_user.id
    if user_id != acting_user.id and not acting_user.can_act_for_others:
        raise ForbiddenError(
            "You can only list your own reservations.",
            context={"user_id": acting_user.id, "requested_user_id": user_id},
        )
    return await repo.list_user_reservations(user_id)


async def list_backlog(repo: ReservationRepository, acting_user: User) -> List[Reservation]:
    _check_carwash_admin(acting_user)
    return await repo.list_backlog()


async def get_slot_capacities(
    repo: ReservationRepository, day: date, policy: Optional[BookingPolicy] = None
) -> List[SlotCapacity]:
    policy = policy or BookingPolicy()
    day_start = _day_start(day, policy)
    reservations = await repo.list_reservations_between(day_start, day_start + timedelta(days=1))
    return slot_capacities(day, reservations, policy)
