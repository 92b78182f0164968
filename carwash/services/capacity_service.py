import logging
import math
from collections import Counter
from datetime import date, datetime, timedelta
from typing import Iterable, Optional
from carwash.exceptions import CapacityLedgerError, ValidationError
from carwash.models.blocker_model import Blocker
from carwash.models.policy_model import BookingPolicy
from carwash.models.reservation_model import Reservation
from carwash.models.service_model import SERVICE_CATALOG, ServiceType
from carwash.models.slot_model import (
    CapacityUnit,
    NotAvailable,
    Slot,
    SlotCapacity,
    SlotDescriptor,
)

logger = logging.getLogger(__name__)


def time_requirement(services: Iterable[ServiceType]) -> int:
    return sum(SERVICE_CATALOG[ServiceType(service)].time_in_minutes for service in services)


def reservation_units(minutes: int, policy: BookingPolicy) -> int:
    """Convert a time requirement into slot capacity units.

    Every reservation occupies at least one time unit, even when all of
    its services are zero-minute add-ons.
    """
    if policy.capacity_unit == CapacityUnit.MINUTES:
        return max(minutes, policy.time_unit)
    return max(1, math.ceil(minutes / policy.time_unit))


def monthly_units(services: Iterable[ServiceType]) -> int:
    # the full wash (with carpet cleaning) counts twice
    return 2 if ServiceType.CARPET in set(services) else 1


def slot_bounds(day: date, slot: Slot, policy: BookingPolicy) -> tuple[datetime, datetime]:
    start = datetime.combine(day, slot.start_time, tzinfo=policy.tz)
    end_day = day + timedelta(days=1) if slot.wraps_midnight else day
    end = datetime.combine(end_day, slot.end_time, tzinfo=policy.tz)
    return start, end


def find_slot(start: datetime, policy: BookingPolicy) -> Optional[Slot]:
    local_time = policy.localize(start).time()
    for slot in policy.slots:
        if slot.start_time == local_time:
            return slot
    return None


def compute_end_date(start: datetime, services: Iterable[ServiceType], policy: BookingPolicy) -> datetime:
    local_start = policy.localize(start)
    slot = find_slot(local_start, policy)
    if slot:
        return slot_bounds(local_start.date(), slot, policy)[1]
    minutes = max(time_requirement(services), policy.time_unit)
    return local_start + timedelta(minutes=minutes)


def is_working_day(day: date, policy: BookingPolicy) -> bool:
    return day.weekday() in policy.working_days


def _used_units(reservations: Iterable[Reservation], policy: BookingPolicy) -> Counter:
    used = Counter()
    for reservation in reservations:
        if reservation.is_cancelled:
            continue
        used[reservation.start_date] += reservation_units(reservation.time_requirement, policy)
    return used


def compute_remaining_capacity(
    day: date,
    slot: Slot,
    existing_reservations: Iterable[Reservation],
    policy: BookingPolicy,
) -> int:
    start, _ = slot_bounds(day, slot, policy)
    used = _used_units(existing_reservations, policy)[start]
    remaining = slot.capacity - used
    if remaining < 0:
        logger.error(
            "Slot %s on %s is overcommitted: capacity=%s used=%s",
            slot.label(), day, slot.capacity, used,
        )
        raise CapacityLedgerError(
            context={"day": day, "slot": slot.label(), "capacity": slot.capacity, "used": used}
        )
    return remaining


def collect_not_available(
    reservations: Iterable[Reservation],
    blockers: Iterable[Blocker],
    from_date: date,
    policy: BookingPolicy,
    days_ahead: Optional[int] = None,
) -> NotAvailable:
    """Slot starts that are full or blocked, and dates with no free slot at all.

    Non-working days are always reported as not available dates.
    """
    used = _used_units(reservations, policy)
    blockers = list(blockers)
    dates = []
    times = []
    for offset in range(days_ahead or policy.days_ahead):
        day = from_date + timedelta(days=offset)
        if not is_working_day(day, policy):
            dates.append(day)
            continue
        day_full = True
        for slot in policy.slots:
            start, end = slot_bounds(day, slot, policy)
            full = used[start] >= slot.capacity
            blocked = any(blocker.covers(start, end) for blocker in blockers)
            if full or blocked:
                times.append(start)
            else:
                day_full = False
        if day_full:
            dates.append(day)
    return NotAvailable(dates=dates, times=times)


def slot_label(start: datetime, end: datetime, now: datetime) -> str:
    days_from_now = (start.date() - now.astimezone(start.tzinfo).date()).days
    if days_from_now == 0:
        day_part = "today"
    elif days_from_now == 1:
        day_part = "tomorrow"
    else:
        day_part = f"{start.strftime('%A')}, {start.day} {start.strftime('%B')}"
    return f"{day_part} {start.strftime('%H:%M')}-{end.strftime('%H:%M')}"


def find_next_available_slots(
    from_date: date,
    count: int = 3,
    excluded_dates: Iterable[date] = (),
    not_available_times: Iterable[datetime] = (),
    now: Optional[datetime] = None,
    policy: Optional[BookingPolicy] = None,
) -> list[SlotDescriptor]:
    if count < 1:
        raise ValidationError("count must be a positive number", context={"count": count})
    policy = policy or BookingPolicy()
    now = now or policy.now()
    excluded = set(excluded_dates)
    not_available = set(not_available_times)
    bound = from_date + timedelta(days=policy.days_ahead)

    free_slots = []
    day = from_date
    while day < bound and len(free_slots) < count:
        if is_working_day(day, policy) and day not in excluded:
            for slot in policy.slots:
                start, end = slot_bounds(day, slot, policy)
                if start <= now or start in not_available:
                    continue
                free_slots.append(
                    SlotDescriptor(label=slot_label(start, end, now), start_time=start, end_time=end)
                )
                if len(free_slots) == count:
                    break
        day += timedelta(days=1)
    return free_slots


def slot_capacities(
    day: date, reservations: Iterable[Reservation], policy: BookingPolicy
) -> list[SlotCapacity]:
    reservations = list(reservations)
    capacities = []
    for slot in policy.slots:
        start, end = slot_bounds(day, slot, policy)
        capacities.append(
            SlotCapacity(
                start_time=start,
                end_time=end,
                capacity=slot.capacity,
                free_capacity=compute_remaining_capacity(day, slot, reservations, policy),
            )
        )
    return capacities


def collect_not_available_times(
    reservations: Iterable[Reservation],
    blockers: Iterable[Blocker],
    from_date: date,
    policy: BookingPolicy,
    days_ahead: Optional[int] = None,
) -> list[datetime]:
    return collect_not_available(reservations, blockers, from_date, policy, days_ahead).times


def collect_excluded_dates(
    reservations: Iterable[Reservation],
    blockers: Iterable[Blocker],
    from_date: date,
    policy: BookingPolicy,
    days_ahead: Optional[int] = None,
) -> list[date]:
    return collect_not_available(reservations, blockers, from_date, policy, days_ahead).dates
