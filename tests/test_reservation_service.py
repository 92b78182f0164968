import asyncio
import uuid
from datetime import time, timedelta

import pytest

from carwash.exceptions import (
    CapacityExceededError,
    ConflictError,
    DuplicateActiveReservationError,
    ForbiddenError,
    InvalidStateTransitionError,
    NotFoundError,
    ValidationError,
)
from carwash.models.policy_model import BookingPolicy
from carwash.models.reservation_model import ReservationRequest, ReservationState
from carwash.models.service_model import ServiceType
from carwash.models.slot_model import Slot
from carwash.services import reservation_service
from fakes import MONDAY, NOW, FakeRepository, at, make_reservation

State = ReservationState


def request_at(start, services=(ServiceType.EXTERIOR,), **kwargs):
    return ReservationRequest(
        vehicle_plate_number=kwargs.pop("vehicle_plate_number", "ABC-123"),
        services=list(services),
        start_date=start,
        **kwargs,
    )


def single_wash_policy() -> BookingPolicy:
    return BookingPolicy(
        slots=[
            Slot(start_time=time(8), end_time=time(11), capacity=1),
            Slot(start_time=time(11), end_time=time(14), capacity=1),
            Slot(start_time=time(14), end_time=time(17), capacity=1),
        ],
        single_active_reservation=False,
        user_concurrent_reservation_limit=0,
        submit_retry_base_delay=0,
    )


@pytest.mark.asyncio
async def test_submit_stores_reservation(repo, store, user, policy):
    reservation = await reservation_service.submit_reservation(
        repo, request_at(at(MONDAY, 8)), user, policy, NOW
    )
    assert store.reservations[reservation.id] == reservation
    assert uuid.UUID(reservation.id)
    assert reservation.state == State.SUBMITTED_NOT_ACTUAL
    assert reservation.user_id == user.id
    assert reservation.created_by_id == user.id
    assert reservation.vehicle_plate_number == "ABC123"
    assert reservation.end_date == at(MONDAY, 11)
    assert reservation.time_requirement == 12
    assert reservation.mpv is False


@pytest.mark.asyncio
async def test_submit_remembers_mpv_vehicles(repo, store, user, policy):
    store.add(
        make_reservation(
            at(MONDAY - timedelta(days=7), 8),
            user_id=user.id,
            vehicle_plate_number="ABC123",
            mpv=True,
            state=State.DONE,
        )
    )
    reservation = await reservation_service.submit_reservation(
        repo, request_at(at(MONDAY, 8)), user, policy, NOW
    )
    assert reservation.mpv is True


@pytest.mark.asyncio
async def test_user_cannot_reserve_for_someone_else(repo, user, other_user, policy):
    with pytest.raises(ForbiddenError):
        await reservation_service.submit_reservation(
            repo, request_at(at(MONDAY, 8), user_id=other_user.id), user, policy, NOW
        )


@pytest.mark.asyncio
async def test_admin_can_reserve_for_someone_else(repo, admin, other_user, policy):
    reservation = await reservation_service.submit_reservation(
        repo, request_at(at(MONDAY, 8), user_id=other_user.id), admin, policy, NOW
    )
    assert reservation.user_id == other_user.id
    assert reservation.created_by_id == admin.id


@pytest.mark.asyncio
async def test_second_active_reservation_is_rejected(repo, store, user, policy):
    await reservation_service.submit_reservation(repo, request_at(at(MONDAY, 8)), user, policy, NOW)
    with pytest.raises(DuplicateActiveReservationError):
        await reservation_service.submit_reservation(
            repo, request_at(at(MONDAY, 11)), user, policy, NOW
        )
    assert len(store.reservations) == 1


@pytest.mark.asyncio
async def test_full_slot_is_rejected(repo, store, user, policy):
    for i in range(12):
        store.add(make_reservation(at(MONDAY, 8), user_id=100 + i))
    with pytest.raises(CapacityExceededError) as excinfo:
        await reservation_service.submit_reservation(repo, request_at(at(MONDAY, 8)), user, policy, NOW)
    assert excinfo.value.context["remaining"] == 0
    assert len(store.reservations) == 12


@pytest.mark.asyncio
async def test_fourth_exterior_wash_does_not_fit_three_unit_slot(repo, store):
    policy = BookingPolicy(
        slots=[Slot(start_time=time(9), end_time=time(12), capacity=3)],
        submit_retry_base_delay=0,
    )
    for user_id in (1, 2, 3):
        await reservation_service.submit_reservation(
            repo,
            request_at(at(MONDAY, 9), vehicle_plate_number=f"CAR{user_id}"),
            store.users[user_id],
            policy,
            NOW,
        )

    with pytest.raises(CapacityExceededError) as excinfo:
        await reservation_service.submit_reservation(
            repo, request_at(at(MONDAY, 9), vehicle_plate_number="CAR4"), store.users[4], policy, NOW
        )
    assert excinfo.value.context["remaining"] == 0
    assert len(store.reservations) == 3
    assert all(r.end_date == at(MONDAY, 12) for r in store.reservations.values())


@pytest.mark.asyncio
async def test_concurrent_submissions_for_last_unit(store, user, other_user):
    policy = single_wash_policy()

    results = await asyncio.gather(
        reservation_service.submit_reservation(
            FakeRepository(store), request_at(at(MONDAY, 8)), user, policy, NOW
        ),
        reservation_service.submit_reservation(
            FakeRepository(store), request_at(at(MONDAY, 8), vehicle_plate_number="XYZ-999"), other_user, policy, NOW
        ),
        return_exceptions=True,
    )

    stored = [r for r in results if not isinstance(r, Exception)]
    failed = [r for r in results if isinstance(r, Exception)]
    assert len(stored) == 1
    assert len(failed) == 1
    assert isinstance(failed[0], (CapacityExceededError, ConflictError))
    assert list(store.reservations.values()) == stored


@pytest.mark.asyncio
async def test_many_concurrent_submissions_never_overbook(store):
    policy = single_wash_policy().model_copy(
        update={"slots": [Slot(start_time=time(8), end_time=time(11), capacity=2)]}
    )
    users = [store.users[user_id] for user_id in (1, 2, 3, 4)]

    results = await asyncio.gather(
        *(
            reservation_service.submit_reservation(
                FakeRepository(store),
                request_at(at(MONDAY, 8), vehicle_plate_number=f"CAR{u.id}"),
                u,
                policy,
                NOW,
            )
            for u in users
        ),
        return_exceptions=True,
    )

    assert len(store.reservations) == 2
    for result in results:
        if isinstance(result, Exception):
            assert isinstance(result, (CapacityExceededError, ConflictError))


@pytest.mark.asyncio
async def test_submit_retries_serialization_conflicts(repo, store, user, policy):
    store.fail_next_commits = 2
    reservation = await reservation_service.submit_reservation(
        repo, request_at(at(MONDAY, 8)), user, policy, NOW
    )
    assert store.commit_attempts == 3
    assert reservation.id in store.reservations


@pytest.mark.asyncio
async def test_submit_gives_up_with_conflict_error(repo, store, user, policy):
    store.fail_next_commits = 10
    with pytest.raises(ConflictError) as excinfo:
        await reservation_service.submit_reservation(
            repo, request_at(at(MONDAY, 8)), user, policy, NOW
        )
    assert excinfo.value.context["attempts"] == policy.submit_max_attempts
    assert store.commit_attempts == policy.submit_max_attempts
    assert store.reservations == {}


@pytest.mark.asyncio
async def test_cancel_frees_capacity(store, user, other_user):
    policy = single_wash_policy()
    repo = FakeRepository(store)
    first = await reservation_service.submit_reservation(repo, request_at(at(MONDAY, 8)), user, policy, NOW)

    with pytest.raises(CapacityExceededError):
        await reservation_service.submit_reservation(repo, request_at(at(MONDAY, 8)), other_user, policy, NOW)

    cancelled = await reservation_service.cancel_reservation(repo, first.id, user)
    assert cancelled.state == State.CANCELLED
    assert store.reservations[first.id].state == State.CANCELLED

    second = await reservation_service.submit_reservation(repo, request_at(at(MONDAY, 8)), other_user, policy, NOW)
    assert second.user_id == other_user.id


@pytest.mark.asyncio
async def test_cancel_twice_is_rejected(repo, store, user):
    reservation = store.add(make_reservation(at(MONDAY, 8), user_id=user.id))
    await reservation_service.cancel_reservation(repo, reservation.id, user)
    with pytest.raises(InvalidStateTransitionError):
        await reservation_service.cancel_reservation(repo, reservation.id, user)


@pytest.mark.asyncio
async def test_cancel_checks_ownership(repo, store, user, other_user, admin):
    reservation = store.add(make_reservation(at(MONDAY, 8), user_id=user.id))
    with pytest.raises(ForbiddenError):
        await reservation_service.cancel_reservation(repo, reservation.id, other_user)
    assert store.reservations[reservation.id].state == State.SUBMITTED_NOT_ACTUAL
    cancelled = await reservation_service.cancel_reservation(repo, reservation.id, admin)
    assert cancelled.state == State.CANCELLED


@pytest.mark.asyncio
async def test_unknown_reservation(repo, user):
    with pytest.raises(NotFoundError):
        await reservation_service.cancel_reservation(repo, str(uuid.uuid4()), user)
    with pytest.raises(NotFoundError):
        await reservation_service.get_reservation(repo, str(uuid.uuid4()), user)


@pytest.mark.asyncio
async def test_stale_state_gives_conflict(repo, store, user, monkeypatch):
    reservation = store.add(
        make_reservation(at(MONDAY, 8), user_id=user.id, state=State.DROPOFF_AND_LOCATION_CONFIRMED)
    )
    stale = reservation.model_copy(update={"state": State.SUBMITTED_NOT_ACTUAL})

    async def stale_read(reservation_id):
        return stale

    monkeypatch.setattr(repo, "get_reservation", stale_read)
    with pytest.raises(ConflictError):
        await reservation_service.cancel_reservation(repo, reservation.id, user)
    assert store.reservations[reservation.id].state == State.DROPOFF_AND_LOCATION_CONFIRMED


@pytest.mark.asyncio
async def test_confirm_dropoff_after_reminder(repo, store, user):
    reservation = store.add(make_reservation(at(MONDAY, 8), user_id=user.id))
    with pytest.raises(InvalidStateTransitionError):
        await reservation_service.confirm_dropoff(repo, reservation.id, "B2", user)

    await reservation_service.send_reminder(repo, reservation.id)
    confirmed = await reservation_service.confirm_dropoff(repo, reservation.id, "B2 garage, spot 14", user)
    assert confirmed.state == State.DROPOFF_AND_LOCATION_CONFIRMED
    assert store.reservations[reservation.id].location == "B2 garage, spot 14"


@pytest.mark.asyncio
async def test_confirm_dropoff_requires_location(repo, store, user):
    reservation = store.add(
        make_reservation(at(MONDAY, 8), user_id=user.id, state=State.REMINDER_SENT_WAITING_FOR_KEY)
    )
    with pytest.raises(ValidationError):
        await reservation_service.confirm_dropoff(repo, reservation.id, " ", user)


@pytest.mark.asyncio
async def test_staff_actions_need_carwash_admin(repo, store, user, admin):
    reservation = store.add(
        make_reservation(at(MONDAY, 8), user_id=user.id, state=State.DROPOFF_AND_LOCATION_CONFIRMED)
    )
    for acting_user in (user, admin):
        with pytest.raises(ForbiddenError):
            await reservation_service.start_wash(repo, reservation.id, acting_user)
    with pytest.raises(ForbiddenError):
        await reservation_service.list_backlog(repo, user)


@pytest.mark.asyncio
async def test_private_wash_lifecycle(repo, store, user, carwash_admin):
    reservation = store.add(
        make_reservation(at(MONDAY, 8), user_id=user.id, private=True, state=State.DROPOFF_AND_LOCATION_CONFIRMED)
    )
    assert (await reservation_service.start_wash(repo, reservation.id, carwash_admin)).state == State.WASH_IN_PROGRESS
    assert (await reservation_service.complete_wash(repo, reservation.id, carwash_admin)).state == State.NOT_YET_PAID
    assert (await reservation_service.mark_paid(repo, reservation.id, carwash_admin)).state == State.DONE


@pytest.mark.asyncio
async def test_company_wash_is_done_after_wash(repo, store, user, carwash_admin):
    reservation = store.add(
        make_reservation(at(MONDAY, 8), user_id=user.id, state=State.WASH_IN_PROGRESS)
    )
    assert (await reservation_service.complete_wash(repo, reservation.id, carwash_admin)).state == State.DONE
    with pytest.raises(InvalidStateTransitionError):
        await reservation_service.mark_paid(repo, reservation.id, carwash_admin)


@pytest.mark.asyncio
async def test_mark_done_skips_payment(repo, store, user, carwash_admin):
    reservation = store.add(
        make_reservation(at(MONDAY, 8), user_id=user.id, private=True, state=State.NOT_YET_PAID)
    )
    assert (await reservation_service.mark_done(repo, reservation.id, carwash_admin)).state == State.DONE


@pytest.mark.asyncio
async def test_backlog_lists_open_reservations(repo, store, carwash_admin):
    open_one = store.add(make_reservation(at(MONDAY, 8), user_id=1))
    store.add(make_reservation(at(MONDAY, 8), user_id=2, state=State.DONE))
    store.add(make_reservation(at(MONDAY, 8), user_id=3, state=State.CANCELLED))
    backlog = await reservation_service.list_backlog(repo, carwash_admin)
    assert backlog == [open_one]


@pytest.mark.asyncio
async def test_get_reservation_checks_ownership(repo, store, user, other_user, carwash_admin):
    reservation = store.add(make_reservation(at(MONDAY, 8), user_id=user.id))
    assert await reservation_service.get_reservation(repo, reservation.id, user) == reservation
    assert await reservation_service.get_reservation(repo, reservation.id, carwash_admin) == reservation
    with pytest.raises(ForbiddenError):
        await reservation_service.get_reservation(repo, reservation.id, other_user)


@pytest.mark.asyncio
async def test_list_user_reservations(repo, store, user, other_user):
    mine = store.add(make_reservation(at(MONDAY, 8), user_id=user.id))
    store.add(make_reservation(at(MONDAY, 8), user_id=other_user.id))
    assert await reservation_service.list_user_reservations(repo, user) == [mine]
    with pytest.raises(ForbiddenError):
        await reservation_service.list_user_reservations(repo, user, other_user.id)


@pytest.mark.asyncio
async def test_next_free_slots_skip_full_and_blocked(store):
    policy = single_wash_policy()
    repo = FakeRepository(store)
    tuesday = MONDAY + timedelta(days=1)
    store.add(make_reservation(at(MONDAY, 8), policy=policy))
    store.add_blocker(at(tuesday, 0), at(tuesday + timedelta(days=1), 0))

    slots = await reservation_service.get_next_free_slots(repo, MONDAY, 3, policy, NOW)

    assert [s.start_time for s in slots] == [
        at(MONDAY, 11),
        at(MONDAY, 14),
        at(tuesday + timedelta(days=1), 8),
    ]


@pytest.mark.asyncio
async def test_next_free_slots_reject_bad_count(repo, policy):
    with pytest.raises(ValidationError):
        await reservation_service.get_next_free_slots(repo, MONDAY, 0, policy, NOW)


@pytest.mark.asyncio
async def test_slot_capacities(repo, store, policy):
    store.add(make_reservation(at(MONDAY, 11), services=[ServiceType.CARPET]))
    store.add(make_reservation(at(MONDAY, 11), state=State.CANCELLED))
    capacities = await reservation_service.get_slot_capacities(repo, MONDAY, policy)
    assert [c.free_capacity for c in capacities] == [12, 10, 11]
