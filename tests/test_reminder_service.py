from datetime import timedelta

import pytest

from carwash.models.reservation_model import ReservationState
from carwash.services.reminder_service import send_due_reminders
from fakes import MONDAY, at, make_reservation

State = ReservationState


@pytest.mark.asyncio
async def test_reminds_reservations_starting_soon(repo, store, policy):
    due = store.add(make_reservation(at(MONDAY, 8), user_id=1))
    later = store.add(make_reservation(at(MONDAY, 11), user_id=2))
    cancelled = store.add(make_reservation(at(MONDAY, 8), user_id=3, state=State.CANCELLED))
    sent = []

    def notifier(user, reservation, time_zone):
        sent.append((user.email, reservation.id))
        return {"success": True, "email_id": "test"}

    reminded = await send_due_reminders(repo, policy, now=at(MONDAY, 7, 40), notifier=notifier)

    assert [r.id for r in reminded] == [due.id]
    assert store.reservations[due.id].state == State.REMINDER_SENT_WAITING_FOR_KEY
    assert store.reservations[later.id].state == State.SUBMITTED_NOT_ACTUAL
    assert store.reservations[cancelled.id].state == State.CANCELLED
    assert sent == [("anna@example.com", due.id)]


@pytest.mark.asyncio
async def test_started_reservations_are_not_reminded(repo, store, policy):
    store.add(make_reservation(at(MONDAY, 8), user_id=1))
    reminded = await send_due_reminders(repo, policy, now=at(MONDAY, 8))
    assert reminded == []


@pytest.mark.asyncio
async def test_failed_email_keeps_state_change(repo, store, policy):
    due = store.add(make_reservation(at(MONDAY, 8), user_id=1))

    def notifier(user, reservation, time_zone):
        raise RuntimeError("mail server down")

    reminded = await send_due_reminders(repo, policy, now=at(MONDAY, 7, 45), notifier=notifier)

    assert [r.id for r in reminded] == [due.id]
    assert store.reservations[due.id].state == State.REMINDER_SENT_WAITING_FOR_KEY


@pytest.mark.asyncio
async def test_reminder_window_follows_policy(repo, store, policy):
    store.add(make_reservation(at(MONDAY, 8), user_id=1))
    wide = policy.model_copy(update={"reminder_minutes_before": 90})
    assert await send_due_reminders(repo, policy, now=at(MONDAY, 7) - timedelta(minutes=1)) == []
    assert len(await send_due_reminders(repo, wide, now=at(MONDAY, 7))) == 1
