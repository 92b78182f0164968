import asyncio
import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional
from carwash.db.reservation_repository import ReservationRepository
from carwash.exceptions import ConflictError, InvalidStateTransitionError, NotFoundError
from carwash.models.policy_model import BookingPolicy
from carwash.models.reservation_model import Reservation
from carwash.services.reservation_service import send_reminder

logger = logging.getLogger(__name__)


async def send_due_reminders(
    repo: ReservationRepository,
    policy: BookingPolicy,
    now: Optional[datetime] = None,
    notifier: Optional[Callable] = None,
) -> List[Reservation]:
    """Move reservations starting soon to REMINDER_SENT and email their owners.

    The state change is kept even when the email cannot be delivered.
    """
    now = now or policy.now()
    due = await repo.list_due_reminders(
        now, now + timedelta(minutes=policy.reminder_minutes_before)
    )
    reminded = []
    for reservation in due:
        try:
            updated = await send_reminder(repo, reservation.id)
        except (ConflictError, InvalidStateTransitionError, NotFoundError) as e:
            logger.info("Skipping reminder for reservation %s: %s", reservation.id, e)
            continue
        reminded.append(updated)
        if notifier is None:
            continue
        user = await repo.get_user(updated.user_id)
        if user is None:
            logger.error("Owner %s of reservation %s not found", updated.user_id, updated.id)
            continue
        try:
            result = await asyncio.to_thread(notifier, user, updated, policy.tz)
        except Exception:
            logger.exception("Reminder email for reservation %s failed", updated.id)
            continue
        if not result or not result.get("success"):
            logger.warning("Reminder for reservation %s was not delivered", updated.id)
    if reminded:
        logger.info("Sent %s reservation reminders", len(reminded))
    return reminded
