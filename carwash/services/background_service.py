import asyncio
import logging
from carwash.db.reservation_repository import ReservationRepository
from carwash.models.policy_model import BookingPolicy
from carwash.services.mail_service import send_reminder_email
from carwash.services.reminder_service import send_due_reminders

logger = logging.getLogger(__name__)


async def reminder_loop(db, policy: BookingPolicy):
    while True:
        try:
            async with db.acquire() as conn:
                await send_due_reminders(
                    ReservationRepository(conn), policy, notifier=send_reminder_email
                )
            await asyncio.sleep(policy.reminder_interval_seconds)
        except asyncio.CancelledError:
            logger.info("Reminder loop stopped")
            raise
        except Exception:
            logger.exception("Reminder loop failed")
            await asyncio.sleep(60)
