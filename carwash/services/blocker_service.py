import logging
from datetime import datetime
from typing import List, Optional
from carwash.db.reservation_repository import ReservationRepository
from carwash.exceptions import ForbiddenError, NotFoundError
from carwash.models.auth_model import User
from carwash.models.blocker_model import Blocker, BlockerRequest
from carwash.models.policy_model import BookingPolicy

logger = logging.getLogger(__name__)


def _check_carwash_admin(acting_user: User):
    if not acting_user.is_carwash_admin:
        raise ForbiddenError(
            "Car wash admin role is required.", context={"user_id": acting_user.id}
        )


async def list_blockers(
    repo: ReservationRepository, ending_after: Optional[datetime] = None
) -> List[Blocker]:
    return await repo.list_blockers(ending_after=ending_after)


async def create_blocker(
    repo: ReservationRepository,
    request: BlockerRequest,
    acting_user: User,
    policy: Optional[BookingPolicy] = None,
) -> Blocker:
    _check_carwash_admin(acting_user)
    policy = policy or BookingPolicy()
    request = request.model_copy(
        update={
            "start_date": policy.localize(request.start_date),
            "end_date": policy.localize(request.end_date) if request.end_date else None,
        }
    )
    blocker = await repo.insert_blocker(request, acting_user.id)
    logger.info(
        "Blocker %s created by user %s: %s - %s",
        blocker.id, acting_user.id, blocker.start_date, blocker.end_date,
    )
    return blocker


async def delete_blocker(repo: ReservationRepository, blocker_id: int, acting_user: User):
    _check_carwash_admin(acting_user)
    if not await repo.delete_blocker(blocker_id):
        raise NotFoundError("Blocker was not found.", context={"blocker_id": blocker_id})
    logger.info("Blocker %s deleted by user %s", blocker_id, acting_user.id)
