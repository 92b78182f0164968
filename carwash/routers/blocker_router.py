import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException
from carwash.db.reservation_repository import ReservationRepository
from carwash.exceptions import CarWashError
from carwash.models.auth_model import User
from carwash.models.blocker_model import Blocker, BlockerRequest
from carwash.models.policy_model import BookingPolicy
from carwash.services import blocker_service
from carwash.utils.auth import require_auth, require_carwash_admin
from carwash.utils.dependencies import get_policy, get_repository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["blocker"])


@router.get("/blockers", response_model=List[Blocker])
async def list_blockers(
    current_user: User = Depends(require_auth),
    repo: ReservationRepository = Depends(get_repository),
    policy: BookingPolicy = Depends(get_policy),
):
    try:
        return await blocker_service.list_blockers(repo, ending_after=policy.now())
    except Exception:
        logger.exception("Cannot list blockers")
        raise HTTPException(status_code=500, detail="Cannot list blockers")


@router.post("/blockers", response_model=Blocker, status_code=201)
async def create_blocker(
    blocker: BlockerRequest,
    current_user: User = Depends(require_carwash_admin),
    repo: ReservationRepository = Depends(get_repository),
    policy: BookingPolicy = Depends(get_policy),
):
    try:
        return await blocker_service.create_blocker(repo, blocker, current_user, policy)
    except CarWashError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())
    except Exception:
        logger.exception("Cannot create blocker")
        raise HTTPException(status_code=500, detail="Cannot create blocker")


@router.delete("/blockers/{blocker_id}", status_code=204)
async def delete_blocker(
    blocker_id: int,
    current_user: User = Depends(require_carwash_admin),
    repo: ReservationRepository = Depends(get_repository),
):
    try:
        await blocker_service.delete_blocker(repo, blocker_id, current_user)
    except CarWashError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())
    except Exception:
        logger.exception("Cannot delete blocker %s", blocker_id)
        raise HTTPException(status_code=500, detail="Cannot delete blocker")
