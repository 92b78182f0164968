import logging
from typing import List
from fastapi import APIRouter, Depends, HTTPException
from carwash.db.reservation_repository import ReservationRepository
from carwash.exceptions import CarWashError
from carwash.models.auth_model import User
from carwash.models.reservation_model import ReservationResponse
from carwash.services import reservation_service
from carwash.utils.auth import require_carwash_admin
from carwash.utils.dependencies import get_repository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/carwash", tags=["carwash"])

STAFF_ACTIONS = {
    "start-wash": reservation_service.start_wash,
    "complete-wash": reservation_service.complete_wash,
    "mark-paid": reservation_service.mark_paid,
    "mark-done": reservation_service.mark_done,
}


@router.get("/backlog", response_model=List[ReservationResponse])
async def get_backlog(
    current_user: User = Depends(require_carwash_admin),
    repo: ReservationRepository = Depends(get_repository),
):
    try:
        reservations = await reservation_service.list_backlog(repo, current_user)
        return [ReservationResponse.from_reservation(r) for r in reservations]
    except CarWashError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())
    except Exception:
        logger.exception("Cannot load backlog")
        raise HTTPException(status_code=500, detail="Cannot load backlog")


@router.post("/reservations/{reservation_id}/{action}", response_model=ReservationResponse)
async def run_staff_action(
    reservation_id: str,
    action: str,
    current_user: User = Depends(require_carwash_admin),
    repo: ReservationRepository = Depends(get_repository),
):
    handler = STAFF_ACTIONS.get(action)
    if handler is None:
        raise HTTPException(status_code=404, detail=f"Unknown action: {action}")
    try:
        reservation = await handler(repo, reservation_id, current_user)
        return ReservationResponse.from_reservation(reservation)
    except CarWashError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())
    except Exception:
        logger.exception("Cannot %s reservation %s", action, reservation_id)
        raise HTTPException(status_code=500, detail=f"Cannot {action} reservation")
