import logging
from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from carwash.db.reservation_repository import ReservationRepository
from carwash.exceptions import CarWashError
from carwash.models.auth_model import User
from carwash.models.policy_model import BookingPolicy
from carwash.models.reservation_model import (
    ConfirmDropoffRequest,
    ReservationRequest,
    ReservationResponse,
)
from carwash.models.slot_model import SlotCapacity, SlotDescriptor
from carwash.services import reservation_service
from carwash.utils.auth import require_auth
from carwash.utils.dependencies import get_policy, get_repository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["reservation"])


@router.get("/reservations/next-free-slots", response_model=List[SlotDescriptor])
async def get_next_free_slots(
    from_date: Optional[date] = None,
    count: int = Query(3),
    current_user: User = Depends(require_auth),
    repo: ReservationRepository = Depends(get_repository),
    policy: BookingPolicy = Depends(get_policy),
):
    try:
        return await reservation_service.get_next_free_slots(repo, from_date, count, policy)
    except CarWashError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())
    except Exception:
        logger.exception("Cannot list free slots")
        raise HTTPException(status_code=500, detail="Cannot list free slots")


@router.get("/reservations/capacity", response_model=List[SlotCapacity])
async def get_capacity(
    day: date,
    current_user: User = Depends(require_auth),
    repo: ReservationRepository = Depends(get_repository),
    policy: BookingPolicy = Depends(get_policy),
):
    try:
        return await reservation_service.get_slot_capacities(repo, day, policy)
    except CarWashError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())
    except Exception:
        logger.exception("Cannot compute slot capacity for %s", day)
        raise HTTPException(status_code=500, detail="Cannot compute slot capacity")


@router.post("/reservations", response_model=ReservationResponse, status_code=201)
async def submit_reservation(
    reservation_request: ReservationRequest,
    current_user: User = Depends(require_auth),
    repo: ReservationRepository = Depends(get_repository),
    policy: BookingPolicy = Depends(get_policy),
):
    try:
        reservation = await reservation_service.submit_reservation(
            repo, reservation_request, current_user, policy
        )
        return ReservationResponse.from_reservation(reservation)
    except CarWashError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())
    except Exception:
        logger.exception("Reservation failed for user %s", current_user.id)
        raise HTTPException(status_code=500, detail="Reservation failed, please try again")


@router.get("/reservations", response_model=List[ReservationResponse])
async def list_reservations(
    user_id: Optional[int] = None,
    current_user: User = Depends(require_auth),
    repo: ReservationRepository = Depends(get_repository),
):
    try:
        reservations = await reservation_service.list_user_reservations(repo, current_user, user_id)
        return [ReservationResponse.from_reservation(r) for r in reservations]
    except CarWashError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())
    except Exception:
        logger.exception("Cannot list reservations for user %s", current_user.id)
        raise HTTPException(status_code=500, detail="Cannot list reservations")


@router.get("/reservations/{reservation_id}", response_model=ReservationResponse)
async def get_reservation(
    reservation_id: str,
    current_user: User = Depends(require_auth),
    repo: ReservationRepository = Depends(get_repository),
):
    try:
        reservation = await reservation_service.get_reservation(repo, reservation_id, current_user)
        return ReservationResponse.from_reservation(reservation)
    except CarWashError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())
    except Exception:
        logger.exception("Cannot load reservation %s", reservation_id)
        raise HTTPException(status_code=500, detail="Cannot load reservation")


@router.post("/reservations/{reservation_id}/cancel", response_model=ReservationResponse)
async def cancel_reservation(
    reservation_id: str,
    current_user: User = Depends(require_auth),
    repo: ReservationRepository = Depends(get_repository),
):
    try:
        reservation = await reservation_service.cancel_reservation(repo, reservation_id, current_user)
        return ReservationResponse.from_reservation(reservation)
    except CarWashError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())
    except Exception:
        logger.exception("Cannot cancel reservation %s", reservation_id)
        raise HTTPException(status_code=500, detail="Cannot cancel reservation")


@router.post("/reservations/{reservation_id}/confirm-dropoff", response_model=ReservationResponse)
async def confirm_dropoff(
    reservation_id: str,
    dropoff: ConfirmDropoffRequest,
    current_user: User = Depends(require_auth),
    repo: ReservationRepository = Depends(get_repository),
):
    try:
        reservation = await reservation_service.confirm_dropoff(
            repo, reservation_id, dropoff.location, current_user
        )
        return ReservationResponse.from_reservation(reservation)
    except CarWashError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_dict())
    except Exception:
        logger.exception("Cannot confirm drop-off for reservation %s", reservation_id)
        raise HTTPException(status_code=500, detail="Cannot confirm drop-off")
