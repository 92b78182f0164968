import logging
import asyncpg
from fastapi import Depends, Request, HTTPException
from carwash.config import load_booking_policy
from carwash.db.reservation_repository import ReservationRepository
from carwash.models.policy_model import BookingPolicy

logger = logging.getLogger(__name__)


async def get_connection(request: Request):
    if not hasattr(request.app.state, "db_pool") or not request.app.state.db_pool:
        logger.error("Database pool is not available")
        raise HTTPException(status_code=503, detail="Database is not available")
    pool: asyncpg.Pool = request.app.state.db_pool
    async with pool.acquire() as connection:
        yield connection


async def get_repository(db: asyncpg.Connection = Depends(get_connection)) -> ReservationRepository:
    return ReservationRepository(db)


def get_policy(request: Request) -> BookingPolicy:
    policy = getattr(request.app.state, "policy", None)
    if policy is None:
        policy = load_booking_policy()
        request.app.state.policy = policy
    return policy
