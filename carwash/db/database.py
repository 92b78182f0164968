import logging
import asyncpg
from carwash.config import DB_URL, DB_POOL_MIN_SIZE, DB_POOL_MAX_SIZE

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id SERIAL PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    name TEXT,
    role TEXT NOT NULL DEFAULT 'user',
    created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);

CREATE TABLE IF NOT EXISTS reservations (
    id UUID PRIMARY KEY,
    user_id INTEGER NOT NULL REFERENCES users(id),
    vehicle_plate_number TEXT NOT NULL,
    location TEXT,
    state SMALLINT NOT NULL DEFAULT 0,
    services INTEGER[] NOT NULL,
    private BOOLEAN NOT NULL DEFAULT false,
    mpv BOOLEAN NOT NULL DEFAULT false,
    time_requirement INTEGER NOT NULL,
    start_date TIMESTAMPTZ NOT NULL,
    end_date TIMESTAMPTZ NOT NULL,
    comment TEXT,
    carwash_comment TEXT,
    created_by_id INTEGER REFERENCES users(id),
    created_on TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    outlook_event_id TEXT
);

CREATE INDEX IF NOT EXISTS reservations_start_date_idx ON reservations (start_date);
CREATE INDEX IF NOT EXISTS reservations_user_id_idx ON reservations (user_id);

CREATE TABLE IF NOT EXISTS blockers (
    id SERIAL PRIMARY KEY,
    start_date TIMESTAMPTZ NOT NULL,
    end_date TIMESTAMPTZ,
    comment TEXT,
    created_by_id INTEGER REFERENCES users(id),
    created_on TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""


async def create_pool():
    try:
        pool = await asyncpg.create_pool(
            dsn=DB_URL, min_size=DB_POOL_MIN_SIZE, max_size=DB_POOL_MAX_SIZE
        )
        logger.info("Database pool created")
        return pool
    except Exception:
        logger.exception("Cannot create database pool")
        raise


async def init_schema(pool: asyncpg.Pool):
    async with pool.acquire() as connection:
        await connection.execute(SCHEMA)
    logger.info("Database schema is up to date")


async def close_pool(pool: asyncpg.Pool):
    if pool:
        await pool.close()
