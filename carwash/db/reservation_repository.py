import logging
import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional
import asyncpg
from carwash.exceptions import TransactionConflictError
from carwash.models.auth_model import User
from carwash.models.blocker_model import Blocker, BlockerRequest
from carwash.models.reservation_model import Reservation, ReservationState

logger = logging.getLogger(__name__)

RESERVATION_COLUMNS = (
    "id, user_id, vehicle_plate_number, location, state, services, private, mpv, "
    "time_requirement, start_date, end_date, comment, carwash_comment, created_by_id, created_on"
)

CANCELLED = int(ReservationState.CANCELLED)


def _to_reservation(row) -> Reservation:
    data = dict(row)
    data["id"] = str(data["id"])
    data["services"] = list(data["services"])
    return Reservation(**data)


class ReservationRepository:
    """Reservation and blocker queries on a single asyncpg connection."""

    def __init__(self, connection: asyncpg.Connection):
        self.connection = connection

    @asynccontextmanager
    async def transaction(self):
        """Serializable transaction; losing a conflict raises TransactionConflictError."""
        try:
            async with self.connection.transaction(isolation="serializable"):
                yield self
        except (
            asyncpg.exceptions.SerializationError,
            asyncpg.exceptions.DeadlockDetectedError,
        ) as exc:
            logger.warning("Serializable transaction aborted: %s", exc)
            raise TransactionConflictError(detail=str(exc)) from exc

    async def get_reservation(self, reservation_id: str) -> Optional[Reservation]:
        try:
            key = uuid.UUID(reservation_id)
        except ValueError:
            return None
        select_query = f"SELECT {RESERVATION_COLUMNS} FROM reservations WHERE id = $1"
        row = await self.connection.fetchrow(select_query, key)
        return _to_reservation(row) if row else None

    async def list_reservations_starting_at(self, start: datetime) -> List[Reservation]:
        select_query = f"SELECT {RESERVATION_COLUMNS} FROM reservations WHERE start_date = $1 AND state <> $2"
        rows = await self.connection.fetch(select_query, start, CANCELLED)
        return [_to_reservation(row) for row in rows]

    async def list_reservations_between(self, from_date: datetime, to_date: datetime) -> List[Reservation]:
        select_query = f"SELECT {RESERVATION_COLUMNS} FROM reservations WHERE start_date >= $1 AND start_date < $2 AND state <> $3 ORDER BY start_date"
        rows = await self.connection.fetch(select_query, from_date, to_date, CANCELLED)
        return [_to_reservation(row) for row in rows]

    async def list_user_reservations(
        self, user_id: int, ending_after: Optional[datetime] = None
    ) -> List[Reservation]:
        if ending_after is None:
            select_query = f"SELECT {RESERVATION_COLUMNS} FROM reservations WHERE user_id = $1 ORDER BY start_date DESC"
            rows = await self.connection.fetch(select_query, user_id)
        else:
            select_query = f"SELECT {RESERVATION_COLUMNS} FROM reservations WHERE user_id = $1 AND end_date >= $2 ORDER BY start_date DESC"
            rows = await self.connection.fetch(select_query, user_id, ending_after)
        return [_to_reservation(row) for row in rows]

    async def list_user_reservations_between(
        self, user_id: int, from_date: datetime, to_date: datetime
    ) -> List[Reservation]:
        select_query = f"SELECT {RESERVATION_COLUMNS} FROM reservations WHERE user_id = $1 AND start_date >= $2 AND start_date < $3 AND state <> $4"
        rows = await self.connection.fetch(select_query, user_id, from_date, to_date, CANCELLED)
        return [_to_reservation(row) for row in rows]

    async def list_backlog(self) -> List[Reservation]:
        select_query = f"SELECT {RESERVATION_COLUMNS} FROM reservations WHERE state NOT IN ($1, $2) ORDER BY start_date"
        rows = await self.connection.fetch(select_query, CANCELLED, int(ReservationState.DONE))
        return [_to_reservation(row) for row in rows]

    async def list_due_reminders(self, from_date: datetime, to_date: datetime) -> List[Reservation]:
        select_query = f"SELECT {RESERVATION_COLUMNS} FROM reservations WHERE state = $1 AND start_date > $2 AND start_date <= $3 ORDER BY start_date"
        rows = await self.connection.fetch(
            select_query, int(ReservationState.SUBMITTED_NOT_ACTUAL), from_date, to_date
        )
        return [_to_reservation(row) for row in rows]

    async def is_mpv(self, vehicle_plate_number: str) -> bool:
        select_query = "SELECT EXISTS (SELECT 1 FROM reservations WHERE vehicle_plate_number = $1 AND mpv = true)"
        return await self.connection.fetchval(select_query, vehicle_plate_number)

    async def insert_reservation(self, reservation: Reservation) -> Reservation:
        insert_query = f"""
            INSERT INTO reservations (id, user_id, vehicle_plate_number, location, state,
                                      services, private, mpv, time_requirement, start_date,
                                      end_date, comment, carwash_comment, created_by_id, created_on)
            VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10, $11, $12, $13, $14, $15)
            RETURNING {RESERVATION_COLUMNS}
        """
        row = await self.connection.fetchrow(
            insert_query,
            uuid.UUID(reservation.id),
            reservation.user_id,
            reservation.vehicle_plate_number,
            reservation.location,
            int(reservation.state),
            [int(service) for service in reservation.services],
            reservation.private,
            reservation.mpv,
            reservation.time_requirement,
            reservation.start_date,
            reservation.end_date,
            reservation.comment,
            reservation.carwash_comment,
            reservation.created_by_id,
            reservation.created_on,
        )
        return _to_reservation(row)

    async def update_reservation_state(
        self,
        reservation_id: str,
        expected_state: ReservationState,
        new_state: ReservationState,
        location: Optional[str] = None,
    ) -> Optional[Reservation]:
        """Compare-and-set on the state column; None when the row moved on."""
        update_query = f"""
            UPDATE reservations SET state = $3, location = COALESCE($4, location)
            WHERE id = $1 AND state = $2
            RETURNING {RESERVATION_COLUMNS}
        """
        row = await self.connection.fetchrow(
            update_query,
            uuid.UUID(reservation_id),
            int(expected_state),
            int(new_state),
            location,
        )
        return _to_reservation(row) if row else None

    async def list_blockers(self, ending_after: Optional[datetime] = None) -> List[Blocker]:
        if ending_after is None:
            rows = await self.connection.fetch("SELECT * FROM blockers ORDER BY start_date")
        else:
            select_query = "SELECT * FROM blockers WHERE end_date IS NULL OR end_date >= $1 ORDER BY start_date"
            rows = await self.connection.fetch(select_query, ending_after)
        return [Blocker(**dict(row)) for row in rows]

    async def insert_blocker(self, blocker: BlockerRequest, created_by_id: int) -> Blocker:
        insert_query = "INSERT INTO blockers (start_date, end_date, comment, created_by_id) VALUES ($1, $2, $3, $4) RETURNING *"
        row = await self.connection.fetchrow(
            insert_query, blocker.start_date, blocker.end_date, blocker.comment, created_by_id
        )
        return Blocker(**dict(row))

    async def delete_blocker(self, blocker_id: int) -> bool:
        deleted = await self.connection.fetchval(
            "DELETE FROM blockers WHERE id = $1 RETURNING id", blocker_id
        )
        return deleted is not None

    async def get_user(self, user_id: int) -> Optional[User]:
        row = await self.connection.fetchrow(
            "SELECT id, email, name, role, created_at FROM users WHERE id = $1", user_id
        )
        return User(**dict(row)) if row else None
