"""Reservation errors.

Every rejection carries an ``error_code``, the HTTP status the routers
answer with, and a ``context`` dict naming the slot, day or rule involved.
"""

from __future__ import annotations

from typing import Any


class CarWashError(Exception):
    """Base exception for the reservation core."""

    error_code = "carwash_error"
    status_code = 500
    default_message = "Unexpected reservation error."

    def __init__(
        self,
        message: str | None = None,
        *,
        error_code: str | None = None,
        detail: str | None = None,
        user_message: str | None = None,
        context: dict[str, Any] | None = None,
    ) -> None:
        message = message or detail or self.default_message
        super().__init__(message)
        if error_code is not None:
            self.error_code = error_code
        self.detail = detail or message
        self.user_message = user_message
        self.context = dict(context or {})

    def to_dict(self) -> dict[str, Any]:
        return {
            "error_code": self.error_code,
            "message": self.user_message or self.detail,
            "context": {key: _jsonable(value) for key, value in self.context.items()},
        }


def _jsonable(value: Any) -> Any:
    if hasattr(value, "isoformat"):
        return value.isoformat()
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_jsonable(item) for item in value]
    return value


class ValidationError(CarWashError):
    """Raised when an input is malformed."""

    error_code = "validation_error"
    status_code = 400
    default_message = "Invalid input."


class InvalidReservationError(ValidationError):
    """Raised when a reservation does not describe a bookable slot."""

    error_code = "invalid_reservation"


class PastDateRejectedError(ValidationError):
    error_code = "past_date_rejected"
    default_message = "Cannot reserve in the past."


class CrossDayRangeRejectedError(ValidationError):
    error_code = "cross_day_range_rejected"
    default_message = "Reservation time range should be located entirely on the same day."


class CapacityExceededError(CarWashError):
    error_code = "capacity_exceeded"
    status_code = 409
    default_message = "There is not enough capacity in that slot."


class MonthlyLimitExceededError(CarWashError):
    error_code = "monthly_limit_exceeded"
    status_code = 409
    default_message = "Monthly reservation limit has been reached."


class DuplicateActiveReservationError(CarWashError):
    error_code = "duplicate_active_reservation"
    status_code = 409
    default_message = "You already have an active reservation."


class BlockedDateError(CarWashError):
    error_code = "blocked_date"
    status_code = 409
    default_message = "This time is blocked."


class InvalidStateTransitionError(CarWashError):
    error_code = "invalid_state_transition"
    status_code = 409

    def __init__(self, action: str, current, expected, **kwargs: Any) -> None:
        expected_names = [state.name for state in expected]
        kwargs.setdefault(
            "detail",
            f"Cannot {action} a reservation in state {current.name}; "
            f"expected one of {', '.join(expected_names)}.",
        )
        context = kwargs.pop("context", {}) or {}
        context.update(
            {"action": action, "current_state": current.name, "expected_states": expected_names}
        )
        super().__init__(context=context, **kwargs)
        self.action = action
        self.current = current
        self.expected = tuple(expected)


class NotFoundError(CarWashError):
    error_code = "not_found"
    status_code = 404
    default_message = "Reservation was not found."


class ForbiddenError(CarWashError):
    error_code = "forbidden"
    status_code = 403
    default_message = "You are not allowed to do this."


class ConflictError(CarWashError):
    """Raised when a concurrent change won; callers should re-query and retry."""

    error_code = "conflict"
    status_code = 409
    default_message = "The slot changed while booking, please try again."


class CapacityLedgerError(CarWashError):
    """Raised when stored reservations exceed a slot's capacity."""

    error_code = "capacity_ledger_inconsistent"
    status_code = 500
    default_message = "Slot is overcommitted."


class TransactionConflictError(CarWashError):
    """A serializable transaction lost against a concurrent one."""

    error_code = "transaction_conflict"
    status_code = 409
    default_message = "Concurrent update detected."
