"""Shared service helpers."""

from datetime import date, datetime, timezone
from typing import NamedTuple, Optional

from rental_engine.exceptions import EngineError
from rental_engine.models.records import Reservation


def _today() -> date:
    """Wrapper for easier testing/mocking."""
    return date.today()


def _now() -> datetime:
    """Wrapper for easier testing/mocking."""
    return datetime.now(timezone.utc)


def round2(x: float) -> float:
    return round(float(x), 2)


class BookingResult(NamedTuple):
    """
    Outcome of a lifecycle command. Refusals (conflict, missing record,
    illegal transition) come back in `error`; they are not raised.
    """
    ok: bool
    error: Optional[EngineError]
    reservation: Optional[Reservation]

    @classmethod
    def success(cls, reservation: Reservation) -> "BookingResult":
        return cls(True, None, reservation)

    @classmethod
    def refused(cls, error: EngineError, reservation: Optional[Reservation] = None) -> "BookingResult":
        return cls(False, error, reservation)
