"""
Custom exception classes for the reservation engine.

Validation errors are raised. Conflicts, missing records and illegal status
changes are also modelled as exceptions, but the lifecycle services *return*
them inside a result instead of raising, so callers can tell "your request
was refused" apart from "the store could not answer".
"""

from typing import Iterable, Optional


class EngineError(Exception):
    """Base class for every error the engine knows about."""

    default_message = "Error: reservation engine failure"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message

    @property
    def code(self) -> str:
        return type(self).__name__


class InvalidInterval(EngineError):
    """Raised when a start date is after the end date or a date cannot be parsed."""

    default_message = "Error: invalid date range"


class BookingConflict(EngineError):
    """The vehicle is already occupied by an Active/Pending reservation in that period."""

    default_message = "Error: vehicle is already booked for these dates"

    def __init__(self, vehicle_id: str, conflicting_ids: Iterable[str] = (),
                 message: Optional[str] = None) -> None:
        self.vehicle_id = vehicle_id
        self.conflicting_ids = list(conflicting_ids)
        if message is None:
            ids = ", ".join(self.conflicting_ids) or "unknown"
            message = f"Error: vehicle '{vehicle_id}' conflicts with reservation(s) {ids}"
        super().__init__(message)


class IdAllocationExhausted(EngineError):
    """Every candidate sequence number within the retry ceiling was already taken."""

    default_message = "Error: could not allocate a unique identifier"

    def __init__(self, scope: str, attempts: int) -> None:
        self.scope = scope
        self.attempts = attempts
        super().__init__(f"Error: no free identifier in scope '{scope}' after {attempts} attempts")


class RecordNotFound(EngineError):
    """Raised when a vehicle, customer or reservation ID cannot be found in the store."""

    default_message = "Error: record not found"

    def __init__(self, kind: str, record_id: str) -> None:
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"Error: {kind} with ID '{record_id}' not found")


class InvalidTransition(EngineError):
    """Raised when a reservation status change is not allowed (e.g. out of Returned)."""

    default_message = "Error: status change not allowed"

    def __init__(self, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(f"Error: cannot move reservation from {current} to {target}")


class StoreError(EngineError):
    """Base class for failures reported by the record store."""

    default_message = "Error: record store failure"


class StoreUnavailable(StoreError):
    """The store could not be reached or did not answer."""

    default_message = "Error: record store unavailable"


class DuplicateKeyError(StoreError):
    """An insert was rejected because a unique key is already taken."""

    def __init__(self, key: str, value: str, existing_id: Optional[str] = None) -> None:
        self.key = key
        self.value = value
        self.existing_id = existing_id
        super().__init__(f"Error: duplicate {key} '{value}'")
