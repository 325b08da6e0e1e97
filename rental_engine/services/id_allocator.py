"""
Human-readable identifier allocation.

Booking IDs look like VAT-20240610-003 (reference date + per-day sequence),
customer IDs like VATS-CUST-017. The sequence is `count + 1` of existing
records in scope. Count-then-insert is not atomic, so callers claim an ID
by inserting through `claim_*`: a duplicate-key rejection moves on to the
next sequence number until the retry ceiling is reached.
"""

import logging
from datetime import date
from typing import Callable, TypeVar

from rental_engine.exceptions import DuplicateKeyError, IdAllocationExhausted
from rental_engine.models.store import RecordStore
from rental_engine.utils.constants import (
    BOOKING_PREFIX,
    CUSTOMER_PREFIX,
    ID_DATE_FMT,
    MAX_ID_ATTEMPTS,
    SEQUENCE_WIDTH,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class IdAllocator:
    def __init__(
            self,
            store: RecordStore,
            booking_prefix: str = BOOKING_PREFIX,
            customer_prefix: str = CUSTOMER_PREFIX,
            sequence_width: int = SEQUENCE_WIDTH,
            max_attempts: int = MAX_ID_ATTEMPTS,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.store = store
        self.booking_prefix = booking_prefix
        self.customer_prefix = customer_prefix
        self.sequence_width = sequence_width
        self.max_attempts = max_attempts

    @classmethod
    def from_config(cls, store: RecordStore, config) -> "IdAllocator":
        return cls(
            store,
            booking_prefix=config.booking_prefix,
            customer_prefix=config.customer_prefix,
            sequence_width=config.sequence_width,
            max_attempts=config.max_id_attempts,
        )

    # --------------- candidates ---------------
    def _seq(self, n: int) -> str:
        return str(n).zfill(self.sequence_width)

    def booking_scope(self, reference_date: date) -> str:
        return f"{self.booking_prefix}-{reference_date.strftime(ID_DATE_FMT)}"

    def allocate_booking_id(self, reference_date: date, attempt: int = 0) -> str:
        """Candidate booking ID for `reference_date`; `attempt` skips ahead after collisions."""
        count = self.store.count_reservations(reference_date)
        return f"{self.booking_scope(reference_date)}-{self._seq(count + 1 + attempt)}"

    def allocate_customer_id(self, attempt: int = 0) -> str:
        count = self.store.count_customers()
        return f"{self.customer_prefix}-{self._seq(count + 1 + attempt)}"

    # --------------- claim (allocate + insert) ---------------
    def _claim(self, scope: str, count: Callable[[], int], insert: Callable[[str], T]) -> T:
        seq = count() + 1
        for attempt in range(1, self.max_attempts + 1):
            rid = f"{scope}-{self._seq(seq)}"
            try:
                return insert(rid)
            except DuplicateKeyError as e:
                if e.key != "id":
                    raise
                logger.info("ID %s already taken, retrying (%d/%d)", rid, attempt, self.max_attempts)
            # next sequence number, or further ahead if the scope grew meanwhile
            seq = max(seq + 1, count() + 1)
        logger.warning("ID allocation exhausted for %s after %d attempts", scope, self.max_attempts)
        raise IdAllocationExhausted(scope, self.max_attempts)

    def claim_booking_id(self, reference_date: date, insert: Callable[[str], T]) -> T:
        """
        Call `insert(candidate_id)` until the store accepts one.
        Returns whatever `insert` returns.
        """
        return self._claim(
            self.booking_scope(reference_date),
            lambda: self.store.count_reservations(reference_date),
            insert,
        )

    def claim_customer_id(self, insert: Callable[[str], T]) -> T:
        return self._claim(self.customer_prefix, self.store.count_customers, insert)
