"""
Identifier allocation: count + 1, zero padded, with a bounded retry on
duplicate-key rejections so concurrent creators never share an ID.
"""

import threading
from datetime import date

import pytest

from rental_engine.exceptions import DuplicateKeyError, IdAllocationExhausted
from rental_engine.models.records import Customer, Reservation
from rental_engine.models.store import InMemoryStore
from rental_engine.services.id_allocator import IdAllocator

DAY = date(2024, 6, 10)


def insert_booking(store, rid, day=DAY):
    return store.insert_reservation(Reservation(
        reservation_id=rid, vehicle_id="car-1", customer_id="c1",
        start_date=day, end_date=day, booked_on=day,
    ))


def test_booking_id_encodes_date_and_sequence(store):
    alloc = IdAllocator(store)
    assert alloc.allocate_booking_id(DAY) == "VAT-20240610-001"
    insert_booking(store, "VAT-20240610-001")
    assert alloc.allocate_booking_id(DAY) == "VAT-20240610-002"
    # another day has its own sequence
    assert alloc.allocate_booking_id(date(2024, 6, 11)) == "VAT-20240611-001"


def test_customer_id_sequence(store):
    alloc = IdAllocator(store, customer_prefix="VATS-CUST", sequence_width=3)
    assert alloc.allocate_customer_id() == "VATS-CUST-001"
    store.insert_customer(Customer(customer_id="VATS-CUST-001", name="Asha"))
    assert alloc.allocate_customer_id() == "VATS-CUST-002"


def test_claim_skips_taken_number(store):
    """A record created behind our back holds count + 1; the claim moves on."""
    alloc = IdAllocator(store)
    insert_booking(store, "VAT-20240610-001", day=date(2024, 6, 9))  # counted for another day
    rid = alloc.claim_booking_id(DAY, lambda rid: insert_booking(store, rid))
    assert rid == "VAT-20240610-002"


def test_claim_gives_up_after_ceiling(store):
    alloc = IdAllocator(store, max_attempts=3)
    calls = []

    def always_taken(rid):
        calls.append(rid)
        raise DuplicateKeyError("id", rid, existing_id=rid)

    with pytest.raises(IdAllocationExhausted) as ei:
        alloc.claim_booking_id(DAY, always_taken)
    assert calls == ["VAT-20240610-001", "VAT-20240610-002", "VAT-20240610-003"]
    assert ei.value.attempts == 3


def test_other_duplicate_keys_are_not_retried(store):
    alloc = IdAllocator(store)

    def replayed(rid):
        raise DuplicateKeyError("client_ref", "op-1", existing_id="VAT-20240610-001")

    with pytest.raises(DuplicateKeyError):
        alloc.claim_booking_id(DAY, replayed)


class RacingStore(InMemoryStore):
    """The first count of each thread waits for the others, so they all read the same value."""

    def __init__(self, parties):
        super().__init__()
        self.barrier = threading.Barrier(parties, timeout=5)
        self.local = threading.local()

    def count_reservations(self, date_scope):
        n = super().count_reservations(date_scope)
        if not getattr(self.local, "waited", False):
            self.local.waited = True
            self.barrier.wait()
        return n


def test_concurrent_claims_yield_distinct_ids():
    n = 8
    store = RacingStore(n)
    alloc = IdAllocator(store, max_attempts=n + 2)
    results, errors = [], []

    def worker():
        try:
            results.append(alloc.claim_booking_id(DAY, lambda rid: insert_booking(store, rid)))
        except Exception as e:  # collected for the assertion below
            errors.append(e)

    threads = [threading.Thread(target=worker) for _ in range(n)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert not errors
    assert len(results) == n
    assert len(set(results)) == n
    assert sorted(results) == [f"VAT-20240610-{i:03d}" for i in range(1, n + 1)]
    assert len(store.reservations) == n
