"""
Offline queue replay: queue order, one outcome per item, failures isolated
to their item, and a second pass over the same queue changes nothing.
"""

import copy
import threading
from datetime import date, datetime, timezone

import pytest

from conftest import book, seed_vehicle
from rental_engine.config import EngineConfig
from rental_engine.engine import ReservationEngine
from rental_engine.exceptions import InvalidInterval, StoreUnavailable
from rental_engine.models.operations import (
    Applied,
    BookingDraft,
    BookingPatch,
    CreateBooking,
    CreateCar,
    CreateCustomer,
    CustomerDraft,
    CustomerPatch,
    Failed,
    MalformedOperation,
    Skipped,
    UpdateBooking,
    UpdateCar,
    UpdateCustomer,
    VehicleDraft,
    VehiclePatch,
    operation_from_dict,
)
from rental_engine.models.records import Vehicle
from rental_engine.models.store import InMemoryStore
from rental_engine.utils.constants import OperationKind

QUEUED = datetime(2024, 6, 1, 8, 30, tzinfo=timezone.utc)


def create_booking(op_id, vid, start, end, customer="VATS-CUST-001", status="Active"):
    return CreateBooking(
        op_id=op_id,
        queued_at=QUEUED,
        payload=BookingDraft(
            vehicle_id=vid, customer_id=customer,
            start_date=date.fromisoformat(start), end_date=date.fromisoformat(end),
            status=status,
        ),
    )


def test_overlapping_queued_bookings_first_wins(engine):
    vid = seed_vehicle(engine)
    ops = [
        create_booking("op-1", vid, "2024-06-10", "2024-06-15"),
        create_booking("op-2", vid, "2024-06-12", "2024-06-18"),
        create_booking("op-3", vid, "2024-06-14", "2024-06-16"),
    ]
    report = engine.reconcile(ops)

    outcomes = [i.outcome for i in report.items]
    assert isinstance(outcomes[0], Applied)
    assert outcomes[0].record_id == "VAT-20240601-001"
    assert [o.reason for o in outcomes[1:]] == ["BookingConflict", "BookingConflict"]
    assert len(engine.store.reservations) == 1
    assert [i.operation.op_id for i in report.items] == ["op-1", "op-2", "op-3"]


def test_reconcile_twice_is_a_noop(engine):
    vid = seed_vehicle(engine)
    ops = [
        CreateCustomer(op_id="c-1", payload=CustomerDraft(name="Ravi", phone="98450")),
        create_booking("b-1", vid, "2024-06-10", "2024-06-15"),
        create_booking("b-2", vid, "2024-06-15", "2024-06-16"),  # conflicts with b-1
        UpdateCar(op_id="u-1", vehicle_id=vid, payload=VehiclePatch(photo_url="/img/swift.jpg")),
    ]
    first = engine.reconcile(ops)
    assert not first.failed
    snapshot = copy.deepcopy((engine.store.customers, engine.store.reservations))

    second = engine.reconcile(ops)
    assert not second.failed
    assert (engine.store.customers, engine.store.reservations) == snapshot
    for a, b in zip(first.items, second.items):
        assert type(a.outcome) is type(b.outcome)
        if isinstance(a.outcome, Applied):
            assert a.outcome.record_id == b.outcome.record_id
    assert second.outcome_for("c-1").replayed
    assert second.outcome_for("b-1").replayed


def test_update_of_missing_record_is_skipped(engine):
    ops = [
        UpdateCar(op_id="1", vehicle_id="gone", payload=VehiclePatch(status="Under Maintenance")),
        UpdateCustomer(op_id="2", customer_id="VATS-CUST-404", payload=CustomerPatch(phone="1")),
        UpdateBooking(op_id="3", reservation_id="VAT-20240101-001", payload=BookingPatch(notes="x")),
    ]
    report = engine.reconcile(ops)
    assert [i.outcome.reason for i in report.items] == ["RecordNotFound"] * 3


def test_update_booking_through_lifecycle(engine):
    vid = seed_vehicle(engine)
    _, _, a = book(engine, vid, "2024-06-01", "2024-06-05")
    _, _, b = book(engine, vid, "2024-06-10", "2024-06-12")
    report = engine.reconcile([
        UpdateBooking(op_id="1", reservation_id=b.reservation_id,
                      payload=BookingPatch(start_date=date(2024, 6, 4))),
        UpdateBooking(op_id="2", reservation_id=a.reservation_id,
                      payload=BookingPatch(status="Returned")),
        UpdateBooking(op_id="3", reservation_id=a.reservation_id,
                      payload=BookingPatch(notes="after return")),
    ])
    assert report.outcome_for("1").reason == "BookingConflict"
    assert isinstance(report.outcome_for("2"), Applied)
    assert report.outcome_for("3").reason == "InvalidTransition"
    assert engine.store.get_reservation(b.reservation_id).start_date == date(2024, 6, 10)


def test_offline_car_customer_and_booking_chain(engine):
    """Records created offline can be referenced by later queued bookings."""
    ops = [
        CreateCar(op_id="car", payload=VehicleDraft(make="Tata", model="Nexon", vehicle_id="car-nexon")),
        CreateCustomer(op_id="cust", payload=CustomerDraft(name="Meera")),
        create_booking("bk", "car-nexon", "2024-06-03", "2024-06-04"),
    ]
    report = engine.reconcile(ops)
    assert [i.outcome.status for i in report.items] == ["Applied"] * 3
    assert report.outcome_for("cust").record_id == "VATS-CUST-001"
    assert engine.store.get_reservation("VAT-20240601-001").vehicle_id == "car-nexon"


class FlakyStore(InMemoryStore):
    """Fails vehicle updates and times out on one customer insert."""

    def update_vehicle(self, vehicle_id, fields):
        raise StoreUnavailable("Error: 502 from upstream")

    def insert_customer(self, customer):
        if customer.name == "Slow":
            raise TimeoutError("store call timed out")
        return super().insert_customer(customer)


def test_store_errors_are_isolated():
    engine = ReservationEngine(FlakyStore(), EngineConfig())
    engine.store.insert_vehicle(Vehicle("car-1"))
    ops = [
        UpdateCar(op_id="1", vehicle_id="car-1", payload=VehiclePatch(make="X")),
        CreateCustomer(op_id="2", payload=CustomerDraft(name="Slow")),
        CreateCustomer(op_id="3", payload=CustomerDraft(name="Fast")),
        create_booking("4", "car-1", "2024-06-01", "2024-06-02"),
    ]
    report = engine.reconcile(ops)
    assert isinstance(report.outcome_for("1"), Failed)
    assert isinstance(report.outcome_for("1").error, StoreUnavailable)
    assert isinstance(report.outcome_for("2").error, TimeoutError)
    assert isinstance(report.outcome_for("3"), Applied)
    assert isinstance(report.outcome_for("4"), Applied)
    assert report.to_dict()["summary"] == {"applied": 2, "skipped": 0, "failed": 2, "pending": 0}


class DiskFullStore(InMemoryStore):
    """Customer inserts for "Asha" hit a full disk."""

    def insert_customer(self, customer):
        if customer.name == "Asha":
            raise OSError(28, "No space left on device")
        return super().insert_customer(customer)


@pytest.mark.parametrize("workers", [1, 3])
def test_backend_fault_fails_only_its_item(workers):
    engine = ReservationEngine(DiskFullStore(), EngineConfig(reconcile_workers=workers))
    ops = [
        CreateCustomer(op_id="c1", payload=CustomerDraft(name="Asha")),
        CreateCustomer(op_id="c2", payload=CustomerDraft(name="Vikram")),
    ]
    report = engine.reconcile(ops)
    assert isinstance(report.outcome_for("c1"), Failed)
    assert isinstance(report.outcome_for("c1").error, OSError)
    assert isinstance(report.outcome_for("c2"), Applied)
    assert report.to_dict()["items"][0]["error"] == "OSError"


def test_bad_payload_fails_only_its_item(engine):
    vid = seed_vehicle(engine)
    bad = create_booking("bad", vid, "2024-06-10", "2024-06-12")
    bad.payload.end_date = date(2024, 6, 1)
    report = engine.reconcile([bad, create_booking("good", vid, "2024-06-10", "2024-06-12")])
    assert isinstance(report.outcome_for("bad").error, InvalidInterval)
    assert isinstance(report.outcome_for("good"), Applied)


def test_cancel_between_operations(engine):
    vid = seed_vehicle(engine)
    cancel = threading.Event()

    ops = [create_booking(f"op-{i}", vid, f"2024-06-{10 + 2 * i:02d}", f"2024-06-{10 + 2 * i:02d}")
           for i in range(4)]

    original = engine.reconciler._apply

    def apply_then_cancel(op):
        outcome = original(op)
        if op.op_id == "op-1":
            cancel.set()
        return outcome

    engine.reconciler._apply = apply_then_cancel
    report = engine.reconcile(ops, cancel_event=cancel)

    assert report.cancelled
    assert [i.operation.op_id for i in report.items] == ["op-0", "op-1"]
    assert [op.op_id for op in report.pending] == ["op-2", "op-3"]
    assert len(engine.store.reservations) == 2


def test_worker_pool_keeps_queue_order(store):
    engine = ReservationEngine(store, EngineConfig(reconcile_workers=4))
    ops = [CreateCar(op_id=f"car-{i}", payload=VehicleDraft(make="Honda", model="City", vehicle_id=f"v{i}"))
           for i in range(6)]
    ops += [CreateCustomer(op_id=f"cust-{i}", payload=CustomerDraft(name=f"C{i}")) for i in range(6)]
    ops.append(create_booking("bk", "v5", "2024-06-01", "2024-06-03"))

    report = engine.reconcile(ops)
    assert [i.operation.op_id for i in report.items] == [op.op_id for op in ops]
    assert all(isinstance(i.outcome, Applied) for i in report.items)
    customer_ids = {report.outcome_for(f"cust-{i}").record_id for i in range(6)}
    assert len(customer_ids) == 6


def test_operation_from_dict():
    op = operation_from_dict({
        "kind": "CreateBooking",
        "op_id": "abc",
        "queued_at": "2024-06-01T10:00:00Z",
        "payload": {"vehicle_id": "car-1", "customer_id": "VATS-CUST-001",
                    "start_date": "2024-06-10", "end_date": "2024-06-12",
                    "advance_amount": "500"},
    })
    assert isinstance(op, CreateBooking)
    assert op.reference_date == date(2024, 6, 1)
    assert op.payload.start_date == date(2024, 6, 10)
    assert op.payload.advance_amount == 500.0

    upd = operation_from_dict({"kind": "UpdateCustomer", "op_id": "u", "record_id": "VATS-CUST-002",
                               "payload": {"phone": "123"}})
    assert isinstance(upd, UpdateCustomer)
    assert upd.record_id == "VATS-CUST-002"
    assert upd.payload.changes() == {"phone": "123"}


@pytest.mark.parametrize("raw", [
    {"kind": "DeleteCar", "op_id": "x"},
    {"kind": "CreateCar", "payload": {"make": "A", "model": "B"}},
    {"kind": "UpdateCar", "op_id": "x", "payload": {"make": "A"}},
    {"kind": "CreateCar", "op_id": "x", "payload": {"make": "A"}},
    {"kind": "CreateCar", "op_id": "x", "payload": {"make": "A", "model": "B", "colour": "red"}},
    {"kind": "CreateBooking", "op_id": "x", "payload": {"vehicle_id": "v", "customer_id": "c",
                                                        "start_date": "2024-06-01", "end_date": "2024-06-02",
                                                        "advance_amount": "lots"}},
])
def test_malformed_operations(raw):
    with pytest.raises(MalformedOperation):
        operation_from_dict(raw)


def test_every_operation_kind_needs_a_handler(store, monkeypatch):
    monkeypatch.setattr(OperationKind, "ALL", OperationKind.ALL + ("DeleteCar",))
    with pytest.raises(RuntimeError, match="DeleteCar"):
        ReservationEngine(store, EngineConfig())
