"""
Replay of offline-queued writes against the store.

Operations are applied in queue order, one outcome each:
  - Applied(record_id)        the write landed (or an earlier pass already landed it)
  - Skipped(reason, error)    refused on domain grounds, needs a human decision
  - Failed(error)             the store or the payload let us down; safe to resubmit

Booking operations run one after another on the calling thread, so a queued
booking always sees the ones applied before it. Car and customer operations
may go to a thread pool; a booking operation first waits for every earlier
operation to finish.
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Callable, Iterable, Optional

from rental_engine.exceptions import (
    DuplicateKeyError,
    IdAllocationExhausted,
    InvalidInterval,
    RecordNotFound,
    StoreError,
)
from rental_engine.models.operations import (
    Applied,
    CreateBooking,
    CreateCar,
    CreateCustomer,
    Failed,
    ItemOutcome,
    MalformedOperation,
    Outcome,
    PendingOperation,
    ReconcileReport,
    Skipped,
    UpdateBooking,
    UpdateCar,
    UpdateCustomer,
)
from rental_engine.models.store import RecordStore
from rental_engine.services.common import BookingResult
from rental_engine.services.customer_service import CustomerService
from rental_engine.services.fleet_service import FleetService
from rental_engine.services.reservation_service import ReservationService
from rental_engine.utils.constants import OperationKind, RecordKind

logger = logging.getLogger(__name__)

# failures that belong to one item and must not stop the pass
ITEM_FAILURES = (
    StoreError,
    TimeoutError,
    IdAllocationExhausted,
    InvalidInterval,
    MalformedOperation,
    ValueError,
)


class ReconciliationEngine:
    def __init__(
            self,
            store: RecordStore,
            reservations: ReservationService,
            customers: CustomerService,
            fleet: FleetService,
            workers: int = 1,
    ):
        self.store = store
        self.reservations = reservations
        self.customers = customers
        self.fleet = fleet
        self.workers = max(1, int(workers))
        self._handlers: dict[str, Callable[..., Outcome]] = {
            OperationKind.CREATE_CAR: self._create_car,
            OperationKind.UPDATE_CAR: self._update_car,
            OperationKind.CREATE_CUSTOMER: self._create_customer,
            OperationKind.UPDATE_CUSTOMER: self._update_customer,
            OperationKind.CREATE_BOOKING: self._create_booking,
            OperationKind.UPDATE_BOOKING: self._update_booking,
        }
        missing = set(OperationKind.ALL) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No reconcile handler for {', '.join(sorted(missing))}")

    # --------------- public ---------------
    def reconcile(
            self,
            operations: Iterable[PendingOperation],
            cancel_event: Optional[threading.Event] = None,
    ) -> ReconcileReport:
        """
        Apply `operations` in order and report one outcome per processed item.
        Setting `cancel_event` stops the pass before the next operation; the
        report then lists the untouched operations in `pending`.
        """
        ops = list(operations)
        report = ReconcileReport()
        slots: list = []
        in_flight: list[Future] = []
        pool = ThreadPoolExecutor(max_workers=self.workers) if self.workers > 1 else None

        logger.info("Reconciling %d queued operation(s)", len(ops))
        try:
            for idx, op in enumerate(ops):
                if cancel_event is not None and cancel_event.is_set():
                    report.cancelled = True
                    report.pending = ops[idx:]
                    logger.info("Reconciliation cancelled, %d operation(s) left queued", len(report.pending))
                    break

                if pool is not None and not op.affects_bookings:
                    fut = pool.submit(self._apply, op)
                    in_flight.append(fut)
                    slots.append(fut)
                    continue

                if in_flight:
                    # bookings may reference cars/customers queued before them
                    wait(in_flight)
                    in_flight = []
                slots.append(self._apply(op))
        finally:
            if pool is not None:
                pool.shutdown(wait=True)

        for op, slot in zip(ops, slots):
            outcome = slot.result() if isinstance(slot, Future) else slot
            report.items.append(ItemOutcome(op, outcome))

        logger.info(
            "Reconciliation finished: applied=%d skipped=%d failed=%d pending=%d",
            len(report.applied), len(report.skipped), len(report.failed), len(report.pending),
        )
        return report

    # --------------- dispatch ---------------
    def _apply(self, op: PendingOperation) -> Outcome:
        handler = self._handlers[op.kind]
        try:
            outcome = handler(op)
        except ITEM_FAILURES as e:
            logger.warning("Queued %s %s failed: %s", op.kind, op.op_id, e)
            return Failed(e)
        except Exception as e:
            # backend faults outside the store taxonomy (OSError from a dump, driver errors)
            logger.exception("Queued %s %s failed unexpectedly", op.kind, op.op_id)
            return Failed(e)
        if isinstance(outcome, Skipped):
            logger.info("Queued %s %s skipped: %s", op.kind, op.op_id, outcome.reason)
        return outcome

    def _create_once(self, kind: str, op: PendingOperation, create: Callable[[], Outcome]) -> Outcome:
        """Create unless an earlier pass already created the record for this op_id."""
        existing = self.store.find_by_client_ref(kind, op.op_id)
        if existing is not None:
            logger.debug("Queued %s %s already applied as %s", op.kind, op.op_id, existing)
            return Applied(existing, replayed=True)
        try:
            return create()
        except DuplicateKeyError as e:
            if e.key != "client_ref" or e.existing_id is None:
                raise
            return Applied(e.existing_id, replayed=True)

    @staticmethod
    def _booking_outcome(result: BookingResult) -> Outcome:
        ok, error, reservation = result
        if ok:
            return Applied(reservation.reservation_id)
        return Skipped(error.code, error)

    # --------------- handlers ---------------
    def _create_car(self, op: CreateCar) -> Outcome:
        return self._create_once(
            RecordKind.VEHICLE, op,
            lambda: Applied(self.fleet.create_vehicle(op.payload, client_ref=op.op_id).vehicle_id),
        )

    def _update_car(self, op: UpdateCar) -> Outcome:
        try:
            self.fleet.update_vehicle(op.vehicle_id, op.payload)
        except RecordNotFound as e:
            return Skipped(e.code, e)
        return Applied(op.vehicle_id)

    def _create_customer(self, op: CreateCustomer) -> Outcome:
        return self._create_once(
            RecordKind.CUSTOMER, op,
            lambda: Applied(self.customers.create_customer(op.payload, client_ref=op.op_id).customer_id),
        )

    def _update_customer(self, op: UpdateCustomer) -> Outcome:
        try:
            self.customers.update_customer(op.customer_id, op.payload)
        except RecordNotFound as e:
            return Skipped(e.code, e)
        return Applied(op.customer_id)

    def _create_booking(self, op: CreateBooking) -> Outcome:
        return self._create_once(
            RecordKind.RESERVATION, op,
            lambda: self._booking_outcome(self.reservations.create_reservation(
                op.payload, reference_date=op.reference_date, client_ref=op.op_id,
            )),
        )

    def _update_booking(self, op: UpdateBooking) -> Outcome:
        return self._booking_outcome(self.reservations.update_reservation(op.reservation_id, op.payload))
