"""Wiring of the reservation engine around one record store."""

import logging
import threading
from typing import Iterable, Optional

from rental_engine.config import EngineConfig
from rental_engine.models.interval import Interval
from rental_engine.models.operations import (
    BookingDraft,
    BookingPatch,
    CustomerDraft,
    CustomerPatch,
    PendingOperation,
    ReconcileReport,
    VehicleDraft,
    VehiclePatch,
)
from rental_engine.models.records import Customer, Vehicle
from rental_engine.models.store import RecordStore, create_store
from rental_engine.services import (
    ConflictDetector,
    CustomerService,
    FleetService,
    IdAllocator,
    ReconciliationEngine,
    ReservationService,
)
from rental_engine.services.common import BookingResult

logger = logging.getLogger(__name__)


class ReservationEngine:
    """
    Facade callers use: reservation commands, availability checks and
    reconciliation of offline queues. Holds no state besides its collaborators.
    """

    def __init__(self, store: RecordStore, config: Optional[EngineConfig] = None):
        self.config = (config or EngineConfig()).validate()
        self.store = store
        self.allocator = IdAllocator.from_config(store, self.config)
        self.detector = ConflictDetector(store)
        self.reservations = ReservationService(store, self.detector, self.allocator)
        self.customers = CustomerService(store, self.allocator)
        self.fleet = FleetService(store, self.detector)
        self.reconciler = ReconciliationEngine(
            store, self.reservations, self.customers, self.fleet,
            workers=self.config.reconcile_workers,
        )

    @classmethod
    def from_config(cls, config: EngineConfig) -> "ReservationEngine":
        config.validate()
        logger.info("Starting reservation engine with %s store", config.store_backend)
        return cls(create_store(config), config)

    # --------------- reservations ---------------
    def check_availability(self, vehicle_id: str, interval: Interval) -> bool:
        return self.reservations.check_availability(vehicle_id, interval)

    def create_reservation(self, draft: BookingDraft, **kwargs) -> BookingResult:
        return self.reservations.create_reservation(draft, **kwargs)

    def update_reservation(self, reservation_id: str, patch: BookingPatch) -> BookingResult:
        return self.reservations.update_reservation(reservation_id, patch)

    def confirm_reservation(self, reservation_id: str) -> BookingResult:
        return self.reservations.confirm_reservation(reservation_id)

    def cancel_reservation(self, reservation_id: str) -> BookingResult:
        return self.reservations.cancel_reservation(reservation_id)

    def return_reservation(self, reservation_id: str, total_amount: Optional[float] = None) -> BookingResult:
        return self.reservations.return_reservation(reservation_id, total_amount)

    # --------------- offline queue ---------------
    def reconcile(
            self,
            operations: Iterable[PendingOperation],
            cancel_event: Optional[threading.Event] = None,
    ) -> ReconcileReport:
        return self.reconciler.reconcile(operations, cancel_event)

    # --------------- customers / fleet ---------------
    def create_customer(self, draft: CustomerDraft) -> Customer:
        return self.customers.create_customer(draft)

    def update_customer(self, customer_id: str, patch: CustomerPatch) -> Customer:
        return self.customers.update_customer(customer_id, patch)

    def create_vehicle(self, draft: VehicleDraft) -> Vehicle:
        return self.fleet.create_vehicle(draft)

    def update_vehicle(self, vehicle_id: str, patch: VehiclePatch) -> Vehicle:
        return self.fleet.update_vehicle(vehicle_id, patch)
