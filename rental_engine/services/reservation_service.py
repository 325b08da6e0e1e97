"""Reservation lifecycle: create, edit, confirm, return, cancel."""

import logging
import threading
from datetime import date
from typing import Optional

from rental_engine.exceptions import BookingConflict, InvalidTransition, RecordNotFound
from rental_engine.models.interval import Interval
from rental_engine.models.operations import BookingDraft, BookingPatch
from rental_engine.models.records import Reservation
from rental_engine.models.store import RecordStore
from rental_engine.services.common import BookingResult, _today
from rental_engine.services.conflict_service import ConflictDetector
from rental_engine.services.id_allocator import IdAllocator
from rental_engine.utils.constants import RecordKind, ReservationStatus as RS

logger = logging.getLogger(__name__)

# Returned and Cancelled are terminal: nothing leaves them.
TRANSITIONS = {
    RS.PENDING: {RS.PENDING, RS.ACTIVE, RS.RETURNED, RS.CANCELLED},
    RS.ACTIVE: {RS.ACTIVE, RS.RETURNED, RS.CANCELLED},
    RS.RETURNED: set(),
    RS.CANCELLED: set(),
}


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, set())


class ReservationService:
    """
    Booking state machine on top of the store.

    Every command returns a BookingResult:
      (ok, error, reservation)
    where `error` is a BookingConflict / RecordNotFound / InvalidTransition
    when the command was refused. Malformed dates raise InvalidInterval and
    store failures propagate unchanged.
    """

    def __init__(self, store: RecordStore, detector: ConflictDetector, allocator: IdAllocator):
        self.store = store
        self.detector = detector
        self.allocator = allocator
        # check-then-write on the schedule is serialized per service instance
        self._schedule_lock = threading.RLock()

    # --------------- Queries ---------------
    def get_reservation(self, reservation_id: str) -> Optional[Reservation]:
        return self.store.get_reservation(reservation_id)

    def check_availability(self, vehicle_id: str, interval: Interval) -> bool:
        """True when no Active/Pending reservation of the vehicle overlaps `interval`."""
        return not self.detector.has_conflict(vehicle_id, interval)

    def availability_calendar(self, vehicle_id: str) -> list[Interval]:
        return self.detector.occupied_intervals(vehicle_id)

    # --------------- Commands ---------------
    def create_reservation(
            self,
            draft: BookingDraft,
            reference_date: Optional[date] = None,
            client_ref: Optional[str] = None,
    ) -> BookingResult:
        """
        Create a reservation if the vehicle is free for the whole interval.
        The initial status is the caller's choice between Pending and Active.
        """
        interval = Interval.parse(draft.start_date, draft.end_date)
        status = draft.status or RS.PENDING
        if status not in RS.OCCUPYING:
            return BookingResult.refused(InvalidTransition("(new)", status))

        vehicle_id = str(draft.vehicle_id)
        if self.store.get_vehicle(vehicle_id) is None:
            return BookingResult.refused(RecordNotFound(RecordKind.VEHICLE, vehicle_id))

        ref = reference_date or _today()
        with self._schedule_lock:
            conflicts = self.detector.find_conflicts(vehicle_id, interval)
            if conflicts:
                return BookingResult.refused(
                    BookingConflict(vehicle_id, [r.reservation_id for r in conflicts])
                )

            def _insert(rid: str) -> str:
                return self.store.insert_reservation(Reservation(
                    reservation_id=rid,
                    vehicle_id=vehicle_id,
                    customer_id=str(draft.customer_id),
                    start_date=interval.start,
                    end_date=interval.end,
                    status=status,
                    advance_amount=float(draft.advance_amount or 0.0),
                    total_amount=draft.total_amount,
                    payment_mode=draft.payment_mode or "",
                    notes=draft.notes or "",
                    booked_on=ref,
                    client_ref=client_ref,
                ))

            rid = self.allocator.claim_booking_id(ref, _insert)

        logger.info("Reservation %s created for vehicle %s (%s..%s, %s)",
                    rid, vehicle_id, interval.start, interval.end, status)
        return BookingResult.success(self.store.get_reservation(rid))

    def update_reservation(self, reservation_id: str, patch: BookingPatch) -> BookingResult:
        """
        Edit a live reservation. Moving it (new vehicle or dates) re-runs the
        conflict check against everything but itself; a refused edit writes
        nothing, so the reservation keeps its previous schedule.
        A status in the patch goes through the same transition rules as the
        dedicated commands.
        """
        with self._schedule_lock:
            current = self.store.get_reservation(reservation_id)
            if current is None:
                return BookingResult.refused(RecordNotFound(RecordKind.RESERVATION, reservation_id))

            changes = patch.changes()
            if all(getattr(current, k, None) == v for k, v in changes.items()):
                # nothing to change, e.g. the same queued edit replayed
                return BookingResult.success(current)
            target = changes.pop("status", current.status)
            if current.status in RS.TERMINAL or not can_transition(current.status, target):
                return BookingResult.refused(InvalidTransition(current.status, target), current)

            if patch.touches_schedule:
                vehicle_id = str(changes.get("vehicle_id", current.vehicle_id))
                interval = Interval.parse(
                    changes.get("start_date", current.start_date),
                    changes.get("end_date", current.end_date),
                )
                changes["vehicle_id"] = vehicle_id
                changes["start_date"] = interval.start
                changes["end_date"] = interval.end
                changes["duration"] = interval.days

                moved = vehicle_id != current.vehicle_id or interval != current.interval
                if vehicle_id != current.vehicle_id and self.store.get_vehicle(vehicle_id) is None:
                    return BookingResult.refused(RecordNotFound(RecordKind.VEHICLE, vehicle_id), current)
                if moved and target in RS.OCCUPYING:
                    conflicts = self.detector.find_conflicts(vehicle_id, interval, reservation_id)
                    if conflicts:
                        return BookingResult.refused(
                            BookingConflict(vehicle_id, [r.reservation_id for r in conflicts]), current
                        )

            if target != current.status:
                changes["status"] = target
            if changes:
                self.store.update_reservation(reservation_id, changes)
            updated = self.store.get_reservation(reservation_id)

        logger.info("Reservation %s updated: %s", reservation_id, ", ".join(sorted(changes)) or "no changes")
        return BookingResult.success(updated)

    def _transition(self, reservation_id: str, target: str, extra: Optional[dict] = None) -> BookingResult:
        with self._schedule_lock:
            current = self.store.get_reservation(reservation_id)
            if current is None:
                return BookingResult.refused(RecordNotFound(RecordKind.RESERVATION, reservation_id))
            if not can_transition(current.status, target):
                return BookingResult.refused(InvalidTransition(current.status, target), current)

            fields = dict(extra or {})
            if target != current.status:
                fields["status"] = target
            if fields:
                self.store.update_reservation(reservation_id, fields)
            updated = self.store.get_reservation(reservation_id)

        logger.info("Reservation %s: %s -> %s", reservation_id, current.status, target)
        return BookingResult.success(updated)

    def confirm_reservation(self, reservation_id: str) -> BookingResult:
        """Pending/Active -> Active. The interval is unchanged, so no conflict re-check."""
        return self._transition(reservation_id, RS.ACTIVE)

    def return_reservation(self, reservation_id: str, total_amount: Optional[float] = None) -> BookingResult:
        """
        Close the rental and release the vehicle.
        `total_amount` finalizes the charge when given.
        """
        extra = {"total_amount": float(total_amount)} if total_amount is not None else None
        return self._transition(reservation_id, RS.RETURNED, extra)

    def cancel_reservation(self, reservation_id: str) -> BookingResult:
        return self._transition(reservation_id, RS.CANCELLED)
