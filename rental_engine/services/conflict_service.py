"""Vehicle double-booking detection."""

import logging
from typing import Optional

from rental_engine.models.interval import Interval, overlaps
from rental_engine.models.records import Reservation
from rental_engine.models.store import RecordStore
from rental_engine.utils.constants import ReservationStatus

logger = logging.getLogger(__name__)


class ConflictDetector:
    """
    Decides whether a vehicle is free for an interval. Only Active and
    Pending reservations hold a vehicle; the vehicle's cached status is
    never consulted. A failed read propagates: "could not check" must not
    turn into "no conflict".
    """

    def __init__(self, store: RecordStore):
        self.store = store

    def find_conflicts(
            self,
            vehicle_id: str,
            interval: Interval,
            exclude_reservation_id: Optional[str] = None,
    ) -> list[Reservation]:
        """Occupying reservations of `vehicle_id` that overlap `interval`, by start date."""
        if not isinstance(interval, Interval):
            interval = Interval.parse(*interval)
        overlaps(interval, interval)  # reject a malformed interval before touching the store

        found = self.store.query_reservations(str(vehicle_id), ReservationStatus.OCCUPYING)
        hits = [
            r for r in found
            if r.reservation_id != exclude_reservation_id and overlaps(interval, r.interval)
        ]
        hits.sort(key=lambda r: (r.start_date, r.reservation_id))
        if hits:
            logger.info(
                "Vehicle %s is booked during %s..%s by %s",
                vehicle_id, interval.start, interval.end, ", ".join(r.reservation_id for r in hits),
            )
        return hits

    def has_conflict(
            self,
            vehicle_id: str,
            interval: Interval,
            exclude_reservation_id: Optional[str] = None,
    ) -> bool:
        return bool(self.find_conflicts(vehicle_id, interval, exclude_reservation_id))

    def occupied_intervals(self, vehicle_id: str) -> list[Interval]:
        """
        Sorted intervals currently holding the vehicle.
        Used by callers to grey out booked dates.
        """
        found = self.store.query_reservations(str(vehicle_id), ReservationStatus.OCCUPYING)
        return sorted((r.interval for r in found), key=lambda iv: (iv.start, iv.end))
