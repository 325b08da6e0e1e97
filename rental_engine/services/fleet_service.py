from __future__ import annotations

import logging
from collections import Counter
from datetime import date
from typing import Optional

from rental_engine.models.interval import Interval
from rental_engine.models.operations import VehicleDraft, VehiclePatch
from rental_engine.models.records import Vehicle
from rental_engine.models.store import RecordStore
from rental_engine.services.common import _today, round2
from rental_engine.services.conflict_service import ConflictDetector
from rental_engine.utils.constants import ReservationStatus, VehicleStatus

logger = logging.getLogger(__name__)


class FleetService:
    """Vehicle catalogue: create, update, availability, cached statuses, dashboard."""

    def __init__(self, store: RecordStore, detector: ConflictDetector):
        self.store = store
        self.detector = detector

    @staticmethod
    def _check_status(status: Optional[str]):
        if status is not None and status not in VehicleStatus.ALL:
            raise ValueError(f"Invalid vehicle status: {status!r}")

    def create_vehicle(self, draft: VehicleDraft, client_ref: Optional[str] = None) -> Vehicle:
        make = (draft.make or "").strip()
        model = (draft.model or "").strip()
        if not make or not model:
            raise ValueError("Invalid vehicle data: make and model are required")
        self._check_status(draft.status)

        vid = self.store.insert_vehicle(Vehicle(
            vehicle_id=draft.vehicle_id or "",
            make=make,
            model=model,
            year=draft.year,
            fuel_type=draft.fuel_type or "",
            transmission=draft.transmission or "",
            plate_number=(draft.plate_number or "").strip().upper(),
            status=draft.status or VehicleStatus.AVAILABLE,
            photo_url=draft.photo_url,
            client_ref=client_ref,
        ))
        logger.info("Vehicle %s created (%s %s)", vid, make, model)
        return self.store.get_vehicle(vid)

    def update_vehicle(self, vehicle_id: str, patch: VehiclePatch) -> Vehicle:
        """Apply a partial update; RecordNotFound propagates from the store."""
        self._check_status(patch.status)
        changes = patch.changes()
        if "plate_number" in changes:
            changes["plate_number"] = changes["plate_number"].strip().upper()
        self.store.update_vehicle(vehicle_id, changes)
        return self.store.get_vehicle(vehicle_id)

    def available_vehicles(self, interval: Interval) -> list[Vehicle]:
        """
        Vehicles free for the whole interval. The interval check decides;
        the cached status only rules out vehicles under maintenance.
        """
        out = []
        for v in self.store.list_vehicles():
            if v.status == VehicleStatus.MAINTENANCE:
                continue
            if not self.detector.has_conflict(v.vehicle_id, interval):
                out.append(v)
        out.sort(key=lambda v: (v.make, v.model, v.vehicle_id))
        return out

    def refresh_vehicle_statuses(self, today: Optional[date] = None) -> dict[str, str]:
        """
        Rebuild cached vehicle statuses from reservations.
        Maintenance is left alone; Rented when an Active reservation covers
        today; otherwise Available. Returns the statuses that changed.
        """
        today = today or _today()
        rented = {
            r.vehicle_id for r in self.store.list_reservations()
            if r.status == ReservationStatus.ACTIVE and r.interval.contains(today)
        }
        changed = {}
        for v in self.store.list_vehicles():
            if v.status == VehicleStatus.MAINTENANCE:
                continue
            status = VehicleStatus.RENTED if v.vehicle_id in rented else VehicleStatus.AVAILABLE
            if status != v.status:
                self.store.update_vehicle(v.vehicle_id, {"status": status})
                changed[v.vehicle_id] = status
        if changed:
            logger.info("Refreshed %d vehicle status(es)", len(changed))
        return changed

    def dashboard_stats(self, today: Optional[date] = None) -> dict:
        today = today or _today()
        vehicles = self.store.list_vehicles()
        reservations = self.store.list_reservations()

        active = [r for r in reservations if r.status == ReservationStatus.ACTIVE]
        monthly = [
            r for r in reservations
            if r.booked_on and (r.booked_on.year, r.booked_on.month) == (today.year, today.month)
        ]
        per_vehicle = Counter(r.vehicle_id for r in reservations)
        labels = {v.vehicle_id: v.label for v in vehicles}

        return {
            "total_cars": len(vehicles),
            "total_customers": self.store.count_customers(),
            "active_bookings": len(active),
            "available_cars": sum(1 for v in vehicles if v.status == VehicleStatus.AVAILABLE),
            "monthly_bookings": len(monthly),
            "monthly_revenue": round2(sum(r.total_amount or 0 for r in monthly)),
            "most_booked": [
                {"vehicle_id": vid, "label": labels.get(vid, vid), "count": n}
                for vid, n in per_vehicle.most_common(5)
            ],
        }
