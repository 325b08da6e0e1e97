"""
Record store capability and its backends.

The engine only talks to `RecordStore`; any backend that honours these
contracts with read-your-writes consistency can sit behind it. Two backends
ship here: a thread-safe in-memory store and a pickle-file store built on it.
"""

import logging
import os
import pickle
import threading
import uuid
from abc import ABC, abstractmethod
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Iterable, Optional

from rental_engine.exceptions import DuplicateKeyError, RecordNotFound
from rental_engine.models.records import (
    Customer,
    Reservation,
    Vehicle,
    customer_from_dict,
    reservation_from_dict,
    vehicle_from_dict,
)
from rental_engine.utils.constants import RecordKind

logger = logging.getLogger(__name__)

# ---- Paths ----
BASE_DIR = Path(__file__).resolve().parents[2]
DEFAULT_DATA_PATH = BASE_DIR / "data.pkl"


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _normalize(fields: dict) -> dict:
    """Dates are stored as ISO strings, like the rest of the record."""
    out = {}
    for k, v in fields.items():
        out[k] = v.isoformat() if isinstance(v, date) else v
    return out


class RecordStore(ABC):
    """Narrow store interface the reservation engine depends on."""

    # ---------- Reservations ----------
    @abstractmethod
    def query_reservations(self, vehicle_id: str, status_in: Iterable[str]) -> list[Reservation]:
        """All reservations of `vehicle_id` whose status is in `status_in`."""

    @abstractmethod
    def get_reservation(self, reservation_id: str) -> Optional[Reservation]:
        ...

    @abstractmethod
    def list_reservations(self) -> list[Reservation]:
        ...

    @abstractmethod
    def count_reservations(self, date_scope: date) -> int:
        """How many reservations carry an identifier allocated for `date_scope`."""

    @abstractmethod
    def insert_reservation(self, reservation: Reservation) -> str:
        """Insert and return the ID; raise DuplicateKeyError on an ID/client_ref clash."""

    @abstractmethod
    def update_reservation(self, reservation_id: str, fields: dict) -> None:
        """Apply a partial update; raise RecordNotFound when the ID is unknown."""

    # ---------- Customers ----------
    @abstractmethod
    def count_customers(self) -> int:
        ...

    @abstractmethod
    def get_customer(self, customer_id: str) -> Optional[Customer]:
        ...

    @abstractmethod
    def list_customers(self) -> list[Customer]:
        ...

    @abstractmethod
    def insert_customer(self, customer: Customer) -> str:
        ...

    @abstractmethod
    def update_customer(self, customer_id: str, fields: dict) -> None:
        ...

    # ---------- Vehicles ----------
    @abstractmethod
    def get_vehicle(self, vehicle_id: str) -> Optional[Vehicle]:
        ...

    @abstractmethod
    def list_vehicles(self) -> list[Vehicle]:
        ...

    @abstractmethod
    def insert_vehicle(self, vehicle: Vehicle) -> str:
        """Insert a vehicle; a blank vehicle_id gets a store-assigned uuid."""

    @abstractmethod
    def update_vehicle(self, vehicle_id: str, fields: dict) -> None:
        ...

    # ---------- Replay detection ----------
    @abstractmethod
    def find_by_client_ref(self, kind: str, client_ref: str) -> Optional[str]:
        """ID of the record created by the client operation `client_ref`, if any."""


class InMemoryStore(RecordStore):
    """Dict-backed store; every access holds one re-entrant lock."""

    def __init__(self):
        self.vehicles: dict[str, dict] = {}
        self.customers: dict[str, dict] = {}
        self.reservations: dict[str, dict] = {}
        self._rw = threading.RLock()

    def _table(self, kind: str) -> dict[str, dict]:
        return {
            RecordKind.VEHICLE: self.vehicles,
            RecordKind.CUSTOMER: self.customers,
            RecordKind.RESERVATION: self.reservations,
        }[kind]

    def _persist(self):
        """Hook for durable subclasses; memory needs nothing."""

    # ---------- generic helpers ----------
    def _insert(self, kind: str, record_id: str, data: dict) -> str:
        with self._rw:
            table = self._table(kind)
            if record_id in table:
                raise DuplicateKeyError("id", record_id, existing_id=record_id)
            ref = data.get("client_ref")
            if ref:
                existing = self.find_by_client_ref(kind, ref)
                if existing is not None:
                    raise DuplicateKeyError("client_ref", ref, existing_id=existing)
            now = _utcnow()
            data = _normalize(data)
            data["created_at"] = data.get("created_at") or now
            data["updated_at"] = now
            table[record_id] = data
            try:
                self._persist()
            except Exception:
                del table[record_id]
                raise
            logger.debug("Inserted %s %s", kind, record_id)
            return record_id

    def _update(self, kind: str, record_id: str, fields: dict) -> None:
        with self._rw:
            table = self._table(kind)
            if record_id not in table:
                raise RecordNotFound(kind, record_id)
            # the primary key and creation stamp are not patchable
            fields = {k: v for k, v in _normalize(fields).items()
                      if k not in (f"{kind}_id", "created_at")}
            before = table[record_id]
            table[record_id] = {**before, **fields, "updated_at": _utcnow()}
            try:
                self._persist()
            except Exception:
                table[record_id] = before
                raise

    def find_by_client_ref(self, kind: str, client_ref: str) -> Optional[str]:
        with self._rw:
            for rid, d in self._table(kind).items():
                if d.get("client_ref") == client_ref:
                    return rid
            return None

    # ---------- Reservations ----------
    def query_reservations(self, vehicle_id: str, status_in: Iterable[str]) -> list[Reservation]:
        wanted = set(status_in)
        with self._rw:
            rows = [dict(d) for d in self.reservations.values()
                    if str(d.get("vehicle_id")) == str(vehicle_id) and d.get("status") in wanted]
        return [reservation_from_dict(d) for d in rows]

    def get_reservation(self, reservation_id: str) -> Optional[Reservation]:
        with self._rw:
            d = self.reservations.get(reservation_id)
            return reservation_from_dict(dict(d)) if d else None

    def list_reservations(self) -> list[Reservation]:
        with self._rw:
            rows = [dict(d) for d in self.reservations.values()]
        return [reservation_from_dict(d) for d in rows]

    def count_reservations(self, date_scope: date) -> int:
        scope = date_scope.isoformat()
        with self._rw:
            return sum(1 for d in self.reservations.values() if d.get("booked_on") == scope)

    def insert_reservation(self, reservation: Reservation) -> str:
        return self._insert(RecordKind.RESERVATION, reservation.reservation_id, reservation.to_dict())

    def update_reservation(self, reservation_id: str, fields: dict) -> None:
        self._update(RecordKind.RESERVATION, reservation_id, fields)

    # ---------- Customers ----------
    def count_customers(self) -> int:
        with self._rw:
            return len(self.customers)

    def get_customer(self, customer_id: str) -> Optional[Customer]:
        with self._rw:
            d = self.customers.get(customer_id)
            return customer_from_dict(dict(d)) if d else None

    def list_customers(self) -> list[Customer]:
        with self._rw:
            rows = [dict(d) for d in self.customers.values()]
        return [customer_from_dict(d) for d in rows]

    def insert_customer(self, customer: Customer) -> str:
        return self._insert(RecordKind.CUSTOMER, customer.customer_id, customer.to_dict())

    def update_customer(self, customer_id: str, fields: dict) -> None:
        self._update(RecordKind.CUSTOMER, customer_id, fields)

    # ---------- Vehicles ----------
    def get_vehicle(self, vehicle_id: str) -> Optional[Vehicle]:
        with self._rw:
            d = self.vehicles.get(str(vehicle_id))
            return vehicle_from_dict(dict(d)) if d else None

    def list_vehicles(self) -> list[Vehicle]:
        with self._rw:
            rows = [dict(d) for d in self.vehicles.values()]
        return [vehicle_from_dict(d) for d in rows]

    def insert_vehicle(self, vehicle: Vehicle) -> str:
        data = vehicle.to_dict()
        vid = str(vehicle.vehicle_id or uuid.uuid4())
        data["vehicle_id"] = vid
        return self._insert(RecordKind.VEHICLE, vid, data)

    def update_vehicle(self, vehicle_id: str, fields: dict) -> None:
        self._update(RecordKind.VEHICLE, str(vehicle_id), fields)


class PickleStore(InMemoryStore):
    """In-memory store mirrored to a pickle file after every mutation."""

    def __init__(self, path: str | os.PathLike | None = None):
        super().__init__()
        self.path = str(path or DEFAULT_DATA_PATH)
        logger.info("[Store] Using file: %s", self.path)
        self._load()

    # ---------- Persistence ----------
    def _load(self):
        """Load data from the pickle file, or start empty if unavailable or invalid."""
        if not os.path.exists(self.path):
            return
        try:
            with open(self.path, "rb") as f:
                data = pickle.load(f)
        except (OSError, pickle.UnpicklingError, EOFError) as e:
            logger.warning("[Store] Load failed (%s); starting empty.", e)
            return

        if isinstance(data, dict):
            self.vehicles = data.get("vehicles", {}) or {}
            self.customers = data.get("customers", {}) or {}
            self.reservations = data.get("reservations", {}) or {}
            logger.info("[Store] Loaded: vehicles=%d, customers=%d, reservations=%d",
                        len(self.vehicles), len(self.customers), len(self.reservations))
        else:
            # Incompatible data format: back up the old file and start empty
            bak = self.path + ".bak"
            os.replace(self.path, bak)
            logger.warning("[Store] Incompatible store (%s); backed up to %s. Starting empty.",
                           type(data).__name__, bak)

    def _dump(self):
        """Write the in-memory data to the pickle file safely (atomic replace)."""
        os.makedirs(os.path.dirname(os.path.abspath(self.path)), exist_ok=True)
        tmp = self.path + ".tmp"
        payload = {
            "vehicles": self.vehicles,
            "customers": self.customers,
            "reservations": self.reservations,
        }
        with open(tmp, "wb") as f:
            pickle.dump(payload, f, protocol=pickle.HIGHEST_PROTOCOL)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, self.path)

    def _persist(self):
        self._dump()

    def save(self):
        """Thread-safe save method."""
        with self._rw:
            logger.info("[Store] Saving to %s ...", self.path)
            self._dump()


def create_store(config) -> RecordStore:
    """Pick the store backend named by `config.store_backend`."""
    backend = (config.store_backend or "").strip().lower()
    if backend == "memory":
        return InMemoryStore()
    if backend == "pickle":
        return PickleStore(config.store_path or DEFAULT_DATA_PATH)
    raise ValueError(f"Unsupported store backend: {config.store_backend!r}")
