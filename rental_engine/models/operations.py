"""
Offline queue entries and reconciliation outcomes.

Each queued mutation is its own dataclass with a typed payload, tagged by a
`kind` class attribute so the reconciler can dispatch on it without looking
inside payloads. `operation_from_dict` decodes the JSON form a client sends:

    {"kind": "CreateBooking", "op_id": "...", "queued_at": "...",
     "record_id": null, "payload": {...}}
"""

from dataclasses import dataclass, field, fields as dc_fields
from datetime import date, datetime, timezone
from typing import ClassVar, Optional, Union

from rental_engine.exceptions import EngineError
from rental_engine.models.interval import as_date
from rental_engine.utils.constants import OperationKind, ReservationStatus, VehicleStatus


# ------------------------- payloads -------------------------
class _Patch:
    """Partial update: only fields that were set (not None) are applied."""

    def changes(self) -> dict:
        return {f.name: getattr(self, f.name) for f in dc_fields(self)
                if getattr(self, f.name) is not None}


@dataclass
class VehicleDraft:
    make: str
    model: str
    year: Optional[int] = None
    fuel_type: str = ""
    transmission: str = ""
    plate_number: str = ""
    status: str = VehicleStatus.AVAILABLE
    photo_url: Optional[str] = None
    vehicle_id: Optional[str] = None  # offline clients may pick the ID up front


@dataclass
class VehiclePatch(_Patch):
    make: Optional[str] = None
    model: Optional[str] = None
    year: Optional[int] = None
    fuel_type: Optional[str] = None
    transmission: Optional[str] = None
    plate_number: Optional[str] = None
    status: Optional[str] = None
    photo_url: Optional[str] = None


@dataclass
class CustomerDraft:
    name: str
    phone: str = ""
    address: str = ""
    aadhar_url: Optional[str] = None
    dl_url: Optional[str] = None
    photo_url: Optional[str] = None


@dataclass
class CustomerPatch(_Patch):
    name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    aadhar_url: Optional[str] = None
    dl_url: Optional[str] = None
    photo_url: Optional[str] = None


@dataclass
class BookingDraft:
    vehicle_id: str
    customer_id: str
    start_date: date
    end_date: date
    status: str = ReservationStatus.PENDING
    advance_amount: float = 0.0
    total_amount: Optional[float] = None
    payment_mode: str = ""
    notes: str = ""


@dataclass
class BookingPatch(_Patch):
    vehicle_id: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    status: Optional[str] = None
    advance_amount: Optional[float] = None
    total_amount: Optional[float] = None
    payment_mode: Optional[str] = None
    notes: Optional[str] = None

    @property
    def touches_schedule(self) -> bool:
        return any(v is not None for v in (self.vehicle_id, self.start_date, self.end_date))


# ------------------------- queued operations -------------------------
@dataclass
class PendingOperation:
    kind: ClassVar[str] = ""
    affects_bookings: ClassVar[bool] = False

    op_id: str
    queued_at: Optional[datetime] = None

    @property
    def record_id(self) -> Optional[str]:
        return None


@dataclass
class CreateCar(PendingOperation):
    kind: ClassVar[str] = OperationKind.CREATE_CAR

    payload: VehicleDraft = None


@dataclass
class UpdateCar(PendingOperation):
    kind: ClassVar[str] = OperationKind.UPDATE_CAR

    vehicle_id: str = ""
    payload: VehiclePatch = field(default_factory=VehiclePatch)

    @property
    def record_id(self) -> Optional[str]:
        return self.vehicle_id


@dataclass
class CreateCustomer(PendingOperation):
    kind: ClassVar[str] = OperationKind.CREATE_CUSTOMER

    payload: CustomerDraft = None


@dataclass
class UpdateCustomer(PendingOperation):
    kind: ClassVar[str] = OperationKind.UPDATE_CUSTOMER

    customer_id: str = ""
    payload: CustomerPatch = field(default_factory=CustomerPatch)

    @property
    def record_id(self) -> Optional[str]:
        return self.customer_id


@dataclass
class CreateBooking(PendingOperation):
    kind: ClassVar[str] = OperationKind.CREATE_BOOKING
    affects_bookings: ClassVar[bool] = True

    payload: BookingDraft = None

    @property
    def reference_date(self) -> Optional[date]:
        return self.queued_at.date() if self.queued_at else None


@dataclass
class UpdateBooking(PendingOperation):
    kind: ClassVar[str] = OperationKind.UPDATE_BOOKING
    affects_bookings: ClassVar[bool] = True

    reservation_id: str = ""
    payload: BookingPatch = field(default_factory=BookingPatch)

    @property
    def record_id(self) -> Optional[str]:
        return self.reservation_id


OPERATION_TYPES = {
    cls.kind: cls
    for cls in (CreateCar, UpdateCar, CreateCustomer, UpdateCustomer, CreateBooking, UpdateBooking)
}

_PAYLOAD_TYPES = {
    OperationKind.CREATE_CAR: VehicleDraft,
    OperationKind.UPDATE_CAR: VehiclePatch,
    OperationKind.CREATE_CUSTOMER: CustomerDraft,
    OperationKind.UPDATE_CUSTOMER: CustomerPatch,
    OperationKind.CREATE_BOOKING: BookingDraft,
    OperationKind.UPDATE_BOOKING: BookingPatch,
}

_RECORD_ID_FIELD = {
    OperationKind.UPDATE_CAR: "vehicle_id",
    OperationKind.UPDATE_CUSTOMER: "customer_id",
    OperationKind.UPDATE_BOOKING: "reservation_id",
}

_DATE_FIELDS = ("start_date", "end_date")
_FLOAT_FIELDS = ("advance_amount", "total_amount")


class MalformedOperation(EngineError):
    """A queued operation could not be decoded."""

    default_message = "Error: malformed queued operation"


def _parse_timestamp(value) -> Optional[datetime]:
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value
    try:
        ts = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        raise MalformedOperation(f"Error: invalid queued_at {value!r}") from None
    return ts if ts.tzinfo else ts.replace(tzinfo=timezone.utc)


def payload_from_dict(kind: str, raw: dict):
    """Build the typed payload of `kind` from a JSON object."""
    if not isinstance(raw, dict):
        raise MalformedOperation(f"Error: {kind} payload must be an object")
    cls = _PAYLOAD_TYPES[kind]
    known = {f.name for f in dc_fields(cls)}
    unknown = set(raw) - known
    if unknown:
        raise MalformedOperation(f"Error: unknown {kind} fields: {', '.join(sorted(unknown))}")
    values = dict(raw)
    for name in _DATE_FIELDS:
        if values.get(name) is not None and name in known:
            values[name] = as_date(values[name])
    try:
        for name in _FLOAT_FIELDS:
            if values.get(name) not in (None, "") and name in known:
                values[name] = float(values[name])
        if values.get("year") not in (None, "") and "year" in known:
            values["year"] = int(values["year"])
    except (TypeError, ValueError) as e:
        raise MalformedOperation(f"Error: bad {kind} number ({e})") from None
    try:
        return cls(**values)
    except TypeError as e:
        raise MalformedOperation(f"Error: incomplete {kind} payload ({e})") from None


def operation_from_dict(d: dict) -> PendingOperation:
    """Decode one queued operation from its JSON form."""
    if not isinstance(d, dict):
        raise MalformedOperation("Error: queued operation must be an object")
    kind = d.get("kind")
    if kind not in OPERATION_TYPES:
        raise MalformedOperation(f"Error: unknown operation kind {kind!r}")
    op_id = str(d.get("op_id") or "").strip()
    if not op_id:
        raise MalformedOperation("Error: queued operation needs an op_id")
    payload = payload_from_dict(kind, d.get("payload") or {})
    kwargs = {"op_id": op_id, "queued_at": _parse_timestamp(d.get("queued_at")), "payload": payload}
    if kind in _RECORD_ID_FIELD:
        record_id = str(d.get("record_id") or "").strip()
        if not record_id:
            raise MalformedOperation(f"Error: {kind} needs a record_id")
        kwargs[_RECORD_ID_FIELD[kind]] = record_id
    return OPERATION_TYPES[kind](**kwargs)


# ------------------------- outcomes -------------------------
@dataclass
class Applied:
    record_id: str
    replayed: bool = False  # already applied by an earlier pass

    status: ClassVar[str] = "Applied"

    def to_dict(self) -> dict:
        return {"status": self.status, "record_id": self.record_id, "replayed": self.replayed}


@dataclass
class Skipped:
    reason: str
    error: Optional[EngineError] = None

    status: ClassVar[str] = "Skipped"

    def to_dict(self) -> dict:
        return {"status": self.status, "reason": self.reason,
                "message": self.error.message if self.error else None}


@dataclass
class Failed:
    error: Exception

    status: ClassVar[str] = "Failed"

    def to_dict(self) -> dict:
        return {"status": self.status, "error": type(self.error).__name__, "message": str(self.error)}


Outcome = Union[Applied, Skipped, Failed]


@dataclass
class ItemOutcome:
    operation: PendingOperation
    outcome: Outcome

    def to_dict(self) -> dict:
        d = {"op_id": self.operation.op_id, "kind": self.operation.kind}
        d.update(self.outcome.to_dict())
        return d


@dataclass
class ReconcileReport:
    """Per-operation outcomes in queue order, plus anything left unprocessed."""
    items: list[ItemOutcome] = field(default_factory=list)
    pending: list[PendingOperation] = field(default_factory=list)
    cancelled: bool = False

    def _of(self, cls) -> list[ItemOutcome]:
        return [i for i in self.items if isinstance(i.outcome, cls)]

    @property
    def applied(self) -> list[ItemOutcome]:
        return self._of(Applied)

    @property
    def skipped(self) -> list[ItemOutcome]:
        return self._of(Skipped)

    @property
    def failed(self) -> list[ItemOutcome]:
        return self._of(Failed)

    def outcome_for(self, op_id: str) -> Optional[Outcome]:
        for i in self.items:
            if i.operation.op_id == op_id:
                return i.outcome
        return None

    def to_dict(self) -> dict:
        return {
            "items": [i.to_dict() for i in self.items],
            "pending": [op.op_id for op in self.pending],
            "cancelled": self.cancelled,
            "summary": {
                "applied": len(self.applied),
                "skipped": len(self.skipped),
                "failed": len(self.failed),
                "pending": len(self.pending),
            },
        }
