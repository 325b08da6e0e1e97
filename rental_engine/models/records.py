from dataclasses import dataclass, asdict
from datetime import date
from typing import Optional

from rental_engine.models.interval import Interval, as_date
from rental_engine.utils.constants import ReservationStatus, VehicleStatus


@dataclass
class Reservation:
    """
    A booking of one vehicle by one customer for an inclusive date range.
    The store keeps raw dicts; services work on these objects.
    """
    reservation_id: str
    vehicle_id: str
    customer_id: str
    start_date: date
    end_date: date
    status: str = ReservationStatus.PENDING
    advance_amount: float = 0.0
    total_amount: Optional[float] = None  # unknown until the rental is finalized
    payment_mode: str = ""
    notes: str = ""
    booked_on: Optional[date] = None  # reference date encoded in reservation_id
    client_ref: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def interval(self) -> Interval:
        return Interval(self.start_date, self.end_date)

    @property
    def duration(self) -> int:
        return self.interval.days

    @property
    def is_occupying(self) -> bool:
        return self.status in ReservationStatus.OCCUPYING

    def to_dict(self) -> dict:
        d = asdict(self)
        d["start_date"] = self.start_date.isoformat()
        d["end_date"] = self.end_date.isoformat()
        d["booked_on"] = self.booked_on.isoformat() if self.booked_on else None
        d["duration"] = self.duration
        return d


@dataclass
class Vehicle:
    """
    Fleet entry. `status` is a cached projection of the reservations; the
    interval check is what decides availability.
    """
    vehicle_id: str
    make: str = ""
    model: str = ""
    year: Optional[int] = None
    fuel_type: str = ""
    transmission: str = ""
    plate_number: str = ""
    status: str = VehicleStatus.AVAILABLE
    photo_url: Optional[str] = None
    client_ref: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def label(self) -> str:
        return f"{self.make} {self.model}".strip() or self.vehicle_id[:6]

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class Customer:
    customer_id: str
    name: str = ""
    phone: str = ""
    address: str = ""
    aadhar_url: Optional[str] = None
    dl_url: Optional[str] = None
    photo_url: Optional[str] = None
    client_ref: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)


# -------- dict -> rich model mappers --------
def _float_or_none(value) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


def reservation_from_dict(d: Optional[dict]) -> Optional[Reservation]:
    """Map a stored reservation dict to a Reservation."""
    if not d:
        return None
    booked_on = d.get("booked_on")
    return Reservation(
        reservation_id=d.get("reservation_id") or d.get("id"),
        vehicle_id=str(d.get("vehicle_id")),
        customer_id=str(d.get("customer_id") or ""),
        start_date=as_date(d.get("start_date")),
        end_date=as_date(d.get("end_date")),
        status=d.get("status") or ReservationStatus.PENDING,
        advance_amount=float(d.get("advance_amount") or 0.0),
        total_amount=_float_or_none(d.get("total_amount")),
        payment_mode=d.get("payment_mode") or "",
        notes=d.get("notes") or "",
        booked_on=as_date(booked_on) if booked_on else None,
        client_ref=d.get("client_ref"),
        created_at=d.get("created_at"),
        updated_at=d.get("updated_at"),
    )


def vehicle_from_dict(d: Optional[dict]) -> Optional[Vehicle]:
    """Map a stored vehicle dict to a Vehicle."""
    if not d:
        return None
    year = d.get("year")
    return Vehicle(
        vehicle_id=str(d.get("vehicle_id") or d.get("id")),
        make=d.get("make") or "",
        model=d.get("model") or "",
        year=int(year) if year not in (None, "") else None,
        fuel_type=d.get("fuel_type") or "",
        transmission=d.get("transmission") or "",
        plate_number=d.get("plate_number") or "",
        status=d.get("status") or VehicleStatus.AVAILABLE,
        photo_url=d.get("photo_url"),
        client_ref=d.get("client_ref"),
        created_at=d.get("created_at"),
        updated_at=d.get("updated_at"),
    )


def customer_from_dict(d: Optional[dict]) -> Optional[Customer]:
    """Map a stored customer dict to a Customer."""
    if not d:
        return None
    return Customer(
        customer_id=str(d.get("customer_id") or d.get("id")),
        name=d.get("name") or "",
        phone=d.get("phone") or "",
        address=d.get("address") or "",
        aadhar_url=d.get("aadhar_url"),
        dl_url=d.get("dl_url"),
        photo_url=d.get("photo_url"),
        client_ref=d.get("client_ref"),
        created_at=d.get("created_at"),
        updated_at=d.get("updated_at"),
    )
