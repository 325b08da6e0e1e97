import sys, pathlib
from datetime import date

ROOT = pathlib.Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

import pytest

from rental_engine.config import EngineConfig
from rental_engine.engine import ReservationEngine
from rental_engine.models.operations import BookingDraft, VehicleDraft
from rental_engine.models.store import InMemoryStore

# Reference date used for booking IDs in tests
REF_DAY = date(2024, 6, 1)


@pytest.fixture
def config():
    return EngineConfig(testing=True)


@pytest.fixture
def store():
    """A clean, isolated in-memory store per test."""
    return InMemoryStore()


@pytest.fixture
def engine(store, config):
    return ReservationEngine(store, config)


@pytest.fixture
def app(engine):
    from rental_engine import create_app
    app = create_app(engine=engine)
    app.config.update(TESTING=True)
    return app


@pytest.fixture
def client(app):
    with app.test_client() as c:
        yield c


def seed_vehicle(engine, vid="car-1", **kw):
    fields = {"make": "Maruti", "model": "Swift", "plate_number": "ka01ab1234", "vehicle_id": vid}
    fields.update(kw)
    return engine.create_vehicle(VehicleDraft(**fields)).vehicle_id


def book(engine, vid, start, end, status="Active", customer="VATS-CUST-001", **kw):
    """Create a reservation through the lifecycle and return the BookingResult."""
    draft = BookingDraft(
        vehicle_id=vid,
        customer_id=customer,
        start_date=date.fromisoformat(start),
        end_date=date.fromisoformat(end),
        status=status,
    )
    kw.setdefault("reference_date", REF_DAY)
    return engine.create_reservation(draft, **kw)
