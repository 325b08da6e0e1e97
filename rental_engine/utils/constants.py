# rental_engine/utils/constants.py

"""
Global constants for statuses, record kinds and identifier formats.
These constants are imported by both models and services.
"""

# Date format (used for reservation start/end and booking identifiers)
DATE_FMT = "%Y-%m-%d"
ID_DATE_FMT = "%Y%m%d"


class ReservationStatus:
    PENDING = "Pending"
    ACTIVE = "Active"
    RETURNED = "Returned"
    CANCELLED = "Cancelled"

    ALL = frozenset({PENDING, ACTIVE, RETURNED, CANCELLED})
    # statuses that hold the vehicle for their interval
    OCCUPYING = frozenset({PENDING, ACTIVE})
    TERMINAL = frozenset({RETURNED, CANCELLED})


class VehicleStatus:
    AVAILABLE = "Available"
    RENTED = "Rented"
    MAINTENANCE = "Under Maintenance"

    ALL = frozenset({AVAILABLE, RENTED, MAINTENANCE})


class RecordKind:
    VEHICLE = "vehicle"
    CUSTOMER = "customer"
    RESERVATION = "reservation"


class OperationKind:
    CREATE_CAR = "CreateCar"
    UPDATE_CAR = "UpdateCar"
    CREATE_CUSTOMER = "CreateCustomer"
    UPDATE_CUSTOMER = "UpdateCustomer"
    CREATE_BOOKING = "CreateBooking"
    UPDATE_BOOKING = "UpdateBooking"

    ALL = (CREATE_CAR, UPDATE_CAR, CREATE_CUSTOMER, UPDATE_CUSTOMER, CREATE_BOOKING, UPDATE_BOOKING)


# --- Identifier defaults ---
BOOKING_PREFIX = "VAT"
CUSTOMER_PREFIX = "VATS-CUST"
SEQUENCE_WIDTH = 3
MAX_ID_ATTEMPTS = 10
