from .conflict_service import ConflictDetector
from .customer_service import CustomerService
from .fleet_service import FleetService
from .id_allocator import IdAllocator
from .reconcile_service import ReconciliationEngine
from .reservation_service import ReservationService

__all__ = [
    "ConflictDetector",
    "CustomerService",
    "FleetService",
    "IdAllocator",
    "ReconciliationEngine",
    "ReservationService",
]
