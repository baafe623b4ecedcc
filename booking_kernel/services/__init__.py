"""
booking_kernel.services -- Package init and public API.

Responsibility:
    The three registries that own booking state transitions, plus the
    domain event dispatcher and the optional database repository.

Invariants enforced:
    - Every mutation runs under ``BookingStore.write(event_id)``.
    - Domain events are published only after the unit of work commits.
"""

from booking_kernel.services.booking_requests import BookingRequestRegistry
from booking_kernel.services.budget_allocator import BudgetAllocator
from booking_kernel.services.dispatcher import EventDispatcher
from booking_kernel.services.ledger_repository import LedgerRepository
from booking_kernel.services.vendor_assignments import (
    VendorAssignmentRegistry,
    compute_rollup,
)

__all__ = [
    "BookingRequestRegistry",
    "BudgetAllocator",
    "EventDispatcher",
    "LedgerRepository",
    "VendorAssignmentRegistry",
    "compute_rollup",
]
