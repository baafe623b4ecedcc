"""
Booking Kernel facade - wires the registries around one store.

The kernel ties together:
- BookingStore: per-event ledgers and locks
- EventDispatcher: domain event fan-out
- BookingRequestRegistry: requests and atomic acceptance
- VendorAssignmentRegistry: vendor lifecycle, payments, tasks
- BudgetAllocator: category allocation and health

All three registries share the same store, clock, dispatcher and policy,
so a request accepted through ``requests`` is immediately visible to
``assignments`` and counted by ``budget``.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from booking_kernel.config import BudgetPolicy, load_policy
from booking_kernel.domain.clock import Clock, SystemClock
from booking_kernel.domain.events import DomainEvent
from booking_kernel.logging_config import get_logger
from booking_kernel.services.booking_requests import BookingRequestRegistry
from booking_kernel.services.budget_allocator import BudgetAllocator
from booking_kernel.services.dispatcher import EventDispatcher
from booking_kernel.services.vendor_assignments import VendorAssignmentRegistry
from booking_kernel.store import BookingStore

logger = get_logger("kernel")


class BookingKernel:
    """
    One deployment's booking state and the operations over it.

    Example:
        kernel = BookingKernel()
        kernel.budget.initialize("evt-1", "1000000")
        req = kernel.requests.create("evt-1", "v-9", "Caterer", "250000")
        kernel.requests.accept(req.id)
        kernel.budget.summary("evt-1").total_committed
    """

    def __init__(
        self,
        store: BookingStore | None = None,
        clock: Clock | None = None,
        policy: BudgetPolicy | None = None,
        dispatcher: EventDispatcher | None = None,
    ):
        self.store = store or BookingStore()
        self.clock = clock or SystemClock()
        self.policy = policy or BudgetPolicy.with_defaults()
        self.dispatcher = dispatcher or EventDispatcher()

        self.assignments = VendorAssignmentRegistry(
            self.store, self.dispatcher, self.clock, self.policy,
        )
        self.requests = BookingRequestRegistry(
            self.store, self.assignments, self.dispatcher, self.clock,
        )
        self.budget = BudgetAllocator(
            self.store, self.dispatcher, self.clock, self.policy,
        )
        logger.debug("booking_kernel_initialized", extra={
            "default_function_id": self.policy.default_function_id,
            "require_task_proof": self.policy.require_task_proof,
        })

    @classmethod
    def from_config(
        cls,
        path: str | Path,
        clock: Clock | None = None,
    ) -> BookingKernel:
        """Build a kernel whose policy is loaded from a YAML file."""
        return cls(clock=clock, policy=load_policy(path))

    def subscribe(
        self,
        event_type: type[DomainEvent],
        handler: Callable[[DomainEvent], None],
    ) -> Callable[[], None]:
        return self.dispatcher.subscribe(event_type, handler)
