"""
Booking Domain Models (``booking_kernel.domain.models``).

Responsibility
--------------
Frozen dataclass value objects representing the nouns of vendor booking:
booking requests, vendor assignments and their on-site tasks, budget
allocations, and the read-only rollups derived from them.

Architecture position
---------------------
**Kernel domain layer** -- pure data definitions with ZERO I/O.  Returned
to callers by the registries; the store swaps whole objects in and out, so
no caller ever observes a half-updated entity.

Invariants enforced
-------------------
* All models are ``frozen=True`` (immutable after construction).
* All monetary fields use ``Decimal`` -- NEVER ``float``.
* Statuses are closed ``Enum`` types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from uuid import UUID

from booking_kernel.domain.categories import BudgetCategory
from booking_kernel.exceptions import InvalidAmountError

ZERO = Decimal("0")


class RequestStatus(Enum):
    """Booking request states."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class AssignmentStatus(Enum):
    """Vendor assignment states."""
    REQUESTED = "requested"
    CONFIRMED = "confirmed"
    ARRIVED = "arrived"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class TaskStatus(Enum):
    """On-site vendor task states."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"


class AllocationStatus(Enum):
    """Budget category health."""
    ON_TRACK = "on_track"
    WARNING = "warning"
    OVER = "over"


class RangeFit(Enum):
    """Allocated share compared to the category's industry range."""
    BELOW_RANGE = "below_range"
    WITHIN_RANGE = "within_range"
    ABOVE_RANGE = "above_range"


# Statuses whose agreed amount counts as committed spend.
COMMITTED_STATUSES = frozenset({
    AssignmentStatus.CONFIRMED,
    AssignmentStatus.ARRIVED,
    AssignmentStatus.COMPLETED,
})


@dataclass(frozen=True)
class BookingRequest:
    """A planner's proposal to engage a vendor for a category of service."""
    id: UUID
    event_id: str
    vendor_id: str
    category: str
    amount: Decimal
    created_at: datetime
    updated_at: datetime
    sequence: int
    function_id: str | None = None
    vendor_name: str | None = None
    planner_id: str | None = None
    service: str | None = None
    notes: str | None = None
    status: RequestStatus = RequestStatus.PENDING
    assignment_id: UUID | None = None

    @property
    def is_live(self) -> bool:
        return self.status is not RequestStatus.DECLINED


@dataclass(frozen=True)
class VendorTask:
    """A unit of on-site work owned by a vendor assignment."""
    id: UUID
    title: str
    description: str | None = None
    due_time: datetime | None = None
    requires_proof: bool = False
    status: TaskStatus = TaskStatus.PENDING
    proof_url: str | None = None
    completed_at: datetime | None = None


@dataclass(frozen=True)
class VendorAssignment:
    """The tracked engagement of a vendor for one function of an event."""
    id: UUID
    event_id: str
    function_id: str
    vendor_id: str
    vendor_category: str
    budget_category: BudgetCategory
    agreed_amount: Decimal
    created_at: datetime
    updated_at: datetime
    sequence: int
    vendor_name: str | None = None
    vendor_phone: str | None = None
    paid_amount: Decimal = ZERO
    status: AssignmentStatus = AssignmentStatus.REQUESTED
    expected_arrival: datetime | None = None
    arrived_at: datetime | None = None
    departed_at: datetime | None = None
    backup_vendor_id: str | None = None
    backup_vendor_name: str | None = None
    tasks: tuple[VendorTask, ...] = ()
    notes: str | None = None
    request_id: UUID | None = None
    removed_at: datetime | None = None

    @property
    def balance_due(self) -> Decimal:
        return self.agreed_amount - self.paid_amount

    @property
    def is_committed(self) -> bool:
        return self.status in COMMITTED_STATUSES

    def task(self, task_id: UUID) -> VendorTask | None:
        for t in self.tasks:
            if t.id == task_id:
                return t
        return None


@dataclass(frozen=True)
class BudgetAllocation:
    """One category's slice of an event budget."""
    event_id: str
    category: BudgetCategory
    allocated_amount: Decimal
    allocated_percent: Decimal
    updated_at: datetime
    spent_amount: Decimal = ZERO
    status: AllocationStatus = AllocationStatus.ON_TRACK
    notes: str | None = None


@dataclass(frozen=True)
class CategoryRollup:
    """Committed and spent totals for one budget category of an event."""
    category: BudgetCategory
    committed: Decimal = ZERO
    spent: Decimal = ZERO


@dataclass(frozen=True)
class AssignmentSummary:
    """Counts and totals across an event's vendor assignments."""
    total: int
    requested: int
    confirmed: int
    arrived: int
    completed: int
    cancelled: int
    total_agreed: Decimal
    total_paid: Decimal


@dataclass(frozen=True)
class BudgetSummary:
    """Aggregate read-only view of an event's budget health."""
    event_id: str
    total_budget: Decimal
    total_allocated: Decimal
    total_committed: Decimal
    total_spent: Decimal
    total_paid: Decimal
    remaining: Decimal
    spent_percent: Decimal
    warning_count: int
    over_count: int
    over_allocated: bool
    allocations: tuple[BudgetAllocation, ...] = field(default=())


@dataclass(frozen=True)
class AllocationGuidance:
    """How an allocation compares with the category's customary share."""
    category: BudgetCategory
    allocated_percent: Decimal
    min_percent: Decimal
    max_percent: Decimal
    fit: RangeFit


def as_amount(value: Decimal | int | str, field_name: str = "amount") -> Decimal:
    """Coerce a caller-supplied amount to ``Decimal``.

    Floats go through ``str`` so 0.1 stays 0.1.  Non-numeric, NaN, infinite
    and negative values raise ``InvalidAmountError``.
    """
    if isinstance(value, bool):
        raise InvalidAmountError(field_name, repr(value), "not a number")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation as e:
        raise InvalidAmountError(field_name, repr(value), "not a number") from e
    if not amount.is_finite():
        raise InvalidAmountError(field_name, str(amount), "must be finite")
    if amount < ZERO:
        raise InvalidAmountError(field_name, str(amount), "cannot be negative")
    return amount
