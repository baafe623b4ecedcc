"""
Pure domain layer of the booking kernel: categories, models, workflows,
allocation arithmetic, domain events and the clock.  Nothing here touches
the store, the database or the logging configuration at call time.
"""

from booking_kernel.domain.categories import (
    CATEGORY_INFO,
    BudgetCategory,
    CategoryInfo,
    CategoryMapper,
    map_category,
)
from booking_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from booking_kernel.domain.events import (
    AssignmentStatusChanged,
    CategoryOverBudget,
    DomainEvent,
    RequestAccepted,
)
from booking_kernel.domain.models import (
    AllocationGuidance,
    AllocationStatus,
    AssignmentStatus,
    AssignmentSummary,
    BookingRequest,
    BudgetAllocation,
    BudgetSummary,
    CategoryRollup,
    RangeFit,
    RequestStatus,
    TaskStatus,
    VendorAssignment,
    VendorTask,
)

__all__ = [
    "CATEGORY_INFO",
    "AllocationGuidance",
    "AllocationStatus",
    "AssignmentStatus",
    "AssignmentStatusChanged",
    "AssignmentSummary",
    "BookingRequest",
    "BudgetAllocation",
    "BudgetCategory",
    "BudgetSummary",
    "CategoryInfo",
    "CategoryMapper",
    "CategoryOverBudget",
    "CategoryRollup",
    "Clock",
    "DeterministicClock",
    "DomainEvent",
    "RangeFit",
    "RequestAccepted",
    "RequestStatus",
    "SystemClock",
    "TaskStatus",
    "VendorAssignment",
    "VendorTask",
    "map_category",
]
