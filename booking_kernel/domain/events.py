"""
Domain events published by the booking kernel.

Callers subscribe through ``EventDispatcher`` to turn these into
notifications or emails; the kernel itself sends nothing.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from booking_kernel.domain.categories import BudgetCategory
from booking_kernel.domain.models import AssignmentStatus


@dataclass(frozen=True)
class DomainEvent:
    event_id: str
    occurred_at: datetime


@dataclass(frozen=True)
class RequestAccepted(DomainEvent):
    request_id: UUID
    assignment_id: UUID
    vendor_id: str
    budget_category: BudgetCategory
    agreed_amount: Decimal


@dataclass(frozen=True)
class AssignmentStatusChanged(DomainEvent):
    assignment_id: UUID
    vendor_id: str
    from_status: AssignmentStatus
    to_status: AssignmentStatus


@dataclass(frozen=True)
class CategoryOverBudget(DomainEvent):
    category: BudgetCategory
    allocated_amount: Decimal
    spent_amount: Decimal
