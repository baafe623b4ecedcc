"""
Module: booking_kernel.db.orm
Responsibility:
    SQLAlchemy ORM persistence rows for the booking kernel.  Maps the frozen
    dataclass models of ``booking_kernel.domain.models`` to relational
    tables and back.

Architecture position:
    **Persistence adapter** -- rows inherit from ``Base``.  The in-memory
    ``BookingStore`` remains the system of record while the kernel runs;
    these rows are what ``LedgerRepository`` saves and loads.

Invariants enforced:
    - All monetary fields use Decimal (Numeric(38,9) via Base).
    - Enum fields stored as String(50) by value.
    - Rows mirroring a domain entity reuse the entity's UUID as primary key.
    - One allocation row per (event_id, category); one budget row per event.

Failure modes:
    - IntegrityError on duplicate unique constraints.
    - ValueError in ``to_dto`` if a stored status/category is not a known
      enum value.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from booking_kernel.db.base import Base, UUIDString
from booking_kernel.domain.categories import BudgetCategory
from booking_kernel.domain.models import (
    AllocationStatus,
    AssignmentStatus,
    BookingRequest,
    BudgetAllocation,
    RequestStatus,
    TaskStatus,
    VendorAssignment,
    VendorTask,
)


# =============================================================================
# Event budget
# =============================================================================


class EventBudgetModel(Base):
    """The total budget last used to initialize or edit an event's allocations."""

    __tablename__ = "event_budgets"

    __table_args__ = (
        UniqueConstraint("event_id", name="uq_event_budget_event"),
    )

    event_id: Mapped[str] = mapped_column(String(100), nullable=False)
    total_budget: Mapped[Decimal] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<EventBudgetModel {self.event_id} {self.total_budget}>"


# =============================================================================
# Booking request
# =============================================================================


class BookingRequestModel(Base):
    """
    A planner-to-vendor booking request.

    Guarantees:
        - ``status`` is one of: pending, accepted, declined.
        - ``assignment_id`` is set once the request is accepted.
    """

    __tablename__ = "booking_requests"

    __table_args__ = (
        Index("idx_booking_request_event", "event_id"),
        Index("idx_booking_request_vendor", "vendor_id"),
        Index("idx_booking_request_planner", "planner_id"),
    )

    event_id: Mapped[str] = mapped_column(String(100), nullable=False)
    vendor_id: Mapped[str] = mapped_column(String(100), nullable=False)
    category: Mapped[str] = mapped_column(String(200), nullable=False)
    amount: Mapped[Decimal] = mapped_column(nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)
    sequence: Mapped[int] = mapped_column(nullable=False)
    function_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    vendor_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    planner_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    service: Mapped[str | None] = mapped_column(String(200), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(50), default="pending")
    assignment_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def to_dto(self) -> BookingRequest:
        return BookingRequest(
            id=self.id,
            event_id=self.event_id,
            vendor_id=self.vendor_id,
            category=self.category,
            amount=self.amount,
            created_at=self.created_at,
            updated_at=self.updated_at,
            sequence=self.sequence,
            function_id=self.function_id,
            vendor_name=self.vendor_name,
            planner_id=self.planner_id,
            service=self.service,
            notes=self.notes,
            status=RequestStatus(self.status),
            assignment_id=self.assignment_id,
        )

    @classmethod
    def from_dto(cls, dto: BookingRequest) -> "BookingRequestModel":
        return cls(
            id=dto.id,
            event_id=dto.event_id,
            vendor_id=dto.vendor_id,
            category=dto.category,
            amount=dto.amount,
            created_at=dto.created_at,
            updated_at=dto.updated_at,
            sequence=dto.sequence,
            function_id=dto.function_id,
            vendor_name=dto.vendor_name,
            planner_id=dto.planner_id,
            service=dto.service,
            notes=dto.notes,
            status=dto.status.value,
            assignment_id=dto.assignment_id,
        )

    def __repr__(self) -> str:
        return f"<BookingRequestModel {self.vendor_id}/{self.category} ({self.status})>"


# =============================================================================
# Vendor assignment and tasks
# =============================================================================


class VendorAssignmentModel(Base):
    """
    A vendor engaged for one function of an event.

    Guarantees:
        - ``status`` is one of: requested, confirmed, arrived, completed,
          cancelled.
        - ``budget_category`` is one of the nine budget categories.
        - ``removed_at`` is set for soft-removed assignments.
    """

    __tablename__ = "vendor_assignments"

    __table_args__ = (
        Index("idx_vendor_assignment_event", "event_id"),
        Index("idx_vendor_assignment_vendor", "vendor_id"),
        Index("idx_vendor_assignment_category", "event_id", "budget_category"),
    )

    event_id: Mapped[str] = mapped_column(String(100), nullable=False)
    function_id: Mapped[str] = mapped_column(String(100), nullable=False)
    vendor_id: Mapped[str] = mapped_column(String(100), nullable=False)
    vendor_category: Mapped[str] = mapped_column(String(200), nullable=False)
    budget_category: Mapped[str] = mapped_column(String(50), nullable=False)
    agreed_amount: Mapped[Decimal] = mapped_column(nullable=False)
    paid_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    status: Mapped[str] = mapped_column(String(50), default="requested")
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)
    sequence: Mapped[int] = mapped_column(nullable=False)
    vendor_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    vendor_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    expected_arrival: Mapped[datetime | None] = mapped_column(nullable=True)
    arrived_at: Mapped[datetime | None] = mapped_column(nullable=True)
    departed_at: Mapped[datetime | None] = mapped_column(nullable=True)
    backup_vendor_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    backup_vendor_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    request_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    removed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    tasks: Mapped[list["VendorTaskModel"]] = relationship(
        "VendorTaskModel",
        back_populates="assignment",
        cascade="all, delete-orphan",
        order_by="VendorTaskModel.position",
        lazy="selectin",
    )

    def to_dto(self) -> VendorAssignment:
        return VendorAssignment(
            id=self.id,
            event_id=self.event_id,
            function_id=self.function_id,
            vendor_id=self.vendor_id,
            vendor_category=self.vendor_category,
            budget_category=BudgetCategory(self.budget_category),
            agreed_amount=self.agreed_amount,
            created_at=self.created_at,
            updated_at=self.updated_at,
            sequence=self.sequence,
            vendor_name=self.vendor_name,
            vendor_phone=self.vendor_phone,
            paid_amount=self.paid_amount,
            status=AssignmentStatus(self.status),
            expected_arrival=self.expected_arrival,
            arrived_at=self.arrived_at,
            departed_at=self.departed_at,
            backup_vendor_id=self.backup_vendor_id,
            backup_vendor_name=self.backup_vendor_name,
            tasks=tuple(t.to_dto() for t in self.tasks),
            notes=self.notes,
            request_id=self.request_id,
            removed_at=self.removed_at,
        )

    @classmethod
    def from_dto(cls, dto: VendorAssignment) -> "VendorAssignmentModel":
        return cls(
            id=dto.id,
            event_id=dto.event_id,
            function_id=dto.function_id,
            vendor_id=dto.vendor_id,
            vendor_category=dto.vendor_category,
            budget_category=dto.budget_category.value,
            agreed_amount=dto.agreed_amount,
            paid_amount=dto.paid_amount,
            status=dto.status.value,
            created_at=dto.created_at,
            updated_at=dto.updated_at,
            sequence=dto.sequence,
            vendor_name=dto.vendor_name,
            vendor_phone=dto.vendor_phone,
            expected_arrival=dto.expected_arrival,
            arrived_at=dto.arrived_at,
            departed_at=dto.departed_at,
            backup_vendor_id=dto.backup_vendor_id,
            backup_vendor_name=dto.backup_vendor_name,
            notes=dto.notes,
            request_id=dto.request_id,
            removed_at=dto.removed_at,
            tasks=[
                VendorTaskModel.from_dto(task, dto.id, position)
                for position, task in enumerate(dto.tasks)
            ],
        )

    def __repr__(self) -> str:
        return f"<VendorAssignmentModel {self.vendor_id} ({self.status})>"


class VendorTaskModel(Base):
    """An on-site task; ``position`` preserves checklist order."""

    __tablename__ = "vendor_tasks"

    __table_args__ = (
        Index("idx_vendor_task_assignment", "assignment_id"),
    )

    assignment_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("vendor_assignments.id"),
        nullable=False,
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    due_time: Mapped[datetime | None] = mapped_column(nullable=True)
    requires_proof: Mapped[bool] = mapped_column(Boolean, default=False)
    status: Mapped[str] = mapped_column(String(50), default="pending")
    proof_url: Mapped[str | None] = mapped_column(String(2000), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    assignment: Mapped["VendorAssignmentModel"] = relationship(
        "VendorAssignmentModel",
        back_populates="tasks",
    )

    def to_dto(self) -> VendorTask:
        return VendorTask(
            id=self.id,
            title=self.title,
            description=self.description,
            due_time=self.due_time,
            requires_proof=self.requires_proof,
            status=TaskStatus(self.status),
            proof_url=self.proof_url,
            completed_at=self.completed_at,
        )

    @classmethod
    def from_dto(
        cls,
        dto: VendorTask,
        assignment_id: UUID,
        position: int,
    ) -> "VendorTaskModel":
        return cls(
            id=dto.id,
            assignment_id=assignment_id,
            position=position,
            title=dto.title,
            description=dto.description,
            due_time=dto.due_time,
            requires_proof=dto.requires_proof,
            status=dto.status.value,
            proof_url=dto.proof_url,
            completed_at=dto.completed_at,
        )

    def __repr__(self) -> str:
        return f"<VendorTaskModel {self.title[:40]} ({self.status})>"


# =============================================================================
# Budget allocation
# =============================================================================


class BudgetAllocationModel(Base):
    """
    One category's slice of an event budget.

    Guarantees:
        - ``(event_id, category)`` is unique (uq_budget_allocation_category).
        - ``status`` is one of: on_track, warning, over.
    """

    __tablename__ = "budget_allocations"

    __table_args__ = (
        UniqueConstraint("event_id", "category", name="uq_budget_allocation_category"),
    )

    event_id: Mapped[str] = mapped_column(String(100), nullable=False)
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    allocated_amount: Mapped[Decimal] = mapped_column(nullable=False)
    allocated_percent: Mapped[Decimal] = mapped_column(nullable=False)
    spent_amount: Mapped[Decimal] = mapped_column(default=Decimal("0"))
    status: Mapped[str] = mapped_column(String(50), default="on_track")
    updated_at: Mapped[datetime] = mapped_column(nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self) -> BudgetAllocation:
        return BudgetAllocation(
            event_id=self.event_id,
            category=BudgetCategory(self.category),
            allocated_amount=self.allocated_amount,
            allocated_percent=self.allocated_percent,
            updated_at=self.updated_at,
            spent_amount=self.spent_amount,
            status=AllocationStatus(self.status),
            notes=self.notes,
        )

    @classmethod
    def from_dto(cls, dto: BudgetAllocation) -> "BudgetAllocationModel":
        return cls(
            event_id=dto.event_id,
            category=dto.category.value,
            allocated_amount=dto.allocated_amount,
            allocated_percent=dto.allocated_percent,
            spent_amount=dto.spent_amount,
            status=dto.status.value,
            updated_at=dto.updated_at,
            notes=dto.notes,
        )

    def __repr__(self) -> str:
        return f"<BudgetAllocationModel {self.event_id}/{self.category} ({self.status})>"
