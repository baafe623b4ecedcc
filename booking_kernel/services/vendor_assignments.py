"""
Vendor Assignment Registry (``booking_kernel.services.vendor_assignments``).

Responsibility
--------------
Owns the lifecycle of a vendor's engagement for one function of an event:
status progression from ``requested`` to ``completed``, on-site arrival and
departure, payments, task tracking with proof of completion, backup vendor
substitution and soft removal.  Also computes the per-category committed /
spent rollups that the ``BudgetAllocator`` consumes.

Architecture position
---------------------
**Kernel services layer** -- operates on ``BookingStore`` ledgers under the
per-event lock.  ``BookingRequestRegistry`` calls ``build_from_request``
inside its own unit of work so acceptance and assignment creation commit
together.

Invariants enforced
-------------------
* Status changes follow ``VENDOR_ASSIGNMENT_WORKFLOW``; no exit from
  ``completed`` / ``cancelled``.
* ``paid_amount`` never decreases and never exceeds ``agreed_amount``
  without ``allow_overpayment=True``.
* ``departed_at >= arrived_at``; ``completed`` implies ``departed_at``.
* Deletion only while ``requested``.

Failure modes
-------------
* ``AssignmentNotFoundError`` / ``TaskNotFoundError`` for unknown ids.
* ``InvalidTransitionError``, ``ArrivalRequiredError``,
  ``TimestampOrderError``, ``InvalidTimestampError``, ``OverPaymentError``,
  ``InvalidAmountError``, ``ProofRequiredError``, ``AssignmentLockedError``
  -- state untouched.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal
from uuid import UUID, uuid4

from booking_kernel.config import BudgetPolicy
from booking_kernel.domain.categories import BudgetCategory
from booking_kernel.domain.clock import Clock, SystemClock
from booking_kernel.domain.events import AssignmentStatusChanged, DomainEvent
from booking_kernel.domain.models import (
    ZERO,
    AssignmentStatus,
    AssignmentSummary,
    BookingRequest,
    CategoryRollup,
    TaskStatus,
    VendorAssignment,
    VendorTask,
    as_amount,
)
from booking_kernel.domain.workflows import VENDOR_ASSIGNMENT_WORKFLOW
from booking_kernel.exceptions import (
    ArrivalRequiredError,
    AssignmentLockedError,
    AssignmentNotFoundError,
    InvalidAmountError,
    InvalidTimestampError,
    InvalidTransitionError,
    OverPaymentError,
    ProofRequiredError,
    TaskNotFoundError,
    TimestampOrderError,
)
from booking_kernel.logging_config import LogContext, get_logger
from booking_kernel.services.dispatcher import EventDispatcher
from booking_kernel.store import BookingStore, EventLedger

logger = get_logger("services.vendor_assignments")

_Mutation = Callable[
    [VendorAssignment, datetime],
    tuple[VendorAssignment, list[DomainEvent]],
]


def compute_rollup(
    assignments: Iterable[VendorAssignment],
) -> dict[BudgetCategory, CategoryRollup]:
    """
    Committed and spent per budget category.

    committed = sum of agreed amounts of confirmed / arrived / completed
    assignments; spent = sum of paid amounts of every non-cancelled
    assignment.  Soft-removed assignments are ignored.
    """
    committed = {c: ZERO for c in BudgetCategory}
    spent = {c: ZERO for c in BudgetCategory}
    for a in assignments:
        if a.removed_at is not None:
            continue
        if a.is_committed:
            committed[a.budget_category] += a.agreed_amount
        if a.status is not AssignmentStatus.CANCELLED:
            spent[a.budget_category] += a.paid_amount
    return {
        c: CategoryRollup(category=c, committed=committed[c], spent=spent[c])
        for c in BudgetCategory
    }


def _ordered(assignments: Iterable[VendorAssignment]) -> tuple[VendorAssignment, ...]:
    return tuple(sorted(
        (a for a in assignments if a.removed_at is None),
        key=lambda a: (a.created_at, a.sequence),
    ))


class VendorAssignmentRegistry:
    """
    Lifecycle and ledger of vendor assignments.

    Contract
    --------
    * Every mutating method runs as one unit under the event lock and
      either applies completely or raises without changing anything.
    * Returned objects are frozen snapshots; re-read to observe later edits.
    * ``AssignmentStatusChanged`` is published after the unit commits.
    """

    def __init__(
        self,
        store: BookingStore,
        dispatcher: EventDispatcher | None = None,
        clock: Clock | None = None,
        policy: BudgetPolicy | None = None,
    ):
        self._store = store
        self._dispatcher = dispatcher or EventDispatcher()
        self._clock = clock or SystemClock()
        self._policy = policy or BudgetPolicy.with_defaults()
        self._mapper = self._policy.mapper()

    # =========================================================================
    # Creation
    # =========================================================================

    def build(
        self,
        ledger: EventLedger,
        *,
        function_id: str | None,
        vendor_id: str,
        vendor_category: str,
        budget_category: BudgetCategory | str | None,
        agreed_amount: Decimal | int | str,
        now: datetime,
        notes: str | None = None,
        vendor_name: str | None = None,
        vendor_phone: str | None = None,
        expected_arrival: datetime | None = None,
        request_id: UUID | None = None,
    ) -> VendorAssignment:
        """Construct (but do not store) a new ``requested`` assignment.

        ``budget_category`` given as text, or omitted, is derived through
        the category mapper.
        """
        amount = as_amount(agreed_amount, "agreed_amount")
        expected_arrival = _utc(expected_arrival, "expected_arrival")
        if isinstance(budget_category, BudgetCategory):
            category = budget_category
        else:
            category = self._mapper.map(budget_category or vendor_category)
        return VendorAssignment(
            id=uuid4(),
            event_id=ledger.event_id,
            function_id=function_id or self._policy.default_function_id,
            vendor_id=vendor_id,
            vendor_category=vendor_category,
            budget_category=category,
            agreed_amount=amount,
            created_at=now,
            updated_at=now,
            sequence=self._store.next_sequence(),
            vendor_name=vendor_name,
            vendor_phone=vendor_phone,
            expected_arrival=expected_arrival,
            notes=notes,
            request_id=request_id,
        )

    def build_from_request(
        self,
        ledger: EventLedger,
        request: BookingRequest,
        now: datetime,
    ) -> VendorAssignment:
        """Materialize an accepted booking request."""
        return self.build(
            ledger,
            function_id=request.function_id,
            vendor_id=request.vendor_id,
            vendor_category=request.category,
            budget_category=self._mapper.map(request.category),
            agreed_amount=request.amount,
            now=now,
            notes=request.notes,
            vendor_name=request.vendor_name,
            request_id=request.id,
        )

    def create(
        self,
        event_id: str,
        function_id: str | None,
        vendor_id: str,
        vendor_category: str,
        budget_category: BudgetCategory | str | None,
        agreed_amount: Decimal | int | str,
        *,
        notes: str | None = None,
        vendor_name: str | None = None,
        vendor_phone: str | None = None,
        expected_arrival: datetime | None = None,
        request_id: UUID | None = None,
    ) -> VendorAssignment:
        """Assign a vendor directly (status ``requested``, nothing paid, no tasks)."""
        with LogContext.bind(event_id=event_id):
            with self._store.write(event_id) as ledger:
                assignment = self.build(
                    ledger,
                    function_id=function_id,
                    vendor_id=vendor_id,
                    vendor_category=vendor_category,
                    budget_category=budget_category,
                    agreed_amount=agreed_amount,
                    now=self._clock.now(),
                    notes=notes,
                    vendor_name=vendor_name,
                    vendor_phone=vendor_phone,
                    expected_arrival=expected_arrival,
                    request_id=request_id,
                )
                self._store.commit(ledger, assignments=[assignment])

            logger.info("vendor_assignment_created", extra={
                "assignment_id": str(assignment.id),
                "vendor_id": vendor_id,
                "function_id": assignment.function_id,
                "budget_category": assignment.budget_category.value,
                "agreed_amount": str(assignment.agreed_amount),
            })
        return assignment

    # =========================================================================
    # Status
    # =========================================================================

    def set_status(
        self,
        assignment_id: UUID,
        new_status: AssignmentStatus | str,
    ) -> VendorAssignment:
        """Move along ``requested -> confirmed -> arrived -> completed`` or cancel."""

        def mutate(current: VendorAssignment, now: datetime):
            target = _coerce_status(current, new_status)
            VENDOR_ASSIGNMENT_WORKFLOW.require(
                current.id, current.status.value, target.value,
            )
            changes: dict = {"status": target, "updated_at": now}
            if target is AssignmentStatus.ARRIVED and current.arrived_at is None:
                changes["arrived_at"] = now
            if target is AssignmentStatus.COMPLETED:
                _check_departure(current, now)
                changes["departed_at"] = now
            updated = replace(current, **changes)
            return updated, [self._status_event(current, updated, now)]

        return self._update(assignment_id, "assignment_status_changed", mutate)

    def confirm(self, assignment_id: UUID) -> VendorAssignment:
        return self.set_status(assignment_id, AssignmentStatus.CONFIRMED)

    def cancel(self, assignment_id: UUID) -> VendorAssignment:
        return self.set_status(assignment_id, AssignmentStatus.CANCELLED)

    # =========================================================================
    # Event day
    # =========================================================================

    def record_arrival(
        self,
        assignment_id: UUID,
        at: datetime | None = None,
    ) -> VendorAssignment:
        """Stamp arrival; a ``confirmed`` assignment advances to ``arrived``."""
        arrived_at = _utc(at, "arrived_at")

        def mutate(current: VendorAssignment, now: datetime):
            _require_open(current, AssignmentStatus.ARRIVED)
            changes: dict = {"arrived_at": arrived_at or now, "updated_at": now}
            events: list[DomainEvent] = []
            if current.status is AssignmentStatus.CONFIRMED:
                changes["status"] = AssignmentStatus.ARRIVED
            updated = replace(current, **changes)
            if updated.status is not current.status:
                events.append(self._status_event(current, updated, now))
            return updated, events

        return self._update(assignment_id, "vendor_arrival_recorded", mutate)

    def record_departure(
        self,
        assignment_id: UUID,
        at: datetime | None = None,
    ) -> VendorAssignment:
        """Stamp departure and force status ``completed``."""
        departed_at = _utc(at, "departed_at")

        def mutate(current: VendorAssignment, now: datetime):
            _require_open(current, AssignmentStatus.COMPLETED)
            stamp = departed_at or now
            _check_departure(current, stamp)
            updated = replace(
                current,
                departed_at=stamp,
                status=AssignmentStatus.COMPLETED,
                updated_at=now,
            )
            return updated, [self._status_event(current, updated, now)]

        return self._update(assignment_id, "vendor_departure_recorded", mutate)

    # =========================================================================
    # Payments
    # =========================================================================

    def record_payment(
        self,
        assignment_id: UUID,
        paid_amount: Decimal | int | str,
        *,
        allow_overpayment: bool = False,
    ) -> VendorAssignment:
        """Set the cumulative amount paid to the vendor so far."""
        amount = as_amount(paid_amount, "paid_amount")

        def mutate(current: VendorAssignment, now: datetime):
            _check_payment(current, amount, allow_overpayment)
            return replace(current, paid_amount=amount, updated_at=now), []

        return self._update(assignment_id, "vendor_payment_recorded", mutate)

    def add_payment(
        self,
        assignment_id: UUID,
        amount: Decimal | int | str,
        *,
        allow_overpayment: bool = False,
    ) -> VendorAssignment:
        """Add ``amount`` to the amount paid so far."""
        increment = as_amount(amount, "amount")

        def mutate(current: VendorAssignment, now: datetime):
            total = current.paid_amount + increment
            _check_payment(current, total, allow_overpayment)
            return replace(current, paid_amount=total, updated_at=now), []

        return self._update(assignment_id, "vendor_payment_recorded", mutate)

    # =========================================================================
    # Tasks
    # =========================================================================

    def add_task(
        self,
        assignment_id: UUID,
        title: str,
        *,
        description: str | None = None,
        due_time: datetime | None = None,
        requires_proof: bool | None = None,
    ) -> VendorTask:
        """Append a task to the assignment's checklist."""
        task = VendorTask(
            id=uuid4(),
            title=title,
            description=description,
            due_time=_utc(due_time, "due_time"),
            requires_proof=(
                self._policy.require_task_proof if requires_proof is None
                else requires_proof
            ),
        )

        def mutate(current: VendorAssignment, now: datetime):
            return replace(current, tasks=current.tasks + (task,), updated_at=now), []

        self._update(assignment_id, "vendor_task_added", mutate)
        return task

    def set_task_status(
        self,
        assignment_id: UUID,
        task_id: UUID,
        status: TaskStatus | str,
        proof_url: str | None = None,
    ) -> VendorTask:
        """Change a task's status; proof-gated tasks need a proof reference to complete."""
        result: list[VendorTask] = []

        def mutate(current: VendorAssignment, now: datetime):
            task = current.task(task_id)
            if task is None:
                raise TaskNotFoundError(str(task_id), str(current.id))
            try:
                target = TaskStatus(status)
            except ValueError:
                raise InvalidTransitionError(
                    "vendor_task", str(task_id), task.status.value, str(status),
                ) from None
            proof = proof_url if proof_url and proof_url.strip() else task.proof_url
            if target is TaskStatus.COMPLETED and task.requires_proof and not proof:
                raise ProofRequiredError(str(current.id), str(task_id))
            if target is TaskStatus.COMPLETED:
                completed_at = task.completed_at or now
            else:
                completed_at = None
            updated_task = replace(
                task, status=target, proof_url=proof, completed_at=completed_at,
            )
            result.append(updated_task)
            tasks = tuple(updated_task if t.id == task_id else t for t in current.tasks)
            return replace(current, tasks=tasks, updated_at=now), []

        self._update(assignment_id, "vendor_task_status_changed", mutate)
        return result[0]

    # =========================================================================
    # Backup vendor / removal
    # =========================================================================

    def set_backup(
        self,
        assignment_id: UUID,
        backup_vendor_id: str,
        backup_vendor_name: str,
    ) -> VendorAssignment:
        """Record a standby vendor; the primary vendor is unchanged."""

        def mutate(current: VendorAssignment, now: datetime):
            if VENDOR_ASSIGNMENT_WORKFLOW.is_terminal(current.status.value):
                raise AssignmentLockedError(
                    str(current.id), current.status.value, "set backup vendor for",
                )
            updated = replace(
                current,
                backup_vendor_id=backup_vendor_id,
                backup_vendor_name=backup_vendor_name,
                updated_at=now,
            )
            return updated, []

        return self._update(assignment_id, "backup_vendor_set", mutate)

    def delete(self, assignment_id: UUID) -> VendorAssignment:
        """Soft-remove an assignment that is still only ``requested``."""

        def mutate(current: VendorAssignment, now: datetime):
            if current.status is not AssignmentStatus.REQUESTED:
                raise AssignmentLockedError(
                    str(current.id), current.status.value, "delete",
                )
            return replace(current, removed_at=now, updated_at=now), []

        return self._update(assignment_id, "vendor_assignment_removed", mutate)

    # =========================================================================
    # Reads
    # =========================================================================

    def get(self, assignment_id: UUID) -> VendorAssignment:
        event_id = self._store.event_of_assignment(assignment_id)
        for a in self._store.snapshot(event_id).active_assignments:
            if a.id == assignment_id:
                return a
        raise AssignmentNotFoundError(str(assignment_id))

    def list_for_event(self, event_id: str) -> tuple[VendorAssignment, ...]:
        return _ordered(self._store.snapshot(event_id).assignments)

    def list_for_function(
        self,
        event_id: str,
        function_id: str,
    ) -> tuple[VendorAssignment, ...]:
        return tuple(
            a for a in self.list_for_event(event_id) if a.function_id == function_id
        )

    def find(
        self,
        event_id: str,
        vendor_id: str,
        function_id: str,
    ) -> VendorAssignment | None:
        """The vendor's assignment for one function, if any."""
        for a in self.list_for_event(event_id):
            if a.vendor_id == vendor_id and a.function_id == function_id:
                return a
        return None

    def by_category(
        self,
        event_id: str,
        category: BudgetCategory,
    ) -> tuple[VendorAssignment, ...]:
        return tuple(
            a for a in self.list_for_event(event_id) if a.budget_category is category
        )

    def rollup(self, event_id: str) -> dict[BudgetCategory, CategoryRollup]:
        """Committed / spent for all nine categories from one snapshot."""
        return compute_rollup(self._store.snapshot(event_id).assignments)

    def committed(self, event_id: str, category: BudgetCategory) -> Decimal:
        return self.rollup(event_id)[category].committed

    def spent(self, event_id: str, category: BudgetCategory) -> Decimal:
        return self.rollup(event_id)[category].spent

    def assignment_summary(self, event_id: str) -> AssignmentSummary:
        assignments = self.list_for_event(event_id)

        def count(status: AssignmentStatus) -> int:
            return sum(1 for a in assignments if a.status is status)

        return AssignmentSummary(
            total=len(assignments),
            requested=count(AssignmentStatus.REQUESTED),
            confirmed=count(AssignmentStatus.CONFIRMED),
            arrived=sum(1 for a in assignments if a.arrived_at is not None),
            completed=count(AssignmentStatus.COMPLETED),
            cancelled=count(AssignmentStatus.CANCELLED),
            total_agreed=sum((a.agreed_amount for a in assignments), ZERO),
            total_paid=sum((a.paid_amount for a in assignments), ZERO),
        )

    # =========================================================================
    # Internals
    # =========================================================================

    def _update(
        self,
        assignment_id: UUID,
        log_event: str,
        mutate: _Mutation,
    ) -> VendorAssignment:
        event_id = self._store.event_of_assignment(assignment_id)
        with LogContext.bind(event_id=event_id, assignment_id=assignment_id):
            with self._store.write(event_id) as ledger:
                current = ledger.assignments.get(assignment_id)
                if current is None or current.removed_at is not None:
                    raise AssignmentNotFoundError(str(assignment_id))
                updated, events = mutate(current, self._clock.now())
                self._store.commit(ledger, assignments=[updated])

            logger.info(log_event, extra={
                "status": updated.status.value,
                "paid_amount": str(updated.paid_amount),
                "task_count": len(updated.tasks),
            })
            self._dispatcher.publish(events)
        return updated

    def _status_event(
        self,
        before: VendorAssignment,
        after: VendorAssignment,
        now: datetime,
    ) -> AssignmentStatusChanged:
        return AssignmentStatusChanged(
            event_id=after.event_id,
            occurred_at=now,
            assignment_id=after.id,
            vendor_id=after.vendor_id,
            from_status=before.status,
            to_status=after.status,
        )


def _coerce_status(
    current: VendorAssignment,
    new_status: AssignmentStatus | str,
) -> AssignmentStatus:
    try:
        return AssignmentStatus(new_status)
    except ValueError:
        raise InvalidTransitionError(
            VENDOR_ASSIGNMENT_WORKFLOW.name,
            str(current.id),
            current.status.value,
            str(new_status),
        ) from None


def _utc(moment: datetime | None, field: str) -> datetime | None:
    if moment is None:
        return None
    if moment.tzinfo is None or moment.utcoffset() is None:
        raise InvalidTimestampError(field, moment.isoformat())
    return moment.astimezone(timezone.utc)


def _require_open(current: VendorAssignment, target: AssignmentStatus) -> None:
    if VENDOR_ASSIGNMENT_WORKFLOW.is_terminal(current.status.value):
        raise InvalidTransitionError(
            VENDOR_ASSIGNMENT_WORKFLOW.name,
            str(current.id),
            current.status.value,
            target.value,
        )


def _check_departure(current: VendorAssignment, departed_at: datetime) -> None:
    if current.arrived_at is None:
        raise ArrivalRequiredError(str(current.id))
    if departed_at < current.arrived_at:
        raise TimestampOrderError(
            str(current.id),
            current.arrived_at.isoformat(),
            departed_at.isoformat(),
        )


def _check_payment(
    current: VendorAssignment,
    paid_amount: Decimal,
    allow_overpayment: bool,
) -> None:
    if paid_amount < current.paid_amount:
        raise InvalidAmountError(
            "paid_amount",
            str(paid_amount),
            f"cannot decrease below {current.paid_amount}",
        )
    if paid_amount > current.agreed_amount and not allow_overpayment:
        raise OverPaymentError(
            str(current.id), str(paid_amount), str(current.agreed_amount),
        )
