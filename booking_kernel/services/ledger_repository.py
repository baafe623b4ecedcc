"""
booking_kernel.services.ledger_repository -- save / load one event's ledger.

Responsibility:
    Copies an event's booking requests, vendor assignments (with tasks),
    budget allocations and total budget between the in-memory
    ``BookingStore`` and the database rows of ``booking_kernel.db.orm``.

Architecture position:
    Services -- the only place the store and SQLAlchemy sessions meet.
    The caller owns the transaction (``session_scope``); the repository
    flushes but never commits.

Invariants enforced:
    - ``save_event`` writes from one consistent ``LedgerSnapshot``.
    - ``load_event`` replaces the event's ledger wholesale, including the
      request / assignment indices, so loaded ids resolve immediately.
    - Saving is an upsert by primary key: saving twice leaves one row per
      entity.

Failure modes:
    - SQLAlchemy errors propagate; the caller's scope rolls back.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.orm import Session

from booking_kernel.db.orm import (
    BookingRequestModel,
    BudgetAllocationModel,
    EventBudgetModel,
    VendorAssignmentModel,
)
from booking_kernel.logging_config import LogContext, get_logger
from booking_kernel.store import BookingStore, LedgerSnapshot

logger = get_logger("services.ledger_repository")


class LedgerRepository:
    """Persists event ledgers of one ``BookingStore``."""

    def __init__(self, store: BookingStore):
        self._store = store

    def save_event(self, session: Session, event_id: str) -> LedgerSnapshot:
        """Upsert every entity of ``event_id`` into the session."""
        snap = self._store.snapshot(event_id)
        with LogContext.bind(event_id=event_id):
            for request in snap.requests:
                session.merge(BookingRequestModel.from_dto(request))
            for assignment in snap.assignments:
                session.merge(VendorAssignmentModel.from_dto(assignment))

            existing = {
                row.category: row
                for row in session.scalars(
                    select(BudgetAllocationModel).where(
                        BudgetAllocationModel.event_id == event_id,
                    )
                )
            }
            for allocation in snap.allocations:
                row = existing.get(allocation.category.value)
                if row is None:
                    session.add(BudgetAllocationModel.from_dto(allocation))
                else:
                    row.allocated_amount = allocation.allocated_amount
                    row.allocated_percent = allocation.allocated_percent
                    row.spent_amount = allocation.spent_amount
                    row.status = allocation.status.value
                    row.updated_at = allocation.updated_at
                    row.notes = allocation.notes

            if snap.total_budget is not None:
                budget = session.scalars(
                    select(EventBudgetModel).where(EventBudgetModel.event_id == event_id)
                ).one_or_none()
                if budget is None:
                    session.add(EventBudgetModel(
                        event_id=event_id, total_budget=snap.total_budget,
                    ))
                else:
                    budget.total_budget = snap.total_budget

            session.flush()
            logger.info("event_ledger_saved", extra={
                "request_count": len(snap.requests),
                "assignment_count": len(snap.assignments),
                "allocation_count": len(snap.allocations),
            })
        return snap

    def load_event(self, session: Session, event_id: str) -> LedgerSnapshot:
        """Replace the store's ledger for ``event_id`` with the database rows."""
        with LogContext.bind(event_id=event_id):
            requests = [
                row.to_dto()
                for row in session.scalars(
                    select(BookingRequestModel).where(
                        BookingRequestModel.event_id == event_id,
                    )
                )
            ]
            assignments = [
                row.to_dto()
                for row in session.scalars(
                    select(VendorAssignmentModel).where(
                        VendorAssignmentModel.event_id == event_id,
                    )
                )
            ]
            allocations = [
                row.to_dto()
                for row in session.scalars(
                    select(BudgetAllocationModel).where(
                        BudgetAllocationModel.event_id == event_id,
                    )
                )
            ]
            budget = session.scalars(
                select(EventBudgetModel).where(EventBudgetModel.event_id == event_id)
            ).one_or_none()

            self._store.restore(
                event_id,
                requests=requests,
                assignments=assignments,
                allocations=allocations,
                total_budget=budget.total_budget if budget is not None else None,
            )
            logger.info("event_ledger_loaded", extra={
                "request_count": len(requests),
                "assignment_count": len(assignments),
                "allocation_count": len(allocations),
            })
        return self._store.snapshot(event_id)
