"""
In-memory booking store (``booking_kernel.store``).

Responsibility
--------------
Owns all kernel state: one ``EventLedger`` per event id holding that
event's booking requests, vendor assignments, budget allocations and total
budget.  There is no module-level state: callers create a store and
inject it into the registries.

Architecture position
---------------------
**Kernel store layer** -- used by every registry in ``booking_kernel.services``.
Contains no business rules; the registries decide WHAT to write, the
store decides HOW writes are serialized and made visible.

Invariants enforced
-------------------
* Per-event serialization: every mutation of an event's ledger happens
  while holding that ledger's ``RLock`` (``BookingStore.write``).
* Readers copy a frozen ``LedgerSnapshot`` under the same lock, so a
  partially applied unit is never observable.
* Unrelated events never contend: the store-wide guard lock is held only
  for index lookups and ledger creation, never across a unit of work.
* ``commit`` only assigns prebuilt frozen objects, so once a unit reaches
  ``commit`` it cannot fail halfway.
* Only events that hold data are listed; a failed first write leaves no
  ledger behind.

Failure modes
-------------
* Unknown request / assignment id  -> ``BookingRequestNotFoundError`` /
  ``AssignmentNotFoundError`` from the index lookups.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from booking_kernel.domain.categories import BudgetCategory
from booking_kernel.domain.models import (
    BookingRequest,
    BudgetAllocation,
    VendorAssignment,
)
from booking_kernel.exceptions import (
    AssignmentNotFoundError,
    BookingRequestNotFoundError,
)
from booking_kernel.logging_config import get_logger

logger = get_logger("store")


@dataclass(eq=False)
class EventLedger:
    """Mutable per-event container.  Touch only while holding ``lock``."""
    event_id: str
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    requests: dict[UUID, BookingRequest] = field(default_factory=dict)
    assignments: dict[UUID, VendorAssignment] = field(default_factory=dict)
    allocations: dict[BudgetCategory, BudgetAllocation] = field(default_factory=dict)
    total_budget: Decimal | None = None
    depth: int = field(default=0, repr=False)

    def is_empty(self) -> bool:
        return not (
            self.requests or self.assignments or self.allocations
            or self.total_budget is not None
        )


@dataclass(frozen=True)
class LedgerSnapshot:
    """Point-in-time copy of one event's ledger."""
    event_id: str
    requests: tuple[BookingRequest, ...] = ()
    assignments: tuple[VendorAssignment, ...] = ()
    allocations: tuple[BudgetAllocation, ...] = ()
    total_budget: Decimal | None = None

    @property
    def active_assignments(self) -> tuple[VendorAssignment, ...]:
        """Assignments that have not been soft-removed."""
        return tuple(a for a in self.assignments if a.removed_at is None)


class BookingStore:
    """
    Deployment-scoped owner of every event ledger.

    One instance is shared by the registries of a ``BookingKernel``; tests
    create a fresh one per case.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._ledgers: dict[str, EventLedger] = {}
        self._request_events: dict[UUID, str] = {}
        self._assignment_events: dict[UUID, str] = {}
        self._sequence = 0

    # ------------------------------------------------------------------
    # Ledger access
    # ------------------------------------------------------------------

    def ledger(self, event_id: str) -> EventLedger:
        """Return the ledger for ``event_id``, creating it on first use."""
        with self._guard:
            ledger = self._ledgers.get(event_id)
            if ledger is None:
                ledger = EventLedger(event_id=event_id)
                self._ledgers[event_id] = ledger
                logger.debug("event_ledger_created", extra={"event_id": event_id})
            return ledger

    @contextmanager
    def write(self, event_id: str) -> Iterator[EventLedger]:
        """Hold the event's lock for one unit of work.

        A ledger that is still empty when the outermost unit exits (the
        unit failed, or wrote nothing) is dropped again, so rejected
        operations never leave phantom events behind.
        """
        ledger = self._locked_ledger(event_id)
        ledger.depth += 1
        try:
            yield ledger
        finally:
            ledger.depth -= 1
            if ledger.depth == 0 and ledger.is_empty():
                with self._guard:
                    if self._ledgers.get(event_id) is ledger:
                        del self._ledgers[event_id]
            ledger.lock.release()

    def _locked_ledger(self, event_id: str) -> EventLedger:
        # Retry if the ledger was dropped while this thread waited on its lock.
        while True:
            ledger = self.ledger(event_id)
            ledger.lock.acquire()
            with self._guard:
                if self._ledgers.get(event_id) is ledger:
                    return ledger
            ledger.lock.release()

    def snapshot(self, event_id: str) -> LedgerSnapshot:
        """Consistent copy of one event's state (empty if never written)."""
        with self._guard:
            ledger = self._ledgers.get(event_id)
        if ledger is None:
            return LedgerSnapshot(event_id=event_id)
        with ledger.lock:
            return LedgerSnapshot(
                event_id=event_id,
                requests=tuple(ledger.requests.values()),
                assignments=tuple(ledger.assignments.values()),
                allocations=tuple(ledger.allocations.values()),
                total_budget=ledger.total_budget,
            )

    def snapshots(self) -> Iterator[LedgerSnapshot]:
        """Per-event snapshots of every known event.

        Each snapshot is internally consistent; different events may be
        captured at slightly different moments.
        """
        for event_id in self.event_ids():
            yield self.snapshot(event_id)

    def event_ids(self) -> tuple[str, ...]:
        with self._guard:
            return tuple(self._ledgers)

    def next_sequence(self) -> int:
        with self._guard:
            self._sequence += 1
            return self._sequence

    # ------------------------------------------------------------------
    # Index lookups
    # ------------------------------------------------------------------

    def event_of_request(self, request_id: UUID) -> str:
        with self._guard:
            event_id = self._request_events.get(request_id)
        if event_id is None:
            raise BookingRequestNotFoundError(str(request_id))
        return event_id

    def event_of_assignment(self, assignment_id: UUID) -> str:
        with self._guard:
            event_id = self._assignment_events.get(assignment_id)
        if event_id is None:
            raise AssignmentNotFoundError(str(assignment_id))
        return event_id

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def commit(
        self,
        ledger: EventLedger,
        *,
        requests: Iterable[BookingRequest] = (),
        assignments: Iterable[VendorAssignment] = (),
        allocations: Iterable[BudgetAllocation] = (),
        total_budget: Decimal | None = None,
    ) -> None:
        """Apply a prebuilt unit of work to ``ledger``.

        Callers must hold ``ledger.lock`` (i.e. be inside ``write``).
        """
        requests = tuple(requests)
        assignments = tuple(assignments)
        for r in requests:
            ledger.requests[r.id] = r
        for a in assignments:
            ledger.assignments[a.id] = a
        for alloc in allocations:
            ledger.allocations[alloc.category] = alloc
        if total_budget is not None:
            ledger.total_budget = total_budget
        if requests or assignments:
            with self._guard:
                for r in requests:
                    self._request_events[r.id] = ledger.event_id
                    self._sequence = max(self._sequence, r.sequence)
                for a in assignments:
                    self._assignment_events[a.id] = ledger.event_id
                    self._sequence = max(self._sequence, a.sequence)

    def restore(
        self,
        event_id: str,
        *,
        requests: Iterable[BookingRequest] = (),
        assignments: Iterable[VendorAssignment] = (),
        allocations: Iterable[BudgetAllocation] = (),
        total_budget: Decimal | None = None,
    ) -> None:
        """Replace one event's ledger wholesale (used when loading from a database)."""
        with self.write(event_id) as ledger:
            with self._guard:
                for request_id in ledger.requests:
                    self._request_events.pop(request_id, None)
                for assignment_id in ledger.assignments:
                    self._assignment_events.pop(assignment_id, None)
            ledger.requests.clear()
            ledger.assignments.clear()
            ledger.allocations.clear()
            ledger.total_budget = None
            self.commit(
                ledger,
                requests=requests,
                assignments=assignments,
                allocations=allocations,
                total_budget=total_budget,
            )

    def clear(self) -> None:
        """Drop all state. FOR TESTING ONLY."""
        with self._guard:
            self._ledgers.clear()
            self._request_events.clear()
            self._assignment_events.clear()
            self._sequence = 0
