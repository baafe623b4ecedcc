"""
Budget Allocator (``booking_kernel.services.budget_allocator``).

Responsibility
--------------
Splits an event's total budget across the nine budget categories, accepts
manual per-category edits, and derives each category's health from what
vendors have actually been paid.

Spend is never entered here.  It is always read from the vendor
assignment ledger (``compute_rollup``), so "what was budgeted" and "what
vendors report" cannot drift apart.  ``spent_amount`` / ``status`` on a
stored ``BudgetAllocation`` are the values derived at the last
``initialize`` / ``set_allocation`` / ``recompute_status``; ``summary``
always derives them afresh.

Invariants enforced
-------------------
* ``initialize`` always writes all nine categories, summing exactly to the
  total budget (even when it is zero).
* ``set_allocation`` edits one category only -- no automatic rebalancing.
  Allocating more than the total is permitted and flagged.
* ``recompute_status`` is idempotent: with no intervening mutation a
  second call changes nothing and publishes nothing.

Failure modes
-------------
* ``AllocationNotFoundError`` -- budget not initialized for the event,
  or unknown category.
* ``InvalidAmountError`` -- negative / non-numeric amounts.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime
from decimal import Decimal

from booking_kernel.config import BudgetPolicy
from booking_kernel.domain.allocation import (
    derive_status,
    distribute,
    percent_of,
    quantize,
    range_fit,
    PERCENT_PLACES,
)
from booking_kernel.domain.categories import CATEGORY_INFO, BudgetCategory
from booking_kernel.domain.clock import Clock, SystemClock
from booking_kernel.domain.events import CategoryOverBudget
from booking_kernel.domain.models import (
    ZERO,
    AllocationGuidance,
    AllocationStatus,
    BudgetAllocation,
    BudgetSummary,
    CategoryRollup,
    as_amount,
)
from booking_kernel.exceptions import AllocationNotFoundError
from booking_kernel.logging_config import LogContext, get_logger
from booking_kernel.services.dispatcher import EventDispatcher
from booking_kernel.services.vendor_assignments import compute_rollup
from booking_kernel.store import BookingStore, EventLedger

logger = get_logger("services.budget_allocator")


class BudgetAllocator:
    """
    Per-event, per-category budget allocation and health.

    Contract
    --------
    * Mutations run under the event lock shared with the request and
      assignment registries.
    * ``CategoryOverBudget`` is published when a category moves INTO
      ``over``; staying over publishes nothing.
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

    # =========================================================================
    # Mutations
    # =========================================================================

    def initialize(
        self,
        event_id: str,
        total_budget: Decimal | int | str,
    ) -> tuple[BudgetAllocation, ...]:
        """(Re)create all nine allocations from the default weights."""
        total = as_amount(total_budget, "total_budget")

        with LogContext.bind(event_id=event_id):
            with self._store.write(event_id) as ledger:
                now = self._clock.now()
                shares = distribute(total, self._policy.weights, self._policy.amount_places)
                rollup = compute_rollup(ledger.assignments.values())
                allocations = [
                    self._derive(
                        BudgetAllocation(
                            event_id=event_id,
                            category=category,
                            allocated_amount=shares[category],
                            allocated_percent=quantize(
                                self._policy.weights[category], PERCENT_PLACES,
                            ),
                            updated_at=now,
                        ),
                        rollup[category],
                    )
                    for category in BudgetCategory
                ]
                events = self._over_budget_events(ledger, allocations, now)
                self._store.commit(ledger, allocations=allocations, total_budget=total)

            logger.info("budget_initialized", extra={
                "total_budget": str(total),
                "category_count": len(allocations),
            })
            self._dispatcher.publish(events)
        return tuple(allocations)

    def set_allocation(
        self,
        event_id: str,
        category: BudgetCategory | str,
        new_amount: Decimal | int | str,
        total_budget: Decimal | int | str,
    ) -> BudgetAllocation:
        """Overwrite one category's allocated amount and percent."""
        category = self._coerce_category(event_id, category)
        amount = as_amount(new_amount, "allocated_amount")
        total = as_amount(total_budget, "total_budget")

        with LogContext.bind(event_id=event_id):
            with self._store.write(event_id) as ledger:
                current = ledger.allocations.get(category)
                if current is None:
                    raise AllocationNotFoundError(event_id, category.value)
                now = self._clock.now()
                rollup = compute_rollup(ledger.assignments.values())
                updated = self._derive(
                    replace(
                        current,
                        allocated_amount=amount,
                        allocated_percent=percent_of(amount, total),
                        updated_at=now,
                    ),
                    rollup[category],
                )
                events = self._over_budget_events(ledger, [updated], now)
                self._store.commit(ledger, allocations=[updated], total_budget=total)
                total_allocated = sum(
                    (a.allocated_amount for a in ledger.allocations.values()), ZERO,
                )

            logger.info("budget_allocation_updated", extra={
                "category": category.value,
                "allocated_amount": str(amount),
                "allocated_percent": str(updated.allocated_percent),
            })
            if total_allocated > total:
                logger.warning("budget_over_allocated", extra={
                    "total_allocated": str(total_allocated),
                    "total_budget": str(total),
                })
            self._dispatcher.publish(events)
        return updated

    def recompute_status(self, event_id: str) -> tuple[BudgetAllocation, ...]:
        """Refresh spent / status of every category from the assignment ledger."""
        with LogContext.bind(event_id=event_id):
            with self._store.write(event_id) as ledger:
                self._require_initialized(ledger)
                now = self._clock.now()
                rollup = compute_rollup(ledger.assignments.values())
                changed = []
                for category in BudgetCategory:
                    current = ledger.allocations[category]
                    derived = self._derive(current, rollup[category])
                    if derived != current:
                        changed.append(replace(derived, updated_at=now))
                events = self._over_budget_events(ledger, changed, now)
                self._store.commit(ledger, allocations=changed)
                result = tuple(ledger.allocations[c] for c in BudgetCategory)

            if changed:
                logger.info("budget_status_recomputed", extra={
                    "changed_categories": [a.category.value for a in changed],
                    "over_categories": [
                        a.category.value for a in result
                        if a.status is AllocationStatus.OVER
                    ],
                })
            self._dispatcher.publish(events)
        return result

    # =========================================================================
    # Reads
    # =========================================================================

    def summary(self, event_id: str) -> BudgetSummary:
        """Totals and health counts, derived from one consistent snapshot."""
        snap = self._store.snapshot(event_id)
        if not snap.allocations:
            raise AllocationNotFoundError(event_id)
        rollup = compute_rollup(snap.assignments)
        by_category = {a.category: a for a in snap.allocations}
        allocations = tuple(
            self._derive(by_category[c], rollup[c]) for c in BudgetCategory
        )

        total_budget = snap.total_budget if snap.total_budget is not None else ZERO
        total_allocated = sum((a.allocated_amount for a in allocations), ZERO)
        total_spent = sum((r.spent for r in rollup.values()), ZERO)
        total_committed = sum((r.committed for r in rollup.values()), ZERO)
        total_paid = sum((a.paid_amount for a in snap.active_assignments), ZERO)

        return BudgetSummary(
            event_id=event_id,
            total_budget=total_budget,
            total_allocated=total_allocated,
            total_committed=total_committed,
            total_spent=total_spent,
            total_paid=total_paid,
            remaining=total_allocated - total_spent,
            spent_percent=percent_of(total_spent, total_allocated),
            warning_count=sum(1 for a in allocations if a.status is AllocationStatus.WARNING),
            over_count=sum(1 for a in allocations if a.status is AllocationStatus.OVER),
            over_allocated=total_allocated > total_budget,
            allocations=allocations,
        )

    def get_allocation(
        self,
        event_id: str,
        category: BudgetCategory | str,
    ) -> BudgetAllocation:
        category = self._coerce_category(event_id, category)
        for a in self._store.snapshot(event_id).allocations:
            if a.category is category:
                return a
        raise AllocationNotFoundError(event_id, category.value)

    def list_allocations(self, event_id: str) -> tuple[BudgetAllocation, ...]:
        """All nine allocations in category order (empty before ``initialize``)."""
        by_category = {a.category: a for a in self._store.snapshot(event_id).allocations}
        return tuple(by_category[c] for c in BudgetCategory if c in by_category)

    def guidance(self, event_id: str) -> tuple[AllocationGuidance, ...]:
        """Compare each allocated percent with the category's industry range."""
        allocations = self.list_allocations(event_id)
        if not allocations:
            raise AllocationNotFoundError(event_id)
        return tuple(
            AllocationGuidance(
                category=a.category,
                allocated_percent=a.allocated_percent,
                min_percent=CATEGORY_INFO[a.category].min_percent,
                max_percent=CATEGORY_INFO[a.category].max_percent,
                fit=range_fit(a.category, a.allocated_percent),
            )
            for a in allocations
        )

    # =========================================================================
    # Internals
    # =========================================================================

    def _derive(
        self,
        allocation: BudgetAllocation,
        rollup: CategoryRollup,
    ) -> BudgetAllocation:
        status = derive_status(
            rollup.spent,
            allocation.allocated_amount,
            self._policy.warning_ratio,
            self._policy.over_ratio,
        )
        if allocation.spent_amount == rollup.spent and allocation.status is status:
            return allocation
        return replace(allocation, spent_amount=rollup.spent, status=status)

    @staticmethod
    def _over_budget_events(
        ledger: EventLedger,
        allocations: list[BudgetAllocation],
        now: datetime,
    ) -> list[CategoryOverBudget]:
        events = []
        for a in allocations:
            previous = ledger.allocations.get(a.category)
            was_over = previous is not None and previous.status is AllocationStatus.OVER
            if a.status is AllocationStatus.OVER and not was_over:
                events.append(CategoryOverBudget(
                    event_id=ledger.event_id,
                    occurred_at=now,
                    category=a.category,
                    allocated_amount=a.allocated_amount,
                    spent_amount=a.spent_amount,
                ))
        return events

    @staticmethod
    def _require_initialized(ledger: EventLedger) -> None:
        if len(ledger.allocations) != len(BudgetCategory):
            raise AllocationNotFoundError(ledger.event_id)

    @staticmethod
    def _coerce_category(event_id: str, category: BudgetCategory | str) -> BudgetCategory:
        try:
            return BudgetCategory(category)
        except ValueError:
            raise AllocationNotFoundError(event_id, str(category)) from None
