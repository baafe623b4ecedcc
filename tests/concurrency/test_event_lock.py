"""
Per-event lock tests.

Threads are released together through a Barrier so the racing operations
really contend for the same event ledger.

Verifies:
- Racing accepts of one request create exactly one assignment
- Racing payments never double count or exceed the agreed amount
- Racing duplicate requests leave exactly one live request
- Work on different events does not interfere
"""

from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from threading import Barrier

import pytest

from booking_kernel.domain.models import RequestStatus
from booking_kernel.exceptions import (
    DuplicateRequestError,
    InvalidTransitionError,
    OverPaymentError,
)

pytestmark = pytest.mark.slow_locks

THREADS = 10


def _race(fn, count=THREADS):
    """Run ``fn(i)`` on ``count`` threads released at the same instant."""
    barrier = Barrier(count)

    def run(i):
        barrier.wait()
        try:
            return fn(i)
        except Exception as exc:
            return exc

    with ThreadPoolExecutor(max_workers=count) as pool:
        return list(pool.map(run, range(count)))


class TestConcurrentAccept:
    def test_exactly_one_accept_wins(self, kernel, create_request, event_id):
        request = create_request()

        results = _race(lambda _: kernel.requests.accept(request.id))

        winners = [r for r in results if not isinstance(r, Exception)]
        losers = [r for r in results if isinstance(r, Exception)]
        assert len(winners) == 1
        assert all(isinstance(e, InvalidTransitionError) for e in losers)
        assert len(kernel.assignments.list_for_event(event_id)) == 1
        assert kernel.requests.get(request.id).assignment_id == winners[0].assignment_id

    def test_accept_and_decline_race(self, kernel, create_request, event_id):
        request = create_request()

        def act(i):
            if i % 2:
                return kernel.requests.decline(request.id)
            return kernel.requests.accept(request.id)

        results = _race(act)

        winners = [r for r in results if not isinstance(r, Exception)]
        assert len(winners) == 1
        final = kernel.requests.get(request.id)
        assignments = kernel.assignments.list_for_event(event_id)
        if final.status is RequestStatus.ACCEPTED:
            assert len(assignments) == 1
        else:
            assert final.status is RequestStatus.DECLINED
            assert assignments == ()


class TestConcurrentPayments:
    def test_increments_are_not_lost(self, kernel, create_assignment):
        assignment = create_assignment(agreed_amount="100000")

        results = _race(lambda _: kernel.assignments.add_payment(assignment.id, "1000"))

        assert not [r for r in results if isinstance(r, Exception)]
        assert kernel.assignments.get(assignment.id).paid_amount == Decimal("10000")

    def test_agreed_amount_bound_holds(self, kernel, create_assignment):
        assignment = create_assignment(agreed_amount="25000")

        results = _race(lambda _: kernel.assignments.add_payment(assignment.id, "10000"))

        accepted = [r for r in results if not isinstance(r, Exception)]
        rejected = [r for r in results if isinstance(r, Exception)]
        assert len(accepted) == 2
        assert all(isinstance(e, OverPaymentError) for e in rejected)
        assert kernel.assignments.get(assignment.id).paid_amount == Decimal("20000")


class TestConcurrentCreate:
    def test_duplicate_requests_collapse_to_one(self, kernel, create_request, event_id):
        results = _race(lambda _: create_request(category="Photo & Video"))

        created = [r for r in results if not isinstance(r, Exception)]
        rejected = [r for r in results if isinstance(r, Exception)]
        assert len(created) == 1
        assert all(isinstance(e, DuplicateRequestError) for e in rejected)
        assert len(kernel.requests.list_for(event_id=event_id)) == 1

    def test_sequence_numbers_are_unique(self, kernel, create_request):
        results = _race(lambda i: create_request(vendor_id=f"v-{i}"))

        sequences = [r.sequence for r in results]
        assert len(set(sequences)) == THREADS


class TestIndependentEvents:
    def test_parallel_events_do_not_interfere(self, kernel):
        def book(i):
            event = f"evt-{i}"
            kernel.budget.initialize(event, "1000000")
            request = kernel.requests.create(event, "v-dj", "DJ", "80000")
            accepted = kernel.requests.accept(request.id)
            kernel.assignments.confirm(accepted.assignment_id)
            kernel.assignments.add_payment(accepted.assignment_id, "50000")
            return kernel.budget.summary(event)

        results = _race(book)

        assert not [r for r in results if isinstance(r, Exception)]
        for summary in results:
            assert summary.total_committed == Decimal("80000")
            assert summary.total_spent == Decimal("50000")
            assert len(kernel.assignments.list_for_event(summary.event_id)) == 1
